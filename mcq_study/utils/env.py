from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv


def load_project_dotenv() -> bool:
    """
    Load `.env` from the project root into `os.environ`.

    `pydantic-settings` reads `.env` into Settings but does NOT populate
    `os.environ`; scripts that read env vars directly need both.
    No-op in production where env vars are injected by the runtime.
    """
    here = Path(__file__).resolve()
    project_root = here.parents[2]

    candidates = [
        project_root / ".env",
        project_root / "mcq_study" / ".env",
    ]

    loaded = False
    for p in candidates:
        if p.exists():
            loaded = bool(load_dotenv(p, override=False)) or loaded
    return loaded
