from __future__ import annotations

# Load the local `.env` early so `os.getenv` readers and pydantic-settings see
# the same values when running scripts straight from a checkout.
try:
    from mcq_study.utils.env import load_project_dotenv

    load_project_dotenv()
except Exception:
    # Never hard-fail import for optional dev convenience.
    pass
