from __future__ import annotations

import argparse
import base64
import json
import mimetypes
from pathlib import Path
from typing import List, Optional

from mcq_study.core.importer import import_file, import_ocr_pages, persist_import
from mcq_study.models.schemas import ImportResult
from mcq_study.services.storage import get_topic_store
from mcq_study.services.vision import VisionClient
from mcq_study.utils.errors import McqStudyError
from mcq_study.utils.logging_setup import configure_logging
from mcq_study.utils.settings import get_settings


def _file_to_data_url(path: Path) -> str:
    mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    b64 = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{b64}"


def _summary(result: ImportResult, saved) -> dict:
    return {
        "imported": result.imported_count,
        "skipped": result.skipped_count,
        "duplicates": result.duplicate_count,
        "skip_reasons": result.skip_reasons,
        "topics": [{"id": t.id, "name": t.name, "questions": len(t.questions)} for t in saved],
    }


def _existing(paths: List[str]) -> List[Path]:
    out = []
    for p in paths:
        path = Path(p).expanduser().resolve()
        if not path.exists():
            raise SystemExit(f"File not found: {path}")
        out.append(path)
    return out


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import MCQ questions into the topic store.")
    parser.add_argument("--user", default=None, help="Owner user id (default: DEFAULT_USER_ID)")
    parser.add_argument("--target-topic", default=None, help="Append into this existing topic id")
    parser.add_argument(
        "--missing-answer-policy",
        default=None,
        choices=["first_option", "reject"],
        help="Override MISSING_ANSWER_POLICY",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_file = sub.add_parser("file", help="Import .csv/.txt/.xlsx/.xls files")
    p_file.add_argument("paths", nargs="+")

    p_ocr = sub.add_parser("ocr", help="OCR textbook page images into one topic")
    p_ocr.add_argument("images", nargs="+")
    p_ocr.add_argument("--topic", required=True, help="Topic name for the scanned questions")
    p_ocr.add_argument("--provider", default=None, choices=["gemini", "openai"])

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings, console=True)
    store = get_topic_store()
    user_id = args.user or settings.default_user_id

    try:
        if args.command == "file":
            for path in _existing(args.paths):
                result = import_file(
                    path.read_bytes(),
                    path.name,
                    missing_answer_policy=args.missing_answer_policy,
                    user_id=user_id,
                )
                saved = persist_import(store, result, user_id=user_id, target_topic_id=args.target_topic)
                print(json.dumps({"file": path.name, **_summary(result, saved)}, ensure_ascii=False))
        else:
            images = [_file_to_data_url(p) for p in _existing(args.images)]
            pages = VisionClient().extract_pages(images, provider=args.provider)
            result = import_ocr_pages(
                pages,
                args.topic,
                missing_answer_policy=args.missing_answer_policy,
                user_id=user_id,
            )
            saved = persist_import(store, result, user_id=user_id, target_topic_id=args.target_topic)
            print(json.dumps(_summary(result, saved), ensure_ascii=False))
    except McqStudyError as e:
        print(json.dumps(e.to_payload(), ensure_ascii=False))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
