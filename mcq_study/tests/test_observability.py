import json
import logging

import pytest

from mcq_study.utils.logging_setup import configure_logging, setup_file_logging
from mcq_study.utils.observability import log_event, log_llm_usage, redact_secrets, trace_span
from mcq_study.utils.settings import get_settings


def _events(caplog):
    out = []
    for r in caplog.records:
        try:
            out.append(json.loads(r.getMessage()))
        except ValueError:
            continue
    return out


def test_redact_secrets():
    s = redact_secrets("key sk-abcdefghijklmnop and AIzaSyA1234567890abcdefghijk Bearer abcdefghijkl")
    assert "sk-abcdefghijklmnop" not in s
    assert "AIzaSyA1234567890abcdefghijk" not in s
    assert "Bearer ***" in s


def test_log_event_is_single_line_json(caplog):
    logger = logging.getLogger("mcq_study.test")
    with caplog.at_level(logging.INFO, logger="mcq_study.test"):
        log_event(logger, "import_completed", imported=2, topics=["Bio"], skipped=None, key="sk-abcdefghijklmnop")
    (event,) = _events(caplog)
    assert event == {"event": "import_completed", "imported": 2, "topics": ["Bio"], "key": "sk-***"}


def test_log_event_never_raises():
    class _Broken:
        def info(self, *_):
            raise RuntimeError("handler exploded")

    log_event(_Broken(), "whatever")


def test_trace_span_logs_failure_and_reraises(caplog):
    @trace_span("unit.fail")
    def _fail():
        raise ValueError("nope")

    with caplog.at_level(logging.DEBUG):
        with pytest.raises(ValueError):
            _fail()
    ends = [e for e in _events(caplog) if e.get("event") == "trace_end"]
    assert ends and ends[0]["span"] == "unit.fail"
    assert ends[0]["error_type"] == "ValueError"


def test_setup_file_logging_is_idempotent(tmp_path):
    name = "mcq_study.test_file_logging"
    path = tmp_path / "logs" / "app.log"
    setup_file_logging(log_file_path=str(path), level=logging.INFO, logger_names=[name])
    setup_file_logging(log_file_path=str(path), level=logging.INFO, logger_names=[name])
    logger = logging.getLogger(name)
    handlers = [h for h in logger.handlers if h.name == "mcq_study_file_handler"]
    assert len(handlers) == 1
    logger.info("hello")
    handlers[0].flush()
    assert "hello" in path.read_text(encoding="utf-8")
    for h in handlers:
        logger.removeHandler(h)
        h.close()


def test_configure_logging_reads_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_TO_FILE", "0")
    assert configure_logging(get_settings()) == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    logging.getLogger("mcq_study").setLevel(logging.NOTSET)


def test_log_llm_usage_emits_token_counts(caplog):
    logger = logging.getLogger("mcq_study.test")
    with caplog.at_level(logging.INFO, logger="mcq_study.test"):
        log_llm_usage(
            logger,
            op="extract_page",
            provider="gemini",
            model="gemini-2.0-flash",
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        )
    (event,) = _events(caplog)
    assert event["event"] == "llm_usage"
    assert event["total_tokens"] == 15
