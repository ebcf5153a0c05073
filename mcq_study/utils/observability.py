from __future__ import annotations

import json
import re
import time
import logging
import inspect
from functools import wraps
from typing import Any, Dict

# Provider keys must never reach log files.
_RE_OPENAI_SK = re.compile(r"\bsk-[A-Za-z0-9_-]{10,}\b")
_RE_GOOGLE_KEY = re.compile(r"\bAIza[0-9A-Za-z_-]{20,}\b")
_RE_BEARER = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._-]{10,}\b")


def redact_secrets(text: str) -> str:
    s = _RE_OPENAI_SK.sub("sk-***", text)
    s = _RE_GOOGLE_KEY.sub("AIza***", s)
    return _RE_BEARER.sub("Bearer ***", s)


def _safe_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return redact_secrets(value)
    if isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set)):
        return [_safe_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _safe_value(v) for k, v in value.items()}
    try:
        return redact_secrets(str(value))
    except Exception:
        return repr(value)


def log_event(logger, event: str, *, level: str = "info", **fields: Any) -> None:
    """
    Emit a single-line JSON log with a stable `event` key.
    This is best-effort and must never raise.
    """
    try:
        payload: Dict[str, Any] = {"event": event}
        for k, v in fields.items():
            if v is None:
                continue
            payload[str(k)] = _safe_value(v)
        line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        fn = getattr(logger, level, None) or getattr(logger, "info", None)
        if fn:
            fn(line)
    except Exception:
        return


def log_llm_usage(logger, *, op: str, provider: str, model: str, usage: Any) -> None:
    """Token accounting for one completion. Best-effort and must never raise."""
    try:
        u = _safe_value(usage) if usage is not None else {}
        if not isinstance(u, dict):
            u = {"usage": u}
        log_event(
            logger,
            "llm_usage",
            op=op,
            provider=provider,
            model=model,
            prompt_tokens=u.get("prompt_tokens"),
            completion_tokens=u.get("completion_tokens"),
            total_tokens=u.get("total_tokens"),
        )
    except Exception:
        return


def _truncate(value: Any, *, limit: int = 500) -> Any:
    try:
        s = json.dumps(_safe_value(value), ensure_ascii=False)
    except Exception:
        s = repr(value)
    if len(s) <= limit:
        return s
    return s[:limit] + "..."


def trace_span(name: str, *, include_args: bool = False) -> Any:
    """
    Lightweight tracing decorator.
    Emits trace_start/trace_end events via log_event.
    """

    def decorator(fn):
        logger = logging.getLogger(fn.__module__)

        def _start(args, kwargs) -> float:
            payload: Dict[str, Any] = {"span": name}
            if include_args:
                payload["args"] = _truncate(args[1:] if args else args)
                payload["kwargs"] = _truncate(kwargs)
            log_event(logger, "trace_start", level="debug", **payload)
            return time.monotonic()

        def _end(start: float, exc: Exception | None = None) -> None:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            if exc is None:
                log_event(logger, "trace_end", span=name, elapsed_ms=elapsed_ms)
                return
            log_event(
                logger,
                "trace_end",
                level="warning",
                span=name,
                elapsed_ms=elapsed_ms,
                error_type=exc.__class__.__name__,
                error=str(exc),
            )

        if inspect.iscoroutinefunction(fn):

            @wraps(fn)
            async def async_wrapper(*args, **kwargs):
                start = _start(args, kwargs)
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    _end(start, e)
                    raise
                _end(start)
                return result

            return async_wrapper

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = _start(args, kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _end(start, e)
                raise
            _end(start)
            return result

        return wrapper

    return decorator
