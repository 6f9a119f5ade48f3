from __future__ import annotations

import contextvars
import logging
import re
import sys
from typing_extensions import override


request_id_ctx_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    @override
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.request_id = request_id_ctx_var.get()
        return True


_RE_BEARER = re.compile(
    r"(?i)(authorization\s*[:=]\s*bearer\s+)([a-z0-9._~+/=-]+)",
)

# ChittyID OAuth exchanges put these in request/response bodies.
_RE_JSON_OAUTH_TOKENS = re.compile(
    r'(?:(?:"access_token"|"refresh_token"|"id_token")\s*:\s*"([^"]+)")',
    re.IGNORECASE,
)
_RE_PY_OAUTH_TOKENS = re.compile(
    r"(?:'access_token'|'refresh_token'|'id_token')\s*:\s*'([^']+)'",
    re.IGNORECASE,
)
_RE_KV_OAUTH_TOKENS = re.compile(
    r"(?i)\b(access_token|refresh_token|id_token|client_secret)\b\s*=\s*([^\s,;&]+)",
)


def _redact_value(raw: str) -> str:
    return f"[REDACTED len={len(raw)}]"


class RedactingFormatter(logging.Formatter):
    @override
    def format(self, record: logging.LogRecord) -> str:
        out = super().format(record)

        out = _RE_BEARER.sub(r"\1[REDACTED]", out)
        out = _RE_JSON_OAUTH_TOKENS.sub(
            lambda m: m.group(0).replace(m.group(1), _redact_value(m.group(1))), out
        )
        out = _RE_PY_OAUTH_TOKENS.sub(
            lambda m: m.group(0).replace(m.group(1), _redact_value(m.group(1))), out
        )
        out = _RE_KV_OAUTH_TOKENS.sub(lambda m: f"{m.group(1)}={_redact_value(m.group(2))}", out)

        return out


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        RedactingFormatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] [rid=%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Avoid duplicate handlers when app reloads in dev.
    root.handlers = [handler]
