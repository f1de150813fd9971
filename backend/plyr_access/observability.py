"""
Structured log context shared by the HTTP layer, the entitlement session and
the subscription fetcher.

The request middleware binds the request id and path for the lifetime of a
request. `log_ctx` picks them up when present, so an access evaluation logged
from inside a handler carries the request id while a long-lived session logs
the same shape without one.
"""

import json
import time
from contextvars import ContextVar, Token
from typing import Any, Optional
from uuid import uuid4

from fastapi import Request


REQUEST_ID_HEADER = "X-Request-Id"
REQUEST_ID_MAX_LEN = 128

_BOUND_REQUEST: ContextVar[Optional[dict[str, str]]] = ContextVar("plyr_access_request", default=None)


def new_request_id() -> str:
    return str(uuid4())


def resolve_request_id(header_value: Optional[str]) -> Optional[str]:
    """Id to use for a request: a fresh one when absent, the trimmed header when usable, else None."""
    if header_value is None:
        return new_request_id()
    candidate = header_value.strip()
    if not candidate or len(candidate) > REQUEST_ID_MAX_LEN:
        return None
    return candidate


def request_id_of(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    return request_id if isinstance(request_id, str) else ""


def bind_request(request_id: str, path: str) -> Token:
    return _BOUND_REQUEST.set({"request_id": request_id, "path": path})


def unbind_request(token: Token) -> None:
    _BOUND_REQUEST.reset(token)


def log_ctx(user_id: Optional[Any] = None, extra: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    context: dict[str, Any] = dict(_BOUND_REQUEST.get() or {})
    if user_id is not None:
        context["user_id"] = str(user_id)
    for key, value in (extra or {}).items():
        if value is not None:
            context[key] = value
    return context


def log_ctx_json(context: dict[str, Any]) -> str:
    return json.dumps(context, separators=(",", ":"), ensure_ascii=False, default=str)


def duration_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)
