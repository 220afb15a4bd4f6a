# Overview: Request-context decorators for API routes.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify, g

from .validation import MAX_INTEGER

ACTOR_HEADER = "X-Actor-Id"


@dataclass(frozen=True)
class RequestContext:
    """Who is making the call. Passed explicitly into every mutating service call."""
    actor_id: int
    remote_addr: str | None = None


def _parse_actor_id(raw: str | None) -> int | None:
    if raw is None:
        return None
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    actor_id = int(raw)
    return actor_id if 0 < actor_id <= MAX_INTEGER else None


def require_actor(f):
    """
    Require an identified caller and establish the request context.

    Sets g.request_context (RequestContext). Identity itself is established
    upstream (gateway / session layer); this only refuses anonymous calls
    so no mutation is ever attributed to a default actor.

    Returns 401 if the X-Actor-Id header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = _parse_actor_id(request.headers.get(ACTOR_HEADER))
        if actor_id is None:
            return jsonify({"error": f"{ACTOR_HEADER} header with a positive integer is required"}), 401

        g.request_context = RequestContext(actor_id=actor_id, remote_addr=request.remote_addr)
        return f(*args, **kwargs)

    return decorated_function
