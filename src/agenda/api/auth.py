"""Actor resolution from trusted gateway headers.

Authentication itself happens upstream. When the gateway in front of this
service is trusted, ``TrustedHeaderActorMiddleware`` turns its identity
headers into ``request.state.actor``. Missing or malformed headers attach no
actor, which the calendar core rejects with ``AuthContextMissing``.
"""

from __future__ import annotations

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from agenda.calendar.errors import AuthContextMissing
from agenda.calendar.policy import Actor
from agenda.calendar.query import INT4_MAX, INT4_MIN
from agenda.core.logging import set_actor_context

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"
SERVICE_ID_HEADER = "X-Service-Id"


def _parse_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed if INT4_MIN <= parsed <= INT4_MAX else None


def actor_from_headers(headers) -> Actor | None:  # noqa: ANN001
    """Build an ``Actor`` from identity headers, or ``None`` when unusable."""
    user_id = _parse_int(headers.get(USER_ID_HEADER))
    if user_id is None:
        return None
    raw_service = headers.get(SERVICE_ID_HEADER)
    service_id = _parse_int(raw_service)
    if raw_service and service_id is None:
        logger.warning("Ignoring malformed %s header", SERVICE_ID_HEADER)
        return None
    return Actor.from_claims(user_id, headers.get(ROLE_HEADER), service_id)


class TrustedHeaderActorMiddleware(BaseHTTPMiddleware):
    """Attach ``request.state.actor`` from gateway-provided headers."""

    async def dispatch(self, request: Request, call_next):
        actor = actor_from_headers(request.headers)
        if actor is not None:
            request.state.actor = actor
            set_actor_context(actor.id)
        return await call_next(request)


def get_actor(request: Request) -> Actor | None:
    """FastAPI dependency: the actor attached by the auth layer, if any."""
    return getattr(request.state, "actor", None)


def require_actor(request: Request) -> Actor:
    """FastAPI dependency: like ``get_actor`` but fails closed."""
    actor = get_actor(request)
    if actor is None:
        raise AuthContextMissing()
    return actor
