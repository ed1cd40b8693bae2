"""Tests for actor resolution from trusted gateway headers."""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI

from agenda.api.auth import TrustedHeaderActorMiddleware, actor_from_headers, require_actor
from agenda.api.middleware import register_error_handlers
from agenda.calendar.policy import Actor, Role
from agenda.core.logging import get_actor_context
from tests.api.conftest import client_for

pytestmark = pytest.mark.unit


class TestActorFromHeaders:
    def test_full_headers(self):
        actor = actor_from_headers(
            {"X-User-Id": "7", "X-User-Role": "service_manager", "X-Service-Id": "3"}
        )
        assert actor == Actor(id=7, role=Role.SERVICE_MANAGER, service_id=3)

    def test_missing_user_id(self):
        assert actor_from_headers({"X-User-Role": "ADMIN"}) is None

    def test_non_numeric_user_id(self):
        assert actor_from_headers({"X-User-Id": "seven", "X-User-Role": "ADMIN"}) is None

    def test_user_id_outside_integer_range(self):
        assert actor_from_headers({"X-User-Id": "2147483648", "X-User-Role": "ADMIN"}) is None

    def test_service_id_outside_integer_range_rejects_actor(self):
        headers = {"X-User-Id": "7", "X-User-Role": "EMPLOYEE", "X-Service-Id": "-2147483649"}
        assert actor_from_headers(headers) is None

    def test_malformed_service_id_rejects_actor(self):
        headers = {"X-User-Id": "7", "X-User-Role": "EMPLOYEE", "X-Service-Id": "x"}
        assert actor_from_headers(headers) is None

    def test_missing_role_is_unknown(self):
        actor = actor_from_headers({"X-User-Id": "7"})
        assert actor.role is Role.UNKNOWN
        assert actor.service_id is None


class TestTrustedHeaderMiddleware:
    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        register_error_handlers(app)
        app.add_middleware(TrustedHeaderActorMiddleware)

        @app.get("/whoami")
        async def whoami(actor: Actor = Depends(require_actor)):
            return {"id": actor.id, "role": actor.role, "context": get_actor_context()}

        return app

    async def test_attaches_actor(self, app):
        async with client_for(app) as client:
            resp = await client.get("/whoami", headers={"X-User-Id": "4", "X-User-Role": "ADMIN"})

        assert resp.status_code == 200
        assert resp.json() == {"id": 4, "role": "ADMIN", "context": 4}

    async def test_require_actor_fails_closed(self, app):
        async with client_for(app) as client:
            resp = await client.get("/whoami")

        assert resp.status_code == 401
        assert resp.json()["code"] == "AUTH_CONTEXT_MISSING"
