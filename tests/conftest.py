"""Shared fixtures for the portal tests.

Storage runs against an in-memory SQLite database and the REST backend is
replaced with ``FakeBackendClient``, which records calls and serves canned
records.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from portal.auth_module import models  # noqa: F401  registers the storage table
from portal.auth_module.api_client import BackendError
from portal.auth_module.database import Base, engine_options, get_db_session
from portal.auth_module.middleware import get_backend_client
from portal.auth_module.models import UserType
from portal.auth_module.schemas import LoginData
from portal.portal import app

SECRET = "portal-test-secret"


def make_token(exp: int | None = None, **claims: object) -> str:
    """Helper: build a signed JWT carrying the given role claims."""
    payload: dict[str, object] = {"sub": "42", "exp": exp or int(time.time()) + 3600, **claims}
    return pyjwt.encode(payload, SECRET, algorithm="HS256")


@dataclass
class FakeSession:
    user_type: UserType | None = None
    is_authenticated: bool = False
    loading: bool = False


def signed_in(user_type: UserType) -> FakeSession:
    return FakeSession(user_type=user_type, is_authenticated=True)


class FakeBackendClient:
    def __init__(self) -> None:
        self.accounts: dict[tuple[UserType, str], LoginData] = {}
        self.records: dict[str, list[dict[str, Any]]] = {}
        self.mood_logs: list[dict[str, Any]] = []
        self.stats: dict[str, Any] = {}
        self.failures: dict[str, BackendError] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.register_token = make_token(type="school")

    def _check(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def add_account(self, user_type: UserType, user: dict[str, Any], token: str) -> None:
        self.accounts[(user_type, user["email"])] = LoginData(user=user, token=token)

    def login(self, user_type: UserType, email: str, password: str) -> LoginData:
        self.calls.append(("login", user_type, email))
        self._check("login")
        try:
            return self.accounts[(user_type, email)]
        except KeyError:
            raise BackendError(401, "Invalid credentials") from None

    def register(self, user_type: UserType, payload: dict[str, Any]) -> LoginData:
        self.calls.append(("register", user_type, payload))
        self._check("register")
        user = {k: v for k, v in payload.items() if k != "password"}
        return LoginData(user={"id": 7, **user}, token=self.register_token)

    def list_records(self, resource: str, *, token: str | None = None, params: dict | None = None) -> list[dict]:
        self.calls.append(("list", resource, params))
        self._check("list")
        return list(self.records.get(resource, []))

    def create_record(self, resource: str, payload: dict[str, Any], *, token: str | None = None) -> dict:
        self.calls.append(("create", resource, payload))
        self._check("create")
        return {"id": 99, **payload}

    def update_record(self, resource: str, record_id: Any, payload: dict[str, Any], *, token: str | None = None) -> dict:
        self.calls.append(("update", resource, record_id, payload))
        self._check("update")
        return {"id": record_id, **payload}

    def delete_record(self, resource: str, record_id: Any, *, token: str | None = None) -> None:
        self.calls.append(("delete", resource, record_id))
        self._check("delete")

    def student_mood_logs(self, student_id: Any, *, token: str | None = None, date_from: str | None = None) -> list[dict]:
        self.calls.append(("mood_logs", student_id, date_from))
        self._check("mood_logs")
        return list(self.mood_logs)

    def school_stats(self, *, token: str | None = None) -> dict:
        self.calls.append(("stats",))
        self._check("stats")
        return dict(self.stats)


@pytest.fixture
def db_engine():
    engine = create_engine("sqlite://", **engine_options("sqlite://"))
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def backend() -> FakeBackendClient:
    return FakeBackendClient()


@pytest.fixture
def client(session_factory, backend):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_backend_client] = lambda: backend
    yield TestClient(app, follow_redirects=False)
    app.dependency_overrides.clear()


def login_as(client: TestClient, backend: FakeBackendClient, user_type: UserType, user: dict, token: str):
    """Register an account with the fake backend and sign in through the form."""
    backend.add_account(user_type, user, token)
    login_path = "/login" if user_type is UserType.ADMIN else f"/{user_type.value}/login"
    return client.post(login_path, data={"email": user["email"], "password": "secret1"})
