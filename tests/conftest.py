"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - RecordingNotifier: in-memory Notifier double; can be told to fail
  - FakeClock: controllable epoch-seconds clock for challenge expiry
  - store / service: unit-level fixtures over an isolated in-memory DB
  - client: TestClient wired to a test AuthService via a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for
the HTTP fixtures because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process; a uuid in the name isolates
tests from each other.

The DEBUG env var must be set before any app import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.notifier import NotificationError
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import PasswordHasher, SecretGenerator, SessionIssuer

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"

# Minimum bcrypt cost -- keeps the suite fast; production default is 12.
TEST_BCRYPT_ROUNDS = 4

START_TIME = 1_700_000_000


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


@dataclass
class SentMessage:
    to: str
    subject: str
    body: str


@dataclass
class RecordingNotifier:
    """Collects messages instead of sending them. Set fail=True to simulate an outage."""

    messages: list[SentMessage] = field(default_factory=list)
    fail: bool = False

    def send(self, to_address: str, subject: str, body: str) -> None:
        if self.fail:
            raise NotificationError("simulated outage")
        self.messages.append(SentMessage(to_address, subject, body))

    def last_for(self, to_address: str) -> SentMessage:
        return [m for m in self.messages if m.to == to_address][-1]

    def last_code(self, to_address: str) -> str:
        """Extract the six-digit code from the latest 2FA message."""
        msg = [m for m in self.messages if m.to == to_address and m.subject == "Your 2FA Code"][-1]
        return re.search(r"\b(\d{6})\b", msg.body).group(1)

    def last_reset_token(self, to_address: str) -> str:
        msg = [m for m in self.messages if m.to == to_address and m.subject == "Password reset"][-1]
        return re.search(r"reset your password: (\S+)\.", msg.body).group(1)


class FakeClock:
    """Callable clock returning a fixed epoch time until advanced."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def shared_memory_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_service(store: UserStore, notifier: RecordingNotifier, clock: FakeClock) -> AuthService:
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=TEST_BCRYPT_ROUNDS),
        secrets=SecretGenerator(),
        sessions=SessionIssuer(TEST_SECRET_KEY, expire_seconds=3600),
        notifier=notifier,
        clock=clock,
    )


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test service into app.state so TestClient routes see
    the isolated store and the recording notifier.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(shared_memory_url())
    yield s
    s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, notifier, clock) -> AuthService:
    return make_service(store, notifier, clock)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(service) -> Generator[TestClient, None, None]:
    """TestClient over the real app with the test service and a fresh rate-limit window."""
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client
    limiter.reset()
