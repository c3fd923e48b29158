import itertools
import json
import os
import tempfile

# Keep config.json / tracker.log / store.json out of the user's real app folder.
os.environ.setdefault("TRACKER_AGENT_HOME", tempfile.mkdtemp(prefix="tracker-agent-tests-"))

import pytest

from tracker_core import api, auth
from tracker_core.api import ApiResponse
from tracker_core.config import with_defaults
from tracker_core.constants import EMAIL_KEY, PASSWORD_KEY, LOGIN_ENABLED_KEY
from tracker_core.errors import CredentialsMissing
from tracker_core.models import AuthTokens
from tracker_core.store import MemoryStore
from tracker_core.tracker import TrackerEngine


class FakeLoop:
    """Main context stand-in: call_soon runs inline, timers fire on demand."""

    def __init__(self):
        self.timers = {}
        self._ids = itertools.count(1)

    def after(self, delay_ms, func, *args):
        job_id = f"job{next(self._ids)}"
        self.timers[job_id] = (delay_ms, func, args)
        return job_id

    def after_cancel(self, job_id):
        self.timers.pop(job_id, None)

    def call_soon(self, func, *args):
        func(*args)

    def fire_timers(self):
        for job_id in list(self.timers):
            job = self.timers.pop(job_id, None)
            if job is not None:
                _, func, args = job
                func(*args)


class Workers:
    """spawn() replacement: workers are queued and run when the test says so."""

    def __init__(self):
        self.pending = []

    def __call__(self, target):
        self.pending.append(target)

    def __len__(self):
        return len(self.pending)

    def run_next(self):
        self.pending.pop(0)()

    def run_all(self):
        while self.pending:
            self.run_next()


class FakeService:
    """Replaces auth.ensure_session and api.send_request."""

    def __init__(self):
        self.calls = []
        self.auth_calls = 0
        self.auth_error = None
        self.reject_cached = False       # server-side session expiry
        self.failures = {}
        self.status_body = json.dumps({"currentState": "STOPPED"})

    def ensure_session(self, config, credentials, cached_tokens=None):
        if cached_tokens is not None and cached_tokens.is_valid and not self.reject_cached:
            return cached_tokens
        if not credentials.is_valid:
            raise CredentialsMissing()
        self.auth_calls += 1
        if self.auth_error is not None:
            raise self.auth_error
        return AuthTokens("csrf-1", "session-1")

    def send_request(self, config, route, tokens):
        self.calls.append(route.label)
        error = self.failures.get(route.label)
        if error is not None:
            raise error
        body = self.status_body if route.label == "status" else "{}"
        return ApiResponse(200, body)


@pytest.fixture
def config():
    return with_defaults({"baseUrl": "https://acme.example.io"})


@pytest.fixture
def service(monkeypatch):
    fake = FakeService()
    monkeypatch.setattr(auth, "ensure_session", fake.ensure_session)
    monkeypatch.setattr(api, "send_request", fake.send_request)
    return fake


@pytest.fixture
def signed_in_store():
    return MemoryStore({
        EMAIL_KEY: "user@example.com",
        PASSWORD_KEY: "secret",
        LOGIN_ENABLED_KEY: True,
    })


@pytest.fixture
def make_engine(config, service):
    def factory(store=None):
        loop = FakeLoop()
        workers = Workers()
        engine = TrackerEngine(config, store if store is not None else MemoryStore(), loop, spawn=workers)
        return engine, loop, workers
    return factory
