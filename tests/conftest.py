"""
Test fixtures for Dreamy Classroom.

Provides app and client fixtures with file-based SQLite, plus in-memory
stand-ins for the remote row store, the scheduler and the debounce timer so
sync behaviour can be driven step by step. Gemini is mocked globally to avoid
API calls during tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.jobstores.base import JobLookupError

from remote_store import RemoteUnavailable, ShareCodeNotFound

MOCK_AI_TEXT = "칭찬 스티커 릴레이를 해보세요!"


@pytest.fixture(scope="session", autouse=True)
def mock_gemini():
    """Mock Google Generative AI globally to prevent API calls."""
    genai = MagicMock()
    genai.GenerativeModel.return_value.generate_content.return_value = MagicMock(text=MOCK_AI_TEXT)

    with patch.dict("sys.modules", {
        "google.generativeai": genai,
    }):
        yield genai


@pytest.fixture(autouse=True)
def reset_ai_state():
    """Circuit breaker and cache are module singletons; isolate each test."""
    from ai_resilience import get_cache, get_circuit_breaker

    get_cache().clear()
    get_circuit_breaker()._providers.clear()
    yield
    get_cache().clear()
    get_circuit_breaker()._providers.clear()


# ── Fakes ──────────────────────────────────────────────────


class FakeRemoteStore:
    """Dict-backed row store shared between simulated devices."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.upserts: list[tuple[str, str]] = []  # (code, lastSync)
        self.fetches: list[str] = []
        self.fail = False

    def upsert(self, code, snapshot):
        if self.fail:
            raise RemoteUnavailable("backend offline")
        self.rows[code] = snapshot.to_dict()
        self.upserts.append((code, snapshot.last_sync))

    def fetch(self, code):
        from models import ClassData

        self.fetches.append(code)
        if self.fail:
            raise RemoteUnavailable("backend offline")
        if code not in self.rows:
            raise ShareCodeNotFound(code)
        try:
            return ClassData.from_dict(self.rows[code])
        except ValueError as e:
            raise RemoteUnavailable(f"Malformed snapshot for {code!r}: {e}") from e


class ManualDebouncer:
    """Debounce timer that only fires when the test says so."""

    def __init__(self):
        self.func = None
        self.schedule_count = 0

    @property
    def pending(self):
        return self.func is not None

    def schedule(self, func):
        self.func = func
        self.schedule_count += 1

    def cancel(self):
        self.func = None

    def fire(self):
        func, self.func = self.func, None
        return func() if func is not None else None


class FakeScheduler:
    """Records jobs the way BackgroundScheduler would, without running them."""

    def __init__(self):
        self.jobs: dict[str, dict] = {}
        self.running = False

    def add_job(self, func=None, trigger=None, id=None, replace_existing=False, **kwargs):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"Job {id} already exists")
        self.jobs[id] = {"func": func, "trigger": trigger, **kwargs}
        return SimpleNamespace(id=id)

    def get_job(self, job_id):
        return SimpleNamespace(id=job_id) if job_id in self.jobs else None

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run(self, job_id):
        return self.jobs[job_id]["func"]()


class SteppingClock:
    """Returns a later instant on every call."""

    def __init__(self, start=datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc), step=timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self):
        now = self.current
        self.current = now + self.step
        return now


# ── Fixtures ───────────────────────────────────────────────


@pytest.fixture
def db_path(tmp_path):
    from database import init_db

    path = str(tmp_path / "classroom.db")
    init_db(path)
    return path


@pytest.fixture
def local_store(db_path):
    from local_store import LocalStore

    store = LocalStore(db_path)
    yield store
    store.close()


@pytest.fixture
def classroom(local_store):
    from classroom_store import ClassroomStore

    return ClassroomStore(local_store)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def make_device(tmp_path, remote):
    """Build an independent device (own SQLite file) sharing ``remote``."""
    from classroom_store import ClassroomStore
    from database import init_db
    from local_store import LocalStore
    from remote_store import RemoteLink
    from sync_history import SyncHistory
    from sync_reconciler import SyncReconciler
    from timestamps import SyncClock

    opened = []
    counter = iter(range(1000))

    def _make(name=None, *, connected=True, codes=None, clock=None):
        name = name or f"device{next(counter)}"
        path = str(tmp_path / f"{name}.db")
        init_db(path)
        local = LocalStore(path)
        history = SyncHistory(path)
        opened.extend([local, history])
        sched = FakeScheduler()
        link = RemoteLink(local, sched, store_factory=lambda url, key, table: remote)
        if connected:
            assert link.configure("https://example.supabase.co", "anon-key")
        classroom = ClassroomStore(local)
        debouncer = ManualDebouncer()
        code_iter = iter(codes or ["푸른하늘-1234"])
        reconciler = SyncReconciler(
            classroom,
            link,
            debouncer,
            history=history,
            clock=SyncClock(now=clock or SteppingClock()),
            code_generator=lambda: next(code_iter),
        )
        return SimpleNamespace(
            name=name,
            local=local,
            history=history,
            scheduler=sched,
            link=link,
            classroom=classroom,
            debouncer=debouncer,
            reconciler=reconciler,
        )

    yield _make
    for resource in opened:
        resource.close()


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app
    from extensions import get_services

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
    })

    with app.app_context():
        yield app
        get_services().shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    from extensions import get_services

    return get_services()
