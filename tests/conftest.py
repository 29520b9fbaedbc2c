"""Pytest configuration and shared fixtures.

Puts ``backend/`` on ``sys.path`` so tests import the ``mediagen`` package
regardless of how pytest is invoked, and points the settings at throwaway
resources before any mediagen module is imported.
"""
import asyncio
import os
import sys
import tempfile
import uuid

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("MEDIA_VOLUME", tempfile.mkdtemp(prefix="mediagen-media-"))
os.environ.setdefault("MEDIA_BASE_URL", "http://testserver/media")
os.environ["NOTIFY_PUBSUB_ENABLED"] = "false"
os.environ["USE_MOCK_API"] = "true"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from mediagen.database import build_engine, build_session_factory, init_db  # noqa: E402
from mediagen.models.generation_task import MediaKind, TaskStatus  # noqa: E402
from mediagen.services.credit_ledger import CreditLedger  # noqa: E402
from mediagen.services.notifier import Notifier  # noqa: E402
from mediagen.services.providers.base import (  # noqa: E402
    GenerationProvider,
    ProviderTaskResult,
    SubmitParams,
    SubmitResult,
)
from mediagen.services.providers.registry import ProviderRegistry  # noqa: E402
from mediagen.services.task_store import TaskStore  # noqa: E402


class FakeProvider(GenerationProvider):
    """Scripted provider: per-job queues of results or exceptions.

    ``hold(job_id)`` blocks queries for that job until ``release(job_id)``.
    """

    name = "fake"
    media_kinds = frozenset(MediaKind)

    def __init__(self):
        super().__init__()
        self.outcomes: dict[str, list] = {}
        self.default = self.processing()
        self.query_calls: list[str] = []
        self.submitted: list[SubmitParams] = []
        self.submit_error: Exception | None = None
        self.submit_job_id: str | None = "fake-job-1"
        self._gates: dict[str, asyncio.Event] = {}

    # -- result builders --

    @staticmethod
    def processing(progress: int = 50) -> ProviderTaskResult:
        return ProviderTaskResult(
            status=TaskStatus.PROCESSING, info={"status": "running", "progress": progress}
        )

    @staticmethod
    def pending() -> ProviderTaskResult:
        return ProviderTaskResult(status=TaskStatus.PENDING, info={"status": "queued"})

    @staticmethod
    def success(url: str = "https://cdn.provider.example/out/video.mp4", hosted: bool = True) -> ProviderTaskResult:
        return ProviderTaskResult(
            status=TaskStatus.SUCCESS,
            info={"status": "succeeded", "videos": [{"url": url}]},
            result={"provider_hosted": hosted, "video_urls": [url], "image_urls": []},
        )

    @staticmethod
    def failed(message: str = "content policy violation") -> ProviderTaskResult:
        return ProviderTaskResult(
            status=TaskStatus.FAILED, info={"status": "failed", "error_message": message}
        )

    # -- scripting --

    def script(self, job_id: str, *outcomes) -> None:
        self.outcomes.setdefault(job_id, []).extend(outcomes)

    def hold(self, job_id: str) -> None:
        self._gates[job_id] = asyncio.Event()

    def release(self, job_id: str) -> None:
        self._gates.pop(job_id).set()

    async def submit(self, params: SubmitParams) -> SubmitResult:
        self.submitted.append(params)
        if self.submit_error is not None:
            raise self.submit_error
        return SubmitResult(external_job_id=self.submit_job_id)

    async def query(self, external_job_id, media_kind, model) -> ProviderTaskResult:
        self.query_calls.append(external_job_id)
        gate = self._gates.get(external_job_id)
        if gate is not None:
            await gate.wait()
        queue = self.outcomes.get(external_job_id)
        outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'mediagen.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return TaskStore(session_factory)


@pytest.fixture
def ledger(session_factory):
    return CreditLedger(session_factory)


@pytest.fixture
def notifier(session_factory):
    return Notifier(session_factory, publish_enabled=False)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry(provider):
    registry = ProviderRegistry(defaults={"video": "fake", "image": "fake", "music": "fake"})
    registry.register(provider)
    return registry


@pytest.fixture
def make_task(store):
    """Factory creating a submitted task (external job id set) in the store."""

    async def _make(**overrides):
        fields = {
            "user_id": "user-1",
            "media_kind": MediaKind.VIDEO.value,
            "provider": "fake",
            "model": "fake-video-1",
            "scene": "text-to-video",
            "prompt": "a corgi surfing a wave at sunset",
            "status": TaskStatus.PENDING.value,
            "external_job_id": f"job-{uuid.uuid4().hex[:8]}",
            "cost_credits": 1,
        }
        fields.update(overrides)
        return await store.create(**fields)

    return _make
