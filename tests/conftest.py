import pytest
from fastapi.testclient import TestClient

from chefstacks.app.api.deps import get_orchestrator
from chefstacks.app.core.config import Settings
from chefstacks.app.main import create_app


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        MEMORIES_API_KEY="test-key",
        MEMORIES_BASE_URL="https://video.test/api",
        YOUTUBE_API_KEY=None,
        VIDEO_POLL_INTERVAL_SECONDS=10,
        VIDEO_POLL_CEILING_SECONDS=600,
    )


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def app():
    app = create_app()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def override_orchestrator(app):
    def _override(orchestrator):
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return orchestrator

    return _override
