"""Pytest configuration and shared fixtures"""
import json
import time
from types import SimpleNamespace

import fakeredis
import fakeredis.aioredis
import pytest
from fastapi.testclient import TestClient

from app.core.auth import create_access_token
from app.core.config import Settings
from app.core.redis import RedisClient
from app.main import create_app
from app.services.cache import CacheService

CV_TEXT = (
    "Senior Python developer with eight years of experience building FastAPI "
    "services, PostgreSQL schemas and AWS deployments. MSc in Computer Science."
)
JOB_REQUIREMENTS = "5+ years of Python, FastAPI, SQL and cloud experience"

CV_RESULT = {
    "score": 82,
    "strengths": ["Python", "FastAPI"],
    "weaknesses": ["No Kubernetes"],
    "recommendations": ["Ask about scaling"],
    "keySkills": ["python", "fastapi", "aws"],
    "experience": {"years": 8, "relevantExperience": ["Backend services"]},
    "education": {"degree": "MSc Computer Science", "relevantCourses": []},
    "summary": "Strong backend candidate",
    "matchPercentage": 78,
}


class FakeCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``.

    Each call consumes the next scripted response; the last one repeats.
    A scripted exception is raised instead of returned.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        item = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        if not isinstance(item, str) and item is not None:
            item = json.dumps(item)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=item))])


class FakeOpenAI:
    def __init__(self, *responses):
        self.chat = SimpleNamespace(completions=FakeCompletions(responses or [CV_RESULT]))

    def respond(self, *responses):
        """Replace the scripted responses and reset the call log."""
        self.chat.completions.responses = list(responses)
        self.chat.completions.calls = []

    @property
    def calls(self):
        return self.chat.completions.calls


@pytest.fixture
def test_settings():
    """Test settings override"""
    return Settings(
        _env_file=None,
        openai_api_key="test-openai-key",
        secret_key="test-secret-key-for-testing-only",
        environment="test",
        ai_max_retries=3,
        ai_backoff_seconds=0,
        queue_backoff_seconds=0,
        queue_poll_interval=0.05,
        batch_delay_seconds=0,
        rate_limit_enabled=False,
    )


@pytest.fixture
def redis_client():
    """RedisClient over an isolated in-memory server"""
    fake = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return RedisClient(client=fake)


@pytest.fixture
def cache(redis_client, test_settings):
    return CacheService(
        redis_client,
        key_prefix=test_settings.cache_key_prefix,
        default_ttl=test_settings.cache_default_ttl,
    )


@pytest.fixture
def openai_client():
    return FakeOpenAI(CV_RESULT)


# ---------- HTTP surface ----------
@pytest.fixture
def app(test_settings, redis_client, openai_client):
    """Application wired to the in-memory Redis and the scripted OpenAI client"""
    return create_app(settings=test_settings, redis_client=redis_client, openai_client=openai_client)


@pytest.fixture
def client(app):
    """Create test client; the lifespan (and the queue workers) run inside the block"""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(test_settings):
    def make(user_id="user-1", role="user"):
        token = create_access_token({"sub": user_id, "role": role}, test_settings)
        return {"Authorization": f"Bearer {token}"}

    return make


def poll_until_done(client, poll_url, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(poll_url).json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.05)
    raise AssertionError(f"{poll_url} did not finish within {timeout}s")
