import asyncio
import json
from pathlib import Path
from typing import Any, List

import pytest
from unittest.mock import MagicMock
from typer.testing import CliRunner
from openai import RateLimitError

from cryptoflow.domain.interfaces.ai_model import AIModel
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.market import SourceLink
from cryptoflow.infrastructure.ai.client_provider import AIClientProvider
from cryptoflow.infrastructure.cache.caching_service import PersistentCache
from cryptoflow.infrastructure.config import settings
from cryptoflow.infrastructure.resilience.api_retry import ApiRetryService
from cryptoflow.infrastructure.resilience.serial_queue import SerialExecutionQueue


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records the requested delay and only yields once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class ScriptedAIModel(AIModel):
    """AIModel returning (or raising) scripted outcomes in order; the last one repeats.

    Also tracks how many generate() calls are in flight at once.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.requests: List[GenerationRequest] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, request: GenerationRequest) -> StructuredAIResponse:
        self.requests.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.active -= 1


def json_response(payload: Any, sources: List[SourceLink] = None) -> StructuredAIResponse:
    return StructuredAIResponse(content=json.dumps(payload, ensure_ascii=False), sources=sources or [])


def rate_limit_error() -> RateLimitError:
    return RateLimitError("Rate limit exceeded", response=MagicMock(status_code=429), body=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def cache(tmp_path: Path, clock: FakeClock) -> PersistentCache:
    return PersistentCache(cache_dir=tmp_path / "cache", ttl_seconds=7200, clock=clock)


@pytest.fixture
def request_queue(recording_sleep: RecordingSleep) -> SerialExecutionQueue:
    return SerialExecutionQueue(cooldown_seconds=2.0, sleep=recording_sleep)


@pytest.fixture
def retry_service(recording_sleep: RecordingSleep) -> ApiRetryService:
    return ApiRetryService(max_retries=3, initial_backoff_s=5.0, sleep=recording_sleep)


@pytest.fixture
def ai_model() -> ScriptedAIModel:
    """Default model: always fails with a non rate-limit error. Tests override outcomes."""
    return ScriptedAIModel(RuntimeError("upstream unavailable"))


@pytest.fixture
def client_provider(ai_model: ScriptedAIModel) -> AIClientProvider:
    provider = AIClientProvider(client_factory=lambda **kwargs: ai_model)
    provider.configure("test-key")
    return provider


@pytest.fixture
def make_service(client_provider, cache, request_queue, retry_service):
    """Builds an orchestrator of the given class wired to the shared test fixtures."""
    def _make(service_cls, provider: AIClientProvider = None):
        return service_cls(
            client_provider=provider or client_provider,
            cache_service=cache,
            request_queue=request_queue,
            retry_service=retry_service,
            model="test-model",
            search_model="test-search-model",
        )
    return _make


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolate_test_config():
    """Ensures test configuration overrides never leak between tests."""
    yield
    settings.clear_test_config()
