"""Shared request pipeline for the market, news and price services.

Every orchestrated call goes through the same steps:

    check cache -> (hit) return cached
                -> (miss) queue -> retry -> validate -> cache -> return fresh
                                         +-> any failure -> return fallback

A ConfigurationError (no credential) is the only exception that escapes;
everything else ends in a ServiceResult whose source says which branch
produced the value.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, TypeVar

from cryptoflow.domain.events.api_events import FallbackReturned, dispatch_event
from cryptoflow.domain.exceptions import ConfigurationError, MalformedResponseError
from cryptoflow.domain.interfaces.cache import CacheService
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.common import CacheKey, ModelName, ResultSource, ServiceResult
from cryptoflow.infrastructure.ai.client_provider import AIClientProvider
from cryptoflow.infrastructure.resilience.api_retry import ApiRetryService
from cryptoflow.infrastructure.resilience.serial_queue import SerialExecutionQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_json_content(content: str) -> Any:
    """Parses the model's JSON answer, tolerating a surrounding ``` fence.

    Raises:
        MalformedResponseError: If the text is empty or not valid JSON.
    """
    text = (content or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    if not text:
        raise MalformedResponseError("Empty response body.")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e


def require_text(data: Dict[str, Any], field_name: str) -> str:
    """Returns a non-empty string field or raises MalformedResponseError."""
    value = data.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise MalformedResponseError(f"Missing required field '{field_name}'.")
    return value.strip()


def optional_text(data: Dict[str, Any], field_name: str, default: Optional[str] = None) -> Optional[str]:
    value = data.get(field_name)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


class RequestOrchestrator:
    """Base class wiring cache, queue, retry policy and AI client together."""

    def __init__(
        self,
        client_provider: AIClientProvider,
        cache_service: CacheService,
        request_queue: SerialExecutionQueue,
        retry_service: ApiRetryService,
        model: Optional[str] = None,
        search_model: Optional[str] = None,
    ):
        """Initializes the orchestrator with its shared collaborators.

        Args:
            client_provider: Lazily configured AI client accessor.
            cache_service: Durable cache for normalized results.
            request_queue: The single serial lane shared by all orchestrators.
            retry_service: Rate-limit retry policy run inside a queue slot.
            model: Model name for structured requests (client default if None).
            search_model: Model name for grounded requests (client default if None).
        """
        self.client_provider = client_provider
        self.cache_service = cache_service
        self.request_queue = request_queue
        self.retry_service = retry_service
        self.model = ModelName(model or "")
        self.search_model = ModelName(search_model or "")

    async def _resolve(
        self,
        cache_key: CacheKey,
        build_request: Callable[[], GenerationRequest],
        normalize: Callable[[StructuredAIResponse], T],
        serialize: Callable[[T], Any],
        restore: Callable[[Any], T],
        fallback: Callable[[], T],
    ) -> ServiceResult[T]:
        """Runs one orchestrated request.

        Args:
            cache_key: Versioned key for this logical request.
            build_request: Creates the upstream request on a cache miss.
            normalize: Validates the response and builds the entity; raises on
                malformed or empty results.
            serialize: Entity -> JSON-compatible cache payload.
            restore: Cache payload -> entity.
            fallback: Produces the documented fallback value.

        Raises:
            ConfigurationError: If a live call is needed and no credential is set.
        """
        cached = await self.cache_service.get(cache_key)
        if cached is not None:
            try:
                value = restore(cached)
                logger.debug(f"Returning cached result for {cache_key}")
                return ServiceResult(value=value, source=ResultSource.CACHE)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Cached payload for {cache_key} has an unexpected shape ({e}); refetching.")
                await self.cache_service.delete(cache_key)

        # Raises ConfigurationError before anything is queued
        ai_model = self.client_provider.get_client()
        request = build_request()

        async def attempt() -> StructuredAIResponse:
            return await self.retry_service.execute_with_retry(
                ai_model.generate, request, endpoint_name=str(cache_key)
            )

        try:
            response = await self.request_queue.submit(attempt)
            value = normalize(response)
        except ConfigurationError:
            raise
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning(f"Request for {cache_key} failed, returning fallback. {reason}")
            dispatch_event(FallbackReturned(cache_key=str(cache_key), reason=reason))
            return ServiceResult(value=fallback(), source=ResultSource.FALLBACK, error=reason)

        await self.cache_service.set(cache_key, serialize(value))
        return ServiceResult(value=value, source=ResultSource.FRESH)
