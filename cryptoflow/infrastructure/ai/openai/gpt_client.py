"""Concrete implementation of the AIModel interface using the OpenAI API.

Hides the specifics of the OpenAI client library and translates requests/
responses between the domain model and the OpenAI API format. Structured
answers use json_schema response formats; grounded answers use a search
model with web_search_options, whose url_citation annotations become
SourceLinks.
"""

import logging
import os
import asyncio
import time
from typing import Any, Dict, List, Optional

from openai import OpenAI

from cryptoflow.domain.exceptions import MalformedResponseError
from cryptoflow.domain.interfaces.ai_model import AIModel
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.common import TokenUsage
from cryptoflow.domain.models.market import SourceLink

logger = logging.getLogger(__name__)


class GptClient(AIModel):
    """OpenAI implementation of the AIModel interface."""

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_SEARCH_MODEL = "gpt-4o-mini-search-preview"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        search_model: Optional[str] = None,
    ):
        """Initializes the OpenAI client.

        Args:
            api_key: OpenAI API key. Reads from OPENAI_API_KEY env var if None.
            model: Model used when a request does not name one.
            search_model: Model used for grounded requests that do not name one.
        """
        effective_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not effective_api_key:
            raise ValueError("OpenAI API key not provided and not found in environment variables.")

        self.client = OpenAI(api_key=effective_api_key)
        self.model = model or self.DEFAULT_MODEL
        self.search_model = search_model or self.DEFAULT_SEARCH_MODEL
        logger.info(f"GptClient initialized for model: {self.model} (search: {self.search_model})")

    def _build_params(self, request: GenerationRequest) -> Dict[str, Any]:
        """Maps a GenerationRequest onto chat.completions.create keyword arguments."""
        default_model = self.search_model if request.use_search else self.model
        params: Dict[str, Any] = {
            "model": request.model or default_model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.response_schema is not None:
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": request.schema_name,
                    "schema": request.response_schema,
                },
            }
        if request.use_search:
            params["web_search_options"] = {}
        return params

    @staticmethod
    def _extract_sources(message: Any) -> List[SourceLink]:
        """Collects url_citation annotations in the order the model emitted them."""
        sources: List[SourceLink] = []
        for annotation in getattr(message, "annotations", None) or []:
            if getattr(annotation, "type", None) != "url_citation":
                continue
            citation = annotation.url_citation
            sources.append(SourceLink(title=citation.title or citation.url, url=citation.url))
        return sources

    def _parse_openai_response(self, response: Any) -> StructuredAIResponse:
        """Parses the response object from OpenAI API call."""
        try:
            message = response.choices[0].message
            token_usage = None
            if response.usage:
                token_usage = TokenUsage(
                    prompt_tokens=response.usage.prompt_tokens,
                    completion_tokens=response.usage.completion_tokens,
                    total_tokens=response.usage.total_tokens
                )
            return StructuredAIResponse(
                content=message.content or "",
                sources=self._extract_sources(message),
                token_usage=token_usage,
                model_name=response.model,
            )
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse OpenAI response structure: {e}", exc_info=True)
            logger.debug(f"Raw OpenAI response object: {response}")
            raise MalformedResponseError(f"Invalid response structure from OpenAI: {e}") from e

    async def generate(self, request: GenerationRequest) -> StructuredAIResponse:
        """Sends one request to the configured OpenAI model asynchronously.

        Provider errors (RateLimitError, APIError, ...) propagate unchanged so
        the retry policy can classify them.
        """
        params = self._build_params(request)
        logger.debug(f"Sending request to OpenAI model: {params['model']} (search={request.use_search})")
        start_time = time.perf_counter()
        # The SDK call is synchronous; keep the event loop free while it runs
        response = await asyncio.to_thread(self.client.chat.completions.create, **params)
        latency_ms = (time.perf_counter() - start_time) * 1000

        structured_response = self._parse_openai_response(response)
        structured_response.latency_ms = latency_ms
        logger.debug(
            f"Received response from OpenAI in {latency_ms:.2f}ms. "
            f"Usage: {structured_response.token_usage}, sources: {len(structured_response.sources)}"
        )
        return structured_response
