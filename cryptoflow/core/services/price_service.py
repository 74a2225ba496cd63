"""Grounded price snapshot for one coin (JPY, USD, 24h change)."""

import logging
from typing import Any, Dict

from cryptoflow.core.services.orchestrator import RequestOrchestrator, optional_text, parse_json_content
from cryptoflow.domain.exceptions import MalformedResponseError
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.common import CacheKey, PromptText, ServiceResult
from cryptoflow.domain.models.market import PRICE_PLACEHOLDER, PriceSnapshot

logger = logging.getLogger(__name__)

CACHE_KEY_TEMPLATE = "price_v3_{symbol}"
PRICE_FIELDS = ("priceJpy", "priceUsd", "change24h")

PRICE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "priceJpy": {"type": "string"},
        "priceUsd": {"type": "string"},
        "change24h": {"type": "string"},
        "summary": {"type": "string"},
    },
    "required": list(PRICE_FIELDS),
}

PROMPT_TEMPLATE = (
    "Look up the current price of {symbol} in Japanese yen and US dollars and its change over "
    "the last 24 hours. Answer in JSON with priceJpy, priceUsd and change24h as display strings "
    "(for example \"¥9,850,000\", \"$65,400\", \"+2.3%\") and a one-sentence Japanese summary."
)


def fallback_snapshot() -> PriceSnapshot:
    return PriceSnapshot(
        price_jpy=PRICE_PLACEHOLDER,
        price_usd=PRICE_PLACEHOLDER,
        change_24h=PRICE_PLACEHOLDER,
        summary=None,
        sources=[],
    )


def normalize_snapshot(response: StructuredAIResponse) -> PriceSnapshot:
    data = parse_json_content(response.content)
    if not isinstance(data, dict):
        raise MalformedResponseError("Expected a JSON object for the price snapshot.")
    if not any(optional_text(data, name) for name in PRICE_FIELDS):
        raise MalformedResponseError("Price snapshot contained no price fields.")
    return PriceSnapshot(
        price_jpy=optional_text(data, "priceJpy", PRICE_PLACEHOLDER),
        price_usd=optional_text(data, "priceUsd", PRICE_PLACEHOLDER),
        change_24h=optional_text(data, "change24h", PRICE_PLACEHOLDER),
        summary=optional_text(data, "summary"),
        sources=list(response.sources),
    )


class PriceService(RequestOrchestrator):
    """Produces a PriceSnapshot per symbol through the shared request pipeline."""

    async def snapshot(self, symbol: str) -> ServiceResult[PriceSnapshot]:
        symbol = symbol.strip().upper()
        logger.info(f"Requesting price snapshot for {symbol}")

        def build_request() -> GenerationRequest:
            return GenerationRequest(
                model=self.search_model,
                prompt=PromptText(PROMPT_TEMPLATE.format(symbol=symbol)),
                response_schema=PRICE_SCHEMA,
                schema_name="price_snapshot",
                use_search=True,
            )

        return await self._resolve(
            cache_key=CacheKey(CACHE_KEY_TEMPLATE.format(symbol=symbol)),
            build_request=build_request,
            normalize=normalize_snapshot,
            serialize=PriceSnapshot.to_dict,
            restore=PriceSnapshot.from_dict,
            fallback=fallback_snapshot,
        )

    async def get_price_snapshot(self, symbol: str) -> PriceSnapshot:
        """Always returns a snapshot; placeholders ('---') when unavailable."""
        result = await self.snapshot(symbol)
        return result.value
