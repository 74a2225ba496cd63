"""AI market analysis for a single coin.

Asks the model for a structured insight (trend, recommendation, risk level,
summary) and falls back to a neutral, medium-risk commentary whenever the
call or its validation fails.
"""

import logging
from typing import Any, Dict

from cryptoflow.core.services.orchestrator import RequestOrchestrator, parse_json_content, require_text
from cryptoflow.domain.exceptions import MalformedResponseError
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.common import CacheKey, PromptText, ServiceResult
from cryptoflow.domain.models.market import AIInsight, RiskLevel

logger = logging.getLogger(__name__)

# Bump the version whenever the cached payload shape changes
CACHE_KEY_TEMPLATE = "analysis_v3_{coin}"

INSIGHT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "trend": {"type": "string"},
        "recommendation": {"type": "string"},
        "riskLevel": {"type": "string", "enum": [level.value for level in RiskLevel]},
        "summary": {"type": "string"},
    },
    "required": ["trend", "recommendation", "riskLevel", "summary"],
    "additionalProperties": False,
}

PROMPT_TEMPLATE = (
    "You are a professional cryptocurrency analyst covering the Japanese market. "
    "Analyse {coin} using this market data: {price_context}. "
    "Answer in JSON with the fields trend, recommendation, riskLevel (one of Low, Medium, High) "
    "and summary. Write trend, recommendation and summary in Japanese."
)


def fallback_insight() -> AIInsight:
    """Neutral commentary shown while the analysis service is unavailable."""
    return AIInsight(
        trend="横ばい / 安定",
        recommendation="長期保有を推奨。市場の急変動には注意してください。",
        risk_level=RiskLevel.MEDIUM,
        summary="現在データ分析を最適化中です。価格動向を注視してください。",
    )


def normalize_insight(response: StructuredAIResponse) -> AIInsight:
    data = parse_json_content(response.content)
    if not isinstance(data, dict):
        raise MalformedResponseError("Expected a JSON object for the market analysis.")
    try:
        risk_level = RiskLevel.parse(data.get("riskLevel"))
    except ValueError as e:
        raise MalformedResponseError(str(e)) from e
    return AIInsight(
        trend=require_text(data, "trend"),
        recommendation=require_text(data, "recommendation"),
        risk_level=risk_level,
        summary=require_text(data, "summary"),
    )


class MarketAnalysisService(RequestOrchestrator):
    """Produces an AIInsight per coin through the shared request pipeline."""

    async def analyze(self, coin: str, price_context: str) -> ServiceResult[AIInsight]:
        coin = coin.strip().upper()
        logger.info(f"Requesting market analysis for {coin}")

        def build_request() -> GenerationRequest:
            return GenerationRequest(
                model=self.model,
                prompt=PromptText(PROMPT_TEMPLATE.format(coin=coin, price_context=price_context)),
                response_schema=INSIGHT_SCHEMA,
                schema_name="market_insight",
            )

        return await self._resolve(
            cache_key=CacheKey(CACHE_KEY_TEMPLATE.format(coin=coin)),
            build_request=build_request,
            normalize=normalize_insight,
            serialize=AIInsight.to_dict,
            restore=AIInsight.from_dict,
            fallback=fallback_insight,
        )

    async def get_market_analysis(self, coin: str, price_context: str) -> AIInsight:
        """Always returns an insight: fresh, cached, or the fallback."""
        result = await self.analyze(coin, price_context)
        return result.value
