"""Crypto news feed and per-item summary enhancement.

The feed is requested as one structured, web-grounded batch. Items are
normalized (defaults for missing sentiment/url/source, synthesized ids)
and cached together. An empty or unusable batch is a failure and yields a
small fixed set of illustrative items instead.

Enhancement rewrites one item's summary for retail investors. It is keyed
by a digest of the title and falls back to the original text unchanged.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cryptoflow.core.services.orchestrator import (
    RequestOrchestrator, optional_text, parse_json_content
)
from cryptoflow.domain.exceptions import EmptyResultError, MalformedResponseError
from cryptoflow.domain.models.ai import GenerationRequest, StructuredAIResponse
from cryptoflow.domain.models.common import CacheKey, PromptText, ServiceResult
from cryptoflow.domain.models.market import NewsItem, Sentiment, SourceLink

logger = logging.getLogger(__name__)

NEWS_CACHE_KEY = CacheKey("latest_news_v4")
ENHANCED_CACHE_KEY_TEMPLATE = "enhanced_v2_{digest}"
NEWS_BATCH_SIZE = 5
DEFAULT_NEWS_URL = "https://jp.cointelegraph.com/"
DEFAULT_NEWS_SOURCE = "AI Market Feed"

NEWS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "summary": {"type": "string"},
                    "actionableInsight": {"type": "string"},
                    "url": {"type": "string"},
                    "source": {"type": "string"},
                    "sentiment": {"type": "string", "enum": [s.value for s in Sentiment]},
                    "publishedAt": {"type": "string"},
                },
                "required": ["title", "summary"],
            },
        },
    },
    "required": ["items"],
}

NEWS_PROMPT = (
    f"Find the {NEWS_BATCH_SIZE} most important cryptocurrency news stories of the last 24 hours, "
    "prioritising anything relevant to the Japanese market. For each story give a title, "
    "a summary of about 100 characters, an actionableInsight for retail investors, the article url, "
    "the source name, a sentiment (positive, neutral or negative) and publishedAt as ISO-8601. "
    "Write title, summary and actionableInsight in Japanese. Answer in JSON as {\"items\": [...]}."
)

ENHANCE_PROMPT_TEMPLATE = (
    "Explain the following news for Japanese retail investors in about 150 Japanese characters. "
    "Reply with the explanation only.\n{title} - {brief}"
)

FALLBACK_NEWS = (
    {
        "title": "ビットコイン、主要サポート帯で底堅い推移",
        "summary": "ビットコインは主要なサポート帯を維持しており、市場参加者は次の方向性を見極めています。",
        "actionable_insight": "急な値動きに備え、分散投資とリスク管理を徹底しましょう。",
    },
    {
        "title": "国内取引所で暗号資産の取扱銘柄が拡大",
        "summary": "国内の暗号資産交換業者による新規銘柄の上場が続き、個人投資家の選択肢が広がっています。",
        "actionable_insight": "新規上場銘柄は流動性と発行体の情報を確認してから取引しましょう。",
    },
    {
        "title": "暗号資産の税制見直し議論が進展",
        "summary": "暗号資産の課税方法をめぐる議論が続いており、今後の制度変更に注目が集まっています。",
        "actionable_insight": "取引履歴を整理し、確定申告に備えておきましょう。",
    },
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def fallback_news() -> List[NewsItem]:
    """Fixed illustrative items shown while the news feed is unavailable."""
    published_at = _now_iso()
    return [
        NewsItem(
            id=f"fallback-{index}",
            title=entry["title"],
            summary=entry["summary"],
            actionable_insight=entry["actionable_insight"],
            url=DEFAULT_NEWS_URL,
            source=DEFAULT_NEWS_SOURCE,
            sentiment=Sentiment.NEUTRAL,
            published_at=published_at,
        )
        for index, entry in enumerate(FALLBACK_NEWS, start=1)
    ]


def _extract_items(data: Any) -> List[Any]:
    """Accepts either a bare JSON array or an object wrapping one under 'items'/'news'."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("items", "news"):
            if isinstance(data.get(key), list):
                return data[key]
    raise MalformedResponseError("Expected a JSON array of news items.")


def normalize_news(response: StructuredAIResponse) -> List[NewsItem]:
    raw_items = _extract_items(parse_json_content(response.content))
    batch_token = uuid.uuid4().hex[:8]
    fetched_at = _now_iso()
    items: List[NewsItem] = []

    for raw in raw_items:
        if len(items) >= NEWS_BATCH_SIZE:
            break
        if not isinstance(raw, dict):
            continue
        title = optional_text(raw, "title")
        if not title:
            logger.debug(f"Skipping news item without a title: {raw}")
            continue
        index = len(items)
        citation: Optional[SourceLink] = response.sources[index] if index < len(response.sources) else None
        items.append(NewsItem(
            id=f"news-{index}-{batch_token}",
            title=title,
            summary=optional_text(raw, "summary", title),
            actionable_insight=optional_text(raw, "actionableInsight"),
            url=optional_text(raw, "url") or (citation.url if citation else DEFAULT_NEWS_URL),
            source=optional_text(raw, "source") or (citation.title if citation else DEFAULT_NEWS_SOURCE),
            sentiment=Sentiment.parse(raw.get("sentiment")),
            published_at=optional_text(raw, "publishedAt", fetched_at),
        ))

    if not items:
        raise EmptyResultError("News response contained no usable items.")
    return items


def _serialize_news(items: List[NewsItem]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


def _restore_news(payload: Any) -> List[NewsItem]:
    if not isinstance(payload, list) or not payload:
        raise ValueError("cached news payload is not a non-empty list")
    return [NewsItem.from_dict(entry) for entry in payload]


def _restore_text(payload: Any) -> str:
    if not isinstance(payload, str):
        raise TypeError("cached enhancement is not a string")
    return payload


def enhancement_cache_key(title: str) -> CacheKey:
    digest = hashlib.sha256(title.encode("utf-8")).hexdigest()[:20]
    return CacheKey(ENHANCED_CACHE_KEY_TEMPLATE.format(digest=digest))


class NewsService(RequestOrchestrator):
    """Fetches the news batch and enhances individual summaries."""

    async def fetch_news(self) -> ServiceResult[List[NewsItem]]:
        logger.info("Requesting latest news batch")

        def build_request() -> GenerationRequest:
            return GenerationRequest(
                model=self.search_model,
                prompt=PromptText(NEWS_PROMPT),
                response_schema=NEWS_SCHEMA,
                schema_name="news_batch",
                use_search=True,
            )

        return await self._resolve(
            cache_key=NEWS_CACHE_KEY,
            build_request=build_request,
            normalize=normalize_news,
            serialize=_serialize_news,
            restore=_restore_news,
            fallback=fallback_news,
        )

    async def fetch_latest_news(self) -> List[NewsItem]:
        """Always returns a non-empty batch: fresh, cached, or the fallback set."""
        result = await self.fetch_news()
        return result.value

    async def enhance(self, title: str, brief: str) -> ServiceResult[str]:
        def build_request() -> GenerationRequest:
            return GenerationRequest(
                model=self.model,
                prompt=PromptText(ENHANCE_PROMPT_TEMPLATE.format(title=title, brief=brief)),
            )

        def normalize(response: StructuredAIResponse) -> str:
            text = (response.content or "").strip()
            if not text:
                raise EmptyResultError("Enhancement response was empty.")
            return text

        return await self._resolve(
            cache_key=enhancement_cache_key(title),
            build_request=build_request,
            normalize=normalize,
            serialize=str,
            restore=_restore_text,
            fallback=lambda: brief,
        )

    async def enhance_summary(self, title: str, brief: str) -> str:
        """Returns the enhanced text, or brief unchanged if enhancement fails."""
        result = await self.enhance(title, brief)
        return result.value

    async def enhance_news_item(self, batch: List[NewsItem], item_id: str) -> Optional[NewsItem]:
        """Enhances the item with item_id in place and returns it.

        The item is only marked enhanced when real (fresh or cached) text was
        obtained; on fallback it is left untouched.
        """
        item = next((candidate for candidate in batch if candidate.id == item_id), None)
        if item is None:
            logger.warning(f"No news item with id {item_id} in the current batch.")
            return None
        if item.is_enhanced:
            return item

        result = await self.enhance(item.title, item.summary)
        if not result.is_fallback:
            item.summary = result.value
            item.is_enhanced = True
        return item
