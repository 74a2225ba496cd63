import asyncio
import re

import pytest

from cryptoflow.core.services.news_service import (
    DEFAULT_NEWS_SOURCE, DEFAULT_NEWS_URL, NEWS_BATCH_SIZE, NEWS_CACHE_KEY, NewsService,
    enhancement_cache_key, fallback_news,
)
from cryptoflow.domain.models.ai import StructuredAIResponse
from cryptoflow.domain.models.common import ResultSource
from cryptoflow.domain.models.market import NewsItem, Sentiment, SourceLink

from conftest import json_response


@pytest.fixture
def news_service(make_service) -> NewsService:
    return make_service(NewsService)


def _story(title, **extra):
    story = {"title": title, "summary": f"{title} summary"}
    story.update(extra)
    return story


def test_batch_is_normalized_and_cached(news_service, ai_model, cache):
    ai_model.outcomes = [json_response({"items": [
        _story("ETF inflows", sentiment="POSITIVE", url="https://a.example/1", source="Wire",
               actionableInsight="Watch the close", publishedAt="2026-10-19T09:00:00+00:00"),
        _story("Exchange hack", sentiment="negative"),
    ]})]

    result = asyncio.run(news_service.fetch_news())

    assert result.source is ResultSource.FRESH
    first, second = result.value
    assert first.sentiment is Sentiment.POSITIVE
    assert first.url == "https://a.example/1"
    assert first.source == "Wire"
    assert first.actionable_insight == "Watch the close"
    assert first.published_at == "2026-10-19T09:00:00+00:00"
    assert second.sentiment is Sentiment.NEGATIVE
    assert second.url == DEFAULT_NEWS_URL
    assert second.source == DEFAULT_NEWS_SOURCE
    assert second.published_at

    request = ai_model.requests[0]
    assert request.use_search
    assert request.model == "test-search-model"

    cached = asyncio.run(cache.get(NEWS_CACHE_KEY))
    assert [NewsItem.from_dict(entry) for entry in cached] == result.value


def test_item_ids_are_unique_within_batch(news_service, ai_model):
    ai_model.outcomes = [json_response([_story(f"story {n}") for n in range(3)])]

    items = asyncio.run(news_service.fetch_latest_news())

    ids = [item.id for item in items]
    assert len(set(ids)) == 3
    assert all(re.fullmatch(r"news-\d+-[0-9a-f]{8}", item_id) for item_id in ids)


def test_missing_fields_get_defaults(news_service, ai_model):
    ai_model.outcomes = [json_response({"items": [{"title": "Bare headline", "sentiment": "bullish"}]})]

    item = asyncio.run(news_service.fetch_latest_news())[0]

    assert item.summary == "Bare headline"
    assert item.sentiment is Sentiment.NEUTRAL
    assert item.actionable_insight is None
    assert not item.is_enhanced


def test_citations_fill_missing_url_and_source(news_service, ai_model):
    ai_model.outcomes = [json_response(
        {"items": [_story("first"), _story("second", url="https://own.example/")]},
        sources=[SourceLink(title="Cited", url="https://cited.example/1"),
                 SourceLink(title="Cited 2", url="https://cited.example/2")],
    )]

    first, second = asyncio.run(news_service.fetch_latest_news())

    assert (first.url, first.source) == ("https://cited.example/1", "Cited")
    assert (second.url, second.source) == ("https://own.example/", "Cited 2")


def test_batch_is_capped_and_untitled_items_skipped(news_service, ai_model):
    stories = [{"summary": "no title"}, "junk"] + [_story(f"story {n}") for n in range(8)]
    ai_model.outcomes = [json_response({"news": stories})]

    items = asyncio.run(news_service.fetch_latest_news())

    assert len(items) == NEWS_BATCH_SIZE
    assert items[0].title == "story 0"


@pytest.mark.parametrize("outcome", [
    RuntimeError("upstream unavailable"),
    json_response({"items": []}),
    json_response({"items": [{"summary": "untitled"}]}),
    json_response({"unexpected": True}),
    StructuredAIResponse(content=""),
])
def test_failures_return_fallback_items(news_service, ai_model, cache, outcome):
    ai_model.outcomes = [outcome]

    result = asyncio.run(news_service.fetch_news())

    assert result.is_fallback
    assert [item.title for item in result.value] == [item.title for item in fallback_news()]
    assert all(item.sentiment is Sentiment.NEUTRAL for item in result.value)
    assert asyncio.run(cache.get(NEWS_CACHE_KEY)) is None


def test_fallback_items_are_well_formed():
    items = fallback_news()
    assert [item.id for item in items] == ["fallback-1", "fallback-2", "fallback-3"]
    assert all(item.url == DEFAULT_NEWS_URL for item in items)
    assert all(item.actionable_insight for item in items)


def test_enhance_returns_and_caches_text(news_service, ai_model, cache):
    ai_model.outcomes = [StructuredAIResponse(content="  わかりやすい解説です。  ")]

    async def scenario():
        first = await news_service.enhance("Headline", "brief")
        second = await news_service.enhance("Headline", "another brief")
        return first, second

    first, second = asyncio.run(scenario())

    assert first.source is ResultSource.FRESH
    assert first.value == "わかりやすい解説です。"
    assert second.source is ResultSource.CACHE
    assert len(ai_model.requests) == 1
    assert "Headline" in ai_model.requests[0].prompt
    assert asyncio.run(cache.get(enhancement_cache_key("Headline"))) == "わかりやすい解説です。"


@pytest.mark.parametrize("outcome", [
    RuntimeError("upstream unavailable"),
    StructuredAIResponse(content="   "),
])
def test_enhance_falls_back_to_brief(news_service, ai_model, outcome):
    ai_model.outcomes = [outcome]

    text = asyncio.run(news_service.enhance_summary("Headline", "original brief"))

    assert text == "original brief"


def test_enhancement_key_depends_on_title_only():
    key = enhancement_cache_key("Bitcoin rallies")
    assert key == enhancement_cache_key("Bitcoin rallies")
    assert key != enhancement_cache_key("Bitcoin falls")
    assert re.fullmatch(r"enhanced_v2_[0-9a-f]{20}", key)


def _item(item_id, title="Headline"):
    return NewsItem(id=item_id, title=title, summary="brief", url=DEFAULT_NEWS_URL,
                    source=DEFAULT_NEWS_SOURCE, published_at="2026-10-19T00:00:00+00:00")


def test_enhance_news_item_updates_matching_item(news_service, ai_model):
    ai_model.outcomes = [StructuredAIResponse(content="expanded")]
    batch = [_item("news-0-aaaa", "One"), _item("news-1-aaaa", "Two")]

    updated = asyncio.run(news_service.enhance_news_item(batch, "news-1-aaaa"))

    assert updated is batch[1]
    assert batch[1].summary == "expanded" and batch[1].is_enhanced
    assert batch[0].summary == "brief" and not batch[0].is_enhanced


def test_enhance_news_item_leaves_item_alone_on_fallback(news_service, ai_model):
    batch = [_item("news-0-aaaa")]

    updated = asyncio.run(news_service.enhance_news_item(batch, "news-0-aaaa"))

    assert updated.summary == "brief"
    assert not updated.is_enhanced


def test_enhance_news_item_unknown_id(news_service, ai_model):
    assert asyncio.run(news_service.enhance_news_item([_item("news-0-aaaa")], "missing")) is None
    assert ai_model.requests == []


def test_already_enhanced_item_is_not_requested_again(news_service, ai_model):
    item = _item("news-0-aaaa")
    item.is_enhanced = True

    assert asyncio.run(news_service.enhance_news_item([item], item.id)) is item
    assert ai_model.requests == []
