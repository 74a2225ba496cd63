import pytest

from cryptoflow.domain.models.common import ResultSource, ServiceResult
from cryptoflow.domain.models.market import (
    AIInsight, NewsItem, PriceSnapshot, RiskLevel, Sentiment, SourceLink, find_coin
)


@pytest.mark.parametrize("raw, expected", [
    ("Low", RiskLevel.LOW),
    ("medium", RiskLevel.MEDIUM),
    (" HIGH ", RiskLevel.HIGH),
])
def test_risk_level_parse(raw, expected):
    assert RiskLevel.parse(raw) is expected


@pytest.mark.parametrize("raw", ["Extreme", "", None, 3])
def test_risk_level_parse_rejects_unknown(raw):
    with pytest.raises(ValueError):
        RiskLevel.parse(raw)


@pytest.mark.parametrize("raw, expected", [
    ("positive", Sentiment.POSITIVE),
    ("NEGATIVE", Sentiment.NEGATIVE),
    ("bullish", Sentiment.NEUTRAL),
    (None, Sentiment.NEUTRAL),
])
def test_sentiment_parse(raw, expected):
    assert Sentiment.parse(raw) is expected


def test_find_coin():
    assert find_coin(" eth ").name == "Ethereum"
    assert find_coin("DOGE") is None


def test_entities_survive_a_dict_round_trip():
    insight = AIInsight(trend="up", recommendation="hold", risk_level=RiskLevel.HIGH, summary="s")
    item = NewsItem(id="news-0-abcd1234", title="t", summary="s", url="https://x.example/", source="X",
                    published_at="2026-10-19T00:00:00+00:00", sentiment=Sentiment.POSITIVE,
                    actionable_insight="act", is_enhanced=True)
    snapshot = PriceSnapshot(price_jpy="¥1", price_usd="$1", change_24h="+1%",
                             sources=[SourceLink(title="S", url="https://s.example/")])

    assert AIInsight.from_dict(insight.to_dict()) == insight
    assert NewsItem.from_dict(item.to_dict()) == item
    assert PriceSnapshot.from_dict(snapshot.to_dict()) == snapshot


def test_service_result_fallback_flag():
    assert ServiceResult(value=1, source=ResultSource.FALLBACK).is_fallback
    assert not ServiceResult(value=1, source=ResultSource.CACHE).is_fallback
