"""Domain models for market data shown on the dashboard.

Each entity knows how to turn itself into a plain JSON-compatible dict
(for the persistent cache) and how to rebuild itself from one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel":
        """Case-insensitive lookup; raises ValueError for unknown levels."""
        for level in cls:
            if isinstance(value, str) and value.strip().lower() == level.value.lower():
                return level
        raise ValueError(f"Unknown risk level: {value!r}")


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    @classmethod
    def parse(cls, value: Any) -> "Sentiment":
        """Lenient lookup: anything unrecognised is neutral."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.NEUTRAL


@dataclass(frozen=True)
class Coin:
    id: str
    symbol: str
    name: str


SUPPORTED_COINS: List[Coin] = [
    Coin(id="bitcoin", symbol="BTC", name="Bitcoin"),
    Coin(id="ethereum", symbol="ETH", name="Ethereum"),
    Coin(id="solana", symbol="SOL", name="Solana"),
    Coin(id="ripple", symbol="XRP", name="Ripple"),
    Coin(id="cardano", symbol="ADA", name="Cardano"),
]


def find_coin(symbol: str) -> Optional[Coin]:
    """Returns the supported coin for a ticker symbol, if any."""
    wanted = symbol.strip().upper()
    return next((coin for coin in SUPPORTED_COINS if coin.symbol == wanted), None)


@dataclass
class AIInsight:
    """AI commentary for a single coin."""
    trend: str
    recommendation: str
    risk_level: RiskLevel
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trend": self.trend,
            "recommendation": self.recommendation,
            "risk_level": self.risk_level.value,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIInsight":
        return cls(
            trend=data["trend"],
            recommendation=data["recommendation"],
            risk_level=RiskLevel.parse(data["risk_level"]),
            summary=data["summary"],
        )


@dataclass
class NewsItem:
    """One headline in a news batch. `id` is unique within its batch."""
    id: str
    title: str
    summary: str
    url: str
    source: str
    published_at: str  # ISO-8601
    sentiment: Sentiment = Sentiment.NEUTRAL
    actionable_insight: Optional[str] = None
    is_enhanced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "url": self.url,
            "source": self.source,
            "published_at": self.published_at,
            "sentiment": self.sentiment.value,
            "actionable_insight": self.actionable_insight,
            "is_enhanced": self.is_enhanced,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsItem":
        return cls(
            id=data["id"],
            title=data["title"],
            summary=data["summary"],
            url=data["url"],
            source=data["source"],
            published_at=data["published_at"],
            sentiment=Sentiment.parse(data.get("sentiment")),
            actionable_insight=data.get("actionable_insight"),
            is_enhanced=bool(data.get("is_enhanced", False)),
        )


@dataclass
class SourceLink:
    """A grounding citation (web page title and URL)."""
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceLink":
        return cls(title=data["title"], url=data["url"])


PRICE_PLACEHOLDER = "---"


@dataclass
class PriceSnapshot:
    """Current price of a coin as reported by a grounded AI answer."""
    price_jpy: str
    price_usd: str
    change_24h: str
    summary: Optional[str] = None
    sources: List[SourceLink] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price_jpy": self.price_jpy,
            "price_usd": self.price_usd,
            "change_24h": self.change_24h,
            "summary": self.summary,
            "sources": [source.to_dict() for source in self.sources],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceSnapshot":
        return cls(
            price_jpy=data["price_jpy"],
            price_usd=data["price_usd"],
            change_24h=data["change_24h"],
            summary=data.get("summary"),
            sources=[SourceLink.from_dict(item) for item in data.get("sources", [])],
        )
