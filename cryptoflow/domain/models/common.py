"""Defines common Value Objects used across different domain contexts."""

from enum import Enum
from typing import Generic, NewType, Optional, TypedDict, TypeVar
from dataclasses import dataclass

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Versioned key of a cache entry

# === AI Interaction ===
ModelName = NewType("ModelName", str)
PromptText = NewType("PromptText", str)


class TokenUsage(TypedDict):
    """Represents token usage information from an AI call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ResultSource(str, Enum):
    """Where an orchestrator result came from."""
    CACHE = "cache"
    FRESH = "fresh"
    FALLBACK = "fallback"


T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of one orchestrator call: the value plus how it was obtained."""
    value: T
    source: ResultSource
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source is ResultSource.FALLBACK
