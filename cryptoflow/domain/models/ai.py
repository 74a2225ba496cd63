"""Domain models related to AI interactions.

Includes the provider-neutral request and response structures exchanged
with an AIModel implementation.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from .common import ModelName, PromptText, TokenUsage
from .market import SourceLink


@dataclass
class GenerationRequest:
    """A single prompt sent to the AI provider."""
    model: ModelName
    prompt: PromptText
    response_schema: Optional[Dict[str, Any]] = None  # JSON schema for structured output
    schema_name: str = "response"
    use_search: bool = False  # Ask for a web-grounded answer


@dataclass
class StructuredAIResponse:
    """Structured response from an AI model, including metadata."""
    content: str
    sources: List[SourceLink] = field(default_factory=list)  # Grounding citations, in order
    token_usage: Optional[TokenUsage] = None
    model_name: Optional[str] = None # Which model generated the response
    latency_ms: Optional[float] = None # Time taken for the API call
