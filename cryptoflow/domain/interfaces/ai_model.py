"""Port to the generative AI provider.

Orchestrators only see this interface; the OpenAI adapter lives in
infrastructure.ai.openai.
"""

import abc

from ..models.ai import GenerationRequest, StructuredAIResponse


class AIModel(abc.ABC):
    """A provider able to answer one GenerationRequest at a time."""

    @abc.abstractmethod
    async def generate(self, request: GenerationRequest) -> StructuredAIResponse:
        """Runs the request and returns the raw answer with its citations.

        Provider errors must be raised as they are (not wrapped), since the
        retry policy inspects them for rate-limit signals.
        """
