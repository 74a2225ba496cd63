"""Two-phase access to the AI client.

The credential is supplied with configure(); the client itself is only
built the first time get_client() is called, i.e. when an orchestrator
misses the cache and really needs a live call. Cache hits therefore work
without any credential.
"""

import logging
from typing import Callable, Optional

from cryptoflow.domain.exceptions import ConfigurationError
from cryptoflow.domain.interfaces.ai_model import AIModel
from cryptoflow.infrastructure.ai.openai.gpt_client import GptClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., AIModel]


class AIClientProvider:
    """Holds the credential and lazily creates the shared AIModel instance."""

    def __init__(self, client_factory: ClientFactory = GptClient):
        self._client_factory = client_factory
        self._api_key: Optional[str] = None
        self._model: Optional[str] = None
        self._search_model: Optional[str] = None
        self._client: Optional[AIModel] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def configure(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        search_model: Optional[str] = None,
    ) -> None:
        """Stores the credential and model names. Drops any client built earlier."""
        self._api_key = api_key or None
        self._model = model
        self._search_model = search_model
        self._client = None
        if self._api_key:
            logger.info("AI client provider configured.")
        else:
            logger.warning("AI client provider configured without an API key; live calls will fail.")

    def get_client(self) -> AIModel:
        """Returns the AI client, creating it on first use.

        Raises:
            ConfigurationError: If no API key has been configured.
        """
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ConfigurationError(
                "No API key configured for the AI provider. "
                "Set OPENAI_API_KEY (or API_KEY) in the environment or .env file."
            )
        self._client = self._client_factory(
            api_key=self._api_key,
            model=self._model,
            search_model=self._search_model,
        )
        return self._client
