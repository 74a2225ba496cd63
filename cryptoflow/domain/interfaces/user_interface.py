"""Interface for presenting results to the user.

Defines the contract for displaying insights, news, prices, and status
messages, allowing different UI implementations (e.g., console, web).
"""

import abc
from typing import Any, List

from cryptoflow.domain.models.market import AIInsight, Coin, NewsItem, PriceSnapshot


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_insight(self, coin: str, insight: AIInsight, **kwargs: Any) -> None:
        """Displays the AI market analysis for a coin."""
        pass

    @abc.abstractmethod
    def display_news(self, items: List[NewsItem], **kwargs: Any) -> None:
        """Displays a batch of news items."""
        pass

    @abc.abstractmethod
    def display_price(self, symbol: str, snapshot: PriceSnapshot, **kwargs: Any) -> None:
        """Displays a price snapshot with its sources."""
        pass

    @abc.abstractmethod
    def display_coins(self, coins: List[Coin]) -> None:
        """Displays the list of supported coins."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
