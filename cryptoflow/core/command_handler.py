"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the request orchestrators, then hands the results to the UI.
Handlers return True on success and False when the command could not run
(unknown coin, missing credential), so the entry point can set the exit code.
"""

import asyncio
import logging
from typing import List

from cryptoflow.core.services.analysis_service import MarketAnalysisService
from cryptoflow.core.services.news_service import NewsService
from cryptoflow.core.services.price_service import PriceService
from cryptoflow.domain.exceptions import ConfigurationError
from cryptoflow.domain.interfaces.cache import CacheService
from cryptoflow.domain.interfaces.user_interface import UserInterface
from cryptoflow.domain.models.market import SUPPORTED_COINS, NewsItem, find_coin

logger = logging.getLogger(__name__)

DEFAULT_PRICE_CONTEXT = (
    "Recent price trend: +5% in 24h, high volume on exchanges, MACD bullish crossover."
)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        analysis_service: MarketAnalysisService,
        news_service: NewsService,
        price_service: PriceService,
        cache_service: CacheService,
        ui: UserInterface,
    ):
        self.analysis_service = analysis_service
        self.news_service = news_service
        self.price_service = price_service
        self.cache_service = cache_service
        self.ui = ui

    def _check_coin(self, symbol: str) -> bool:
        if find_coin(symbol) is None:
            supported = ", ".join(coin.symbol for coin in SUPPORTED_COINS)
            self.ui.display_error(f"Unsupported coin '{symbol}'. Choose one of: {supported}.")
            return False
        return True

    def _report_configuration_error(self, error: ConfigurationError) -> bool:
        logger.error(f"Configuration error: {error}")
        self.ui.display_error(str(error))
        return False

    async def handle_analyze(self, coin: str, price_context: str = DEFAULT_PRICE_CONTEXT) -> bool:
        """Handles the 'analyze' command."""
        coin = coin.strip().upper()
        if not self._check_coin(coin):
            return False
        logger.info(f"Handling 'analyze' command for {coin}")
        try:
            result = await self.analysis_service.analyze(coin, price_context)
        except ConfigurationError as e:
            return self._report_configuration_error(e)
        if result.is_fallback:
            self.ui.display_warning("Live analysis is unavailable; showing a standard commentary.")
        self.ui.display_insight(coin, result.value, source=result.source.value)
        return True

    async def _enhance_batch(self, items: List[NewsItem]) -> None:
        # Submitted together; the serial queue runs them one at a time
        await asyncio.gather(*(
            self.news_service.enhance_news_item(items, item.id) for item in items
        ))

    async def handle_news(self, enhance: bool = False) -> bool:
        """Handles the 'news' command, optionally enhancing every summary."""
        logger.info(f"Handling 'news' command (enhance={enhance})")
        try:
            result = await self.news_service.fetch_news()
            if enhance and not result.is_fallback:
                await self._enhance_batch(result.value)
        except ConfigurationError as e:
            return self._report_configuration_error(e)
        if result.is_fallback:
            self.ui.display_warning("Live news is unavailable; showing sample headlines.")
        self.ui.display_news(result.value, source=result.source.value)
        return True

    async def handle_enhance(self, title: str, brief: str) -> bool:
        """Handles the 'enhance' command for a single headline."""
        logger.info(f"Handling 'enhance' command for: {title}")
        try:
            result = await self.news_service.enhance(title, brief)
        except ConfigurationError as e:
            return self._report_configuration_error(e)
        if result.is_fallback:
            self.ui.display_warning("Enhancement is unavailable; showing the original text.")
        self.ui.display_info(result.value)
        return True

    async def handle_price(self, symbol: str) -> bool:
        """Handles the 'price' command."""
        symbol = symbol.strip().upper()
        if not self._check_coin(symbol):
            return False
        logger.info(f"Handling 'price' command for {symbol}")
        try:
            result = await self.price_service.snapshot(symbol)
        except ConfigurationError as e:
            return self._report_configuration_error(e)
        if result.is_fallback:
            self.ui.display_warning("Live prices are unavailable.")
        self.ui.display_price(symbol, result.value, source=result.source.value)
        return True

    async def handle_dashboard(self, coin: str, price_context: str = DEFAULT_PRICE_CONTEXT) -> bool:
        """Requests price, analysis and news at once, as the dashboard page does.

        The three requests share the serial queue, so at most one of them is
        talking to the provider at any moment.
        """
        coin = coin.strip().upper()
        if not self._check_coin(coin):
            return False
        logger.info(f"Handling 'dashboard' command for {coin}")
        try:
            price, insight, news = await asyncio.gather(
                self.price_service.snapshot(coin),
                self.analysis_service.analyze(coin, price_context),
                self.news_service.fetch_news(),
            )
        except ConfigurationError as e:
            return self._report_configuration_error(e)
        self.ui.display_price(coin, price.value, source=price.source.value)
        self.ui.display_insight(coin, insight.value, source=insight.source.value)
        self.ui.display_news(news.value, source=news.source.value)
        degraded = [name for name, result in (("price", price), ("analysis", insight), ("news", news))
                    if result.is_fallback]
        if degraded:
            self.ui.display_warning(f"Showing fallback data for: {', '.join(degraded)}.")
        return True

    def handle_list_coins(self) -> bool:
        self.ui.display_coins(SUPPORTED_COINS)
        return True

    async def handle_clear_cache(self) -> bool:
        """Handles the 'clear-cache' command."""
        logger.info("Handling 'clear-cache' command")
        try:
            await self.cache_service.clear()
        except OSError as e:
            logger.error(f"Failed to clear cache: {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")
            return False
        self.ui.display_info("Cache cleared successfully.")
        return True
