"""Main entry point for the cryptoflow application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.

The serial request queue is created here exactly once per process and shared
by every orchestrator, so all calls to the AI provider go through one lane.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

from cryptoflow.core.command_handler import CommandHandler, DEFAULT_PRICE_CONTEXT
from cryptoflow.core.services.analysis_service import MarketAnalysisService
from cryptoflow.core.services.news_service import NewsService
from cryptoflow.core.services.price_service import PriceService
from cryptoflow.infrastructure.ai.client_provider import AIClientProvider
from cryptoflow.infrastructure.ai.openai.gpt_client import GptClient
from cryptoflow.infrastructure.cache.caching_service import PersistentCache
from cryptoflow.infrastructure.cli.display import ConsoleDisplay
from cryptoflow.infrastructure.config.settings import (
    get_api_key, get_cache_dir, get_cache_ttl_seconds, get_config, get_initial_retry_delay_seconds,
    get_max_retries, get_model, get_queue_cooldown_seconds, get_search_model, load_configuration,
)
from cryptoflow.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging
from cryptoflow.infrastructure.resilience.api_retry import ApiRetryService
from cryptoflow.infrastructure.resilience.serial_queue import SerialExecutionQueue

logger = logging.getLogger(__name__)


def create_dependencies(cache_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. No credential is required here; it is
    only checked when an orchestrator first needs a live call.
    """
    load_configuration()
    setup_logging(
        log_level=resolve_log_level(get_config('logging.level', 'WARNING')),
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['cache_service'] = PersistentCache(
        cache_dir=cache_dir or get_cache_dir(),
        ttl_seconds=get_cache_ttl_seconds(),
    )
    dependencies['request_queue'] = SerialExecutionQueue(cooldown_seconds=get_queue_cooldown_seconds())
    dependencies['api_retry_service'] = ApiRetryService(
        max_retries=get_max_retries(),
        initial_backoff_s=get_initial_retry_delay_seconds(),
    )

    client_provider = AIClientProvider(client_factory=GptClient)
    client_provider.configure(get_api_key(), model=get_model(), search_model=get_search_model())
    dependencies['client_provider'] = client_provider

    shared = dict(
        client_provider=client_provider,
        cache_service=dependencies['cache_service'],
        request_queue=dependencies['request_queue'],
        retry_service=dependencies['api_retry_service'],
        model=get_model(),
        search_model=get_search_model(),
    )
    dependencies['analysis_service'] = MarketAnalysisService(**shared)
    dependencies['news_service'] = NewsService(**shared)
    dependencies['price_service'] = PriceService(**shared)

    dependencies['command_handler'] = CommandHandler(
        analysis_service=dependencies['analysis_service'],
        news_service=dependencies['news_service'],
        price_service=dependencies['price_service'],
        cache_service=dependencies['cache_service'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Returns the process-wide dependency container, creating it on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def _handler() -> CommandHandler:
    return get_dependencies()['command_handler']


def run_async(coro: Coroutine[Any, Any, bool]) -> None:
    """Runs a handler coroutine and turns a False result into exit code 1."""
    if not asyncio.run(coro):
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="cryptoflow",
    help="CryptoFlow: AI market analysis, news and prices for major crypto assets.",
    add_completion=False,
)

ContextOption = Annotated[
    str,
    typer.Option("--context", "-c", help="Market data passed to the analyst.")
]


@app.command()
def analyze(
    coin: Annotated[str, typer.Argument(help="Coin symbol, e.g. BTC.")],
    context: ContextOption = DEFAULT_PRICE_CONTEXT,
):
    """Show the AI market analysis for a coin."""
    run_async(_handler().handle_analyze(coin, context))


@app.command()
def news(
    enhance: Annotated[bool, typer.Option("--enhance", "-e", help="Rewrite each summary for retail investors.")] = False,
):
    """Show the latest crypto news."""
    run_async(_handler().handle_news(enhance=enhance))


@app.command()
def enhance(
    title: Annotated[str, typer.Argument(help="News headline.")],
    brief: Annotated[str, typer.Argument(help="Short summary to expand.")],
):
    """Explain one news item for retail investors."""
    run_async(_handler().handle_enhance(title, brief))


@app.command()
def price(
    symbol: Annotated[str, typer.Argument(help="Coin symbol, e.g. BTC.")],
):
    """Show the current JPY/USD price of a coin with sources."""
    run_async(_handler().handle_price(symbol))


@app.command()
def dashboard(
    coin: Annotated[str, typer.Argument(help="Coin symbol, e.g. BTC.")] = "BTC",
    context: ContextOption = DEFAULT_PRICE_CONTEXT,
):
    """Show price, analysis and news for a coin in one go."""
    run_async(_handler().handle_dashboard(coin, context))


@app.command()
def coins():
    """List the supported coins."""
    _handler().handle_list_coins()


@app.command(name="clear-cache")
def clear_cache_command():
    """Delete every cached result."""
    run_async(_handler().handle_clear_cache())


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
