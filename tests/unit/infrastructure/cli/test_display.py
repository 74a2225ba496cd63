import pytest
from unittest.mock import MagicMock
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cryptoflow.core.services.analysis_service import fallback_insight
from cryptoflow.core.services.news_service import fallback_news
from cryptoflow.domain.models.market import SUPPORTED_COINS, PriceSnapshot, SourceLink
from cryptoflow.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    display = ConsoleDisplay()
    display.console = mock_console  # Inject the mock
    return display


@pytest.fixture
def recording_display():
    """ConsoleDisplay writing to an in-memory console, for checking rendered text."""
    display = ConsoleDisplay()
    display.console = Console(record=True, width=120, force_terminal=False)
    return display


def test_display_insight(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_insight("BTC", fallback_insight(), source="cache")
    mock_console.print.assert_called_once()
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    assert "BTC" in args[0].title
    assert "cache" in args[0].subtitle


def test_display_insight_renders_risk(recording_display: ConsoleDisplay):
    recording_display.display_insight("ETH", fallback_insight())
    text = recording_display.console.export_text()
    assert "Medium" in text
    assert "ETH AI market analysis" in text


def test_display_news_prints_a_panel_per_item(console_display: ConsoleDisplay, mock_console: MagicMock):
    items = fallback_news()
    console_display.display_news(items)
    assert mock_console.print.call_count == len(items)


def test_display_news_escapes_markup(recording_display: ConsoleDisplay):
    item = fallback_news()[0]
    item.title = "[bold]ETF[/bold] approval"
    item.is_enhanced = True
    recording_display.display_news([item])
    text = recording_display.console.export_text()
    assert "[bold]ETF[/bold] approval" in text
    assert "AI enhanced" in text


def test_display_news_empty(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_news([])
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    assert "Info" in args[0].title


def test_display_price_lists_sources(recording_display: ConsoleDisplay):
    snapshot = PriceSnapshot(
        price_jpy="¥9,850,000", price_usd="$65,400", change_24h="-1.2%", summary="Quiet session.",
        sources=[SourceLink(title="Exchange", url="https://exchange.example/btc")],
    )
    recording_display.display_price("BTC", snapshot)
    text = recording_display.console.export_text()
    assert "$65,400" in text
    assert "-1.2%" in text
    assert "Quiet session." in text
    assert "1. Exchange" in text
    assert "https://exchange.example/btc" in text


def test_display_coins(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_coins(SUPPORTED_COINS)
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Table)
    assert args[0].row_count == len(SUPPORTED_COINS)


@pytest.mark.parametrize("method, title", [
    ("display_error", "Error"),
    ("display_info", "Info"),
    ("display_warning", "Warning"),
])
def test_message_panels(console_display: ConsoleDisplay, mock_console: MagicMock, method, title):
    getattr(console_display, method)("Something happened")
    mock_console.print.assert_called_once()
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    assert title in args[0].title


def test_display_price_treats_model_text_as_plain(recording_display: ConsoleDisplay):
    snapshot = PriceSnapshot(price_jpy="¥9,850,000 [b]", price_usd="$65,400", change_24h="+2.3% [/24h]")
    recording_display.display_price("BTC", snapshot)
    text = recording_display.console.export_text()
    assert "+2.3% [/24h]" in text
    assert "¥9,850,000 [b]" in text
