import logging
from datetime import datetime
from typing import Any, List

from rich.console import Console
from rich.panel import Panel
from rich.box import ROUNDED, HEAVY, SIMPLE
from rich.markup import escape
from rich.text import Text
from rich.table import Table

from cryptoflow.domain.interfaces.user_interface import UserInterface
from cryptoflow.domain.models.market import AIInsight, Coin, NewsItem, PriceSnapshot, RiskLevel, Sentiment

logger = logging.getLogger(__name__)

RISK_STYLES = {
    RiskLevel.LOW: "bold green",
    RiskLevel.MEDIUM: "bold yellow",
    RiskLevel.HIGH: "bold red",
}

SENTIMENT_STYLES = {
    Sentiment.POSITIVE: "green",
    Sentiment.NEUTRAL: "white",
    Sentiment.NEGATIVE: "red",
}


def _format_time(published_at: str) -> str:
    try:
        return datetime.fromisoformat(published_at).strftime("%H:%M")
    except ValueError:
        return published_at


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self):
        """Initializes the rich Console."""
        self._console = Console()

    @property
    def console(self):
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, value):
        self._console = value

    def display_insight(self, coin: str, insight: AIInsight, **kwargs: Any) -> None:
        """Shows the analysis as a panel headed by the coloured risk level."""
        risk_style = RISK_STYLES.get(insight.risk_level, "bold white")
        body = Text()
        body.append("Risk: ", style="dim")
        body.append(f"{insight.risk_level.value}\n", style=risk_style)
        body.append("Trend: ", style="dim")
        body.append(f"{insight.trend}\n\n")
        body.append(f"{insight.summary}\n\n")
        body.append("Strategy: ", style="dim")
        body.append(f"\"{insight.recommendation}\"", style="italic cyan")

        source = kwargs.get("source")
        subtitle = f"[dim]{source}[/dim]" if source else None
        self.console.print(Panel(
            body,
            title=f"[bold white]{coin} AI market analysis[/bold white]",
            subtitle=subtitle,
            border_style="blue",
            box=ROUNDED,
            padding=(0, 1),
        ))

    def display_news(self, items: List[NewsItem], **kwargs: Any) -> None:
        """Shows one panel per news item, newest batch order preserved."""
        if not items:
            self.display_info("No news available right now.")
            return
        for item in items:
            sentiment_style = SENTIMENT_STYLES.get(item.sentiment, "white")
            body = Text()
            body.append(f"{item.summary}\n")
            if item.actionable_insight:
                body.append("\nAction: ", style="bold green")
                body.append(f"{item.actionable_insight}\n")
            body.append(f"\n{item.url}", style="dim underline")
            header = (
                f"[bold white]{escape(item.title)}[/bold white] [dim]· {escape(item.source)} · "
                f"{_format_time(item.published_at)}[/dim]"
            )
            subtitle = f"[{sentiment_style}]{item.sentiment.value.upper()}[/{sentiment_style}]"
            if item.is_enhanced:
                subtitle += " [cyan]AI enhanced[/cyan]"
            self.console.print(Panel(
                body,
                title=header,
                title_align="left",
                subtitle=subtitle,
                subtitle_align="right",
                border_style="blue",
                box=ROUNDED,
                padding=(0, 1),
            ))

    def display_price(self, symbol: str, snapshot: PriceSnapshot, **kwargs: Any) -> None:
        """Shows the snapshot as a small table followed by its sources."""
        table = Table(title=f"{symbol} price", box=SIMPLE, show_header=True)
        table.add_column("JPY", justify="right")
        table.add_column("USD", justify="right")
        table.add_column("24h", justify="right")
        change_style = "red" if snapshot.change_24h.startswith("-") else "green"
        # Values come from the model's answer; never let them act as markup
        table.add_row(
            escape(snapshot.price_jpy),
            escape(snapshot.price_usd),
            f"[{change_style}]{escape(snapshot.change_24h)}[/{change_style}]",
        )
        self.console.print(table)
        if snapshot.summary:
            self.console.print(Text(snapshot.summary, style="white"))
        for index, link in enumerate(snapshot.sources, start=1):
            self.console.print(f"[dim]{index}. {escape(link.title)}[/dim] [underline]{escape(link.url)}[/underline]")

    def display_coins(self, coins: List[Coin]) -> None:
        table = Table(title="Supported coins", box=SIMPLE)
        table.add_column("Symbol", style="bold")
        table.add_column("Name")
        table.add_column("Id", style="dim")
        for coin in coins:
            table.add_row(coin.symbol, coin.name, coin.id)
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
