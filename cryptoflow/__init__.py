"""CryptoFlow: AI market commentary, news and price snapshots for a crypto dashboard."""

__version__ = "1.0.0"
