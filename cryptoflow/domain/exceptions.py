"""Exceptions raised by the request layer.

Only ConfigurationError is allowed to reach the UI; every other failure is
turned into a fallback value by the orchestrators.
"""


class CryptoFlowError(Exception):
    """Base class for all cryptoflow errors."""


class ConfigurationError(CryptoFlowError):
    """Raised when a live call is needed but the client is not configured."""


class MalformedResponseError(CryptoFlowError):
    """Raised when the upstream response is not valid JSON or violates the schema."""


class EmptyResultError(CryptoFlowError):
    """Raised when the upstream response parses but contains nothing usable."""
