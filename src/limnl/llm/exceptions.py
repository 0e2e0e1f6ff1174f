"""Exceptions raised by the LLM layer.

Every public LLM operation raises one of these on failure and never
retries. Callers decide whether to surface the error or try again.
"""

from typing import Optional


class LLMError(Exception):
    """Base exception for LLM operation errors."""

    pass


class ConfigError(LLMError):
    """Provider disabled or a required credential is missing.

    Raised before any network call is attempted.
    """

    pass


class TransportError(LLMError):
    """Network failure, timeout, or non-success HTTP status.

    Attributes:
        status_code: HTTP status when the server answered, None for
            connection failures and timeouts
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderContractError(LLMError):
    """Successful HTTP response whose body lacks the expected fields."""

    pass


class ExtractionError(LLMError):
    """No JSON object or array could be recovered from a completion.

    Attributes:
        strategy: Which extraction strategy was attempted last
            ("fenced" or "raw-scan")
    """

    def __init__(self, message: str, strategy: str):
        super().__init__(f"{message} (strategy: {strategy})")
        self.reason = message
        self.strategy = strategy


class DecodeError(LLMError):
    """Extracted JSON does not match the expected result shape."""

    pass
