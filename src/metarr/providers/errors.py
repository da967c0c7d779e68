# ABOUTME: Exception hierarchy for provider failures and orchestration outcomes.
# ABOUTME: HTTP status codes and transport failures are mapped onto these in http.py.

from typing import Any


class ProviderError(Exception):
    """Base class for anything a provider call can fail with."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider_name = provider_name
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False


class RateLimitError(ProviderError):
    """HTTP 429. retry_after is in seconds when the provider told us."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, provider_name, status_code=429)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class NotFoundError(ProviderError):
    def __init__(self, message: str, provider_name: str = "") -> None:
        super().__init__(message, provider_name, status_code=404)


class AuthenticationError(ProviderError):
    pass


class ServerError(ProviderError):
    @property
    def retryable(self) -> bool:
        return True


class NetworkError(ProviderError):
    """The request never produced an HTTP response."""

    @property
    def retryable(self) -> bool:
        return True


class ProviderTimeoutError(ProviderError):
    pass


class UnsupportedOperationError(ProviderError):
    """The adapter does not implement the requested operation."""


class CircuitOpenError(ProviderError):
    """Raised by a circuit breaker that rejected a call without attempting it."""

    def __init__(self, provider_name: str = "") -> None:
        super().__init__("Circuit breaker is open", provider_name)


class ProviderNotRegisteredError(LookupError):
    def __init__(self, provider_name: str) -> None:
        super().__init__(f"Provider not registered: {provider_name}")
        self.provider_name = provider_name


class AllProvidersFailedError(Exception):
    """No metadata provider produced a usable response.

    failures maps provider name to the error text that provider produced.
    diagnostics, when the orchestrator raised it, is the FetchDiagnostics of
    the failed fetch.
    """

    def __init__(
        self,
        attempted: int,
        entity_type: str,
        failures: dict[str, str] | None = None,
        *,
        diagnostics: Any = None,
    ) -> None:
        super().__init__(f"All {attempted} metadata providers failed for {entity_type}")
        self.attempted = attempted
        self.entity_type = entity_type
        self.failures = dict(failures or {})
        self.diagnostics = diagnostics
