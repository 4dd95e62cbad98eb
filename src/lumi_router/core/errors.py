# src/lumi_router/core/errors.py
from __future__ import annotations

from typing import Optional


class RouterError(Exception):
    """
    Base class for everything the chat router raises on purpose.

    `user_message` is what ends up in the HTTP `{"error": ...}` body;
    str(exc) keeps the operator-facing detail for logs.
    """

    user_message = "Lumi is having trouble connecting. Please try again."

    def __init__(self, message: str, *, provider_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id


class ValidationError(RouterError):
    user_message = "No messages provided"


class ConfigError(RouterError):
    """Provider credential/config is absent; the router skips to the next one."""


class QuotaError(RouterError):
    """Provider signalled rate limiting or quota exhaustion."""


class UpstreamError(RouterError):
    """Any other provider failure. Terminal for the whole call."""


class ProviderHTTPError(UpstreamError):
    def __init__(self, provider_id: str, status_code: int, body: str = "") -> None:
        super().__init__(
            f"[{provider_id} error {status_code}] {body[:400]}",
            provider_id=provider_id,
        )
        self.status_code = status_code
        self.body = body

    @property
    def user_message(self) -> str:  # type: ignore[override]
        if self.status_code == 404:
            return "Model ID error. Ensure your API key has access to the configured model."
        return UpstreamError.user_message


class EmptyResponseError(UpstreamError):
    """Provider answered 2xx but the reply had no usable text."""


class MalformedHistoryError(UpstreamError):
    """History cannot be shaped into the provider's request format."""


class AllProvidersUnavailableError(RouterError):
    user_message = "All AI providers are busy or unavailable right now. Please try again later."

    def __init__(self, last_error: Optional[RouterError]) -> None:
        msg = str(last_error) if last_error else "no providers configured"
        super().__init__(
            msg,
            provider_id=last_error.provider_id if last_error else None,
        )
        self.last_error = last_error
