"""Domain-specific exceptions for the chat proxy."""


class ChatAPIError(Exception):
    """Base exception for all chat proxy errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ChatAPIError):
    """Error related to input validation (not Pydantic)."""

    status_code = 400
    code = "validation_error"


class AuthenticationRequired(ChatAPIError):
    """No valid session for the request."""

    status_code = 401
    code = "authentication_required"


class LimitExceeded(ChatAPIError):
    """Admission-time rejection; the caller must wait for the window to roll over."""

    status_code = 429


class DailyLimitExceeded(LimitExceeded):
    """The user reached their daily request limit."""

    code = "DAILY_LIMIT_EXCEEDED"


class HourlyCostLimitExceeded(LimitExceeded):
    """The process-wide hourly spending ceiling was reached."""

    code = "HOURLY_LIMIT_EXCEEDED"


class ConfigurationError(ChatAPIError):
    """Missing route or credential for the requested model."""

    code = "configuration_error"


class LLMProviderError(ChatAPIError):
    """Error related to upstream provider operations."""

    status_code = 503
    code = "provider_error"


class StreamTransportError(LLMProviderError):
    """Upstream connection failed, dropped, or reported an error mid-stream."""

    status_code = 503
    code = "stream_transport_error"


class UpstreamProviderError(StreamTransportError):
    """The provider sent an explicit error event inside the stream."""

    code = "upstream_error"


class StreamTimeout(ChatAPIError):
    """No upstream data arrived within the idle timeout."""

    status_code = 504
    code = "stream_timeout"


class PersistenceError(ChatAPIError):
    """The conversation turn could not be stored."""

    status_code = 503
    code = "persistence_error"
