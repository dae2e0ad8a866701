"""Error taxonomy and result reasons."""

from __future__ import annotations

from enum import Enum


class ModelErrorKind(str, Enum):
    """Classified failures of the model service."""

    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH_ERROR = "auth_error"
    TRANSIENT = "transient"
    OTHER = "other"


class DegradeReason(str, Enum):
    """Terse reasons carried by degraded tool results."""

    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_ERROR = "provider_error"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    BUDGET_EXHAUSTED = "budget_exhausted"


class RejectReason(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"


class ModelServiceError(RuntimeError):
    """Raised by model clients; the HTTP layer maps ``kind`` to a response."""

    kind = ModelErrorKind.OTHER
    http_status = 500
    error_type = "openai_error"
    user_message = "AI service temporarily unavailable. Please try again in a few moments."
    requires_action = False

    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message or self.kind.value)
        self.status_code = status_code


class ModelRateLimited(ModelServiceError):
    kind = ModelErrorKind.RATE_LIMITED
    http_status = 429
    error_type = "rate_limit"
    user_message = (
        "AI service is currently at capacity. Please try again in a few moments. "
        "If this issue persists, please contact support."
    )


class ModelQuotaExceeded(ModelServiceError):
    kind = ModelErrorKind.QUOTA_EXCEEDED
    http_status = 429
    error_type = "quota_exceeded"
    user_message = (
        "AI service quota has been exceeded. Contact support if you need assistance."
    )
    requires_action = True


class ModelAuthError(ModelServiceError):
    kind = ModelErrorKind.AUTH_ERROR
    http_status = 500
    error_type = "auth_error"
    user_message = "AI service configuration error. Please contact support."


class ModelTransientError(ModelServiceError):
    kind = ModelErrorKind.TRANSIENT


class ProviderError(RuntimeError):
    """A tool provider failed or reported an unusable response."""

    reason = DegradeReason.PROVIDER_ERROR


class ProviderTimeout(ProviderError):
    reason = DegradeReason.PROVIDER_TIMEOUT


class ProviderUnavailable(ProviderError):
    """The provider answered ``success: false``."""

    reason = DegradeReason.PROVIDER_UNAVAILABLE


class ConversationError(RuntimeError):
    """Raised when a conversation would violate its turn ordering."""


class ToolArgumentsError(ValueError):
    """Tool arguments failed schema validation."""

    reason = RejectReason.INVALID_ARGUMENTS

    def __init__(self, tool_name: str, errors: list[dict] | None = None) -> None:
        super().__init__(f"invalid arguments for {tool_name}")
        self.tool_name = tool_name
        self.errors = errors or []
