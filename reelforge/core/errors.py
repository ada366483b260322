"""Typed error taxonomy shared by providers, the job poller and the pipelines."""

from typing import Optional


class ReelForgeError(Exception):
    """Base class for every error raised by reelforge services."""

    kind = "unknown"
    retryable = False

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class AuthError(ReelForgeError):
    """Credential missing, invalid or not allowed to use the model."""

    kind = "auth"


class InvalidRequestError(ReelForgeError):
    """The provider rejected the request as malformed."""

    kind = "invalid_request"


class RateLimitError(ReelForgeError):
    """Provider-signalled throttling. Not retried inside the same call."""

    kind = "rate_limit"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
    ):
        super().__init__(message, provider)
        self.retry_after_seconds = retry_after_seconds


class TransientError(ReelForgeError):
    """Network failure, 5xx or malformed response. Safe to retry."""

    kind = "transient"
    retryable = True


class JobTimeoutError(ReelForgeError, TimeoutError):
    """A job exceeded its wall-clock budget."""

    kind = "timeout"

    def __init__(self, message: str, provider: Optional[str] = None, elapsed_seconds: float = 0.0):
        super().__init__(message, provider)
        self.elapsed_seconds = elapsed_seconds


class PollingExhaustedError(ReelForgeError):
    """Status queries failed too many times in a row."""

    kind = "polling_exhausted"


class ProviderError(ReelForgeError):
    """The provider reported that the generation itself failed."""

    kind = "provider"


class ContentPolicyError(ReelForgeError):
    """The provider's safety system rejected the prompt or the output."""

    kind = "content_policy"

    def __init__(self, message: str, provider: Optional[str] = None, category: Optional[str] = None):
        super().__init__(message, provider)
        self.category = category


class PipelineDependencyError(ReelForgeError):
    """A pipeline step ran before the step it depends on succeeded."""

    kind = "pipeline_dependency"


class JobCancelledError(ReelForgeError):
    """The caller abandoned the job through its cancellation token."""

    kind = "cancelled"
