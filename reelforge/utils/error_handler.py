"""Error Handler - classifies provider failures and builds user-facing messages."""

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

from reelforge.core.errors import (
    AuthError,
    ContentPolicyError,
    InvalidRequestError,
    JobCancelledError,
    JobTimeoutError,
    PipelineDependencyError,
    PollingExhaustedError,
    ProviderError,
    RateLimitError,
    ReelForgeError,
    TransientError,
)

T = TypeVar("T")

HARM_CATEGORY_MESSAGES = {
    "HARM_CATEGORY_SEXUALLY_EXPLICIT": "sexually explicit content",
    "HARM_CATEGORY_HATE_SPEECH": "hate speech",
    "HARM_CATEGORY_HARASSMENT": "harassment or violence",
    "HARM_CATEGORY_DANGEROUS_CONTENT": "dangerous content",
    "HARM_CATEGORY_CIVIC_INTEGRITY": "civic integrity",
}

BLOCK_REASON_MESSAGES = {
    "SAFETY": "blocked by the safety policy",
    "BLOCKLIST": "contains blocklisted terms",
    "PROHIBITED_CONTENT": "prohibited content",
    "OTHER": "blocked by the content policy",
}

# Finish reasons that mean the output itself was withheld
SAFETY_FINISH_REASONS = {
    "SAFETY": "generation stopped by the safety policy",
    "PROHIBITED_CONTENT": "generation stopped for prohibited content",
    "BLOCKLIST": "generation stopped for blocklisted terms",
}


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format an error for a log line.

    Args:
        operation: What operation was being performed (e.g., "Generating anchor image")
        error: The exception that occurred
        context: Additional context (e.g., {"scene_number": 3, "provider": "eachlabs"})
        suggestion: Optional suggestion; defaults to user_message() for typed errors

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error}"

    if suggestion is None and isinstance(error, ReelForgeError):
        suggestion = user_message(error)
    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def _retry_after_seconds(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = None
    for key, header_value in headers.items():
        if key.lower() == "retry-after":
            value = header_value
            break
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


def classify_http_error(
    status_code: int,
    body: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    provider: Optional[str] = None,
) -> ReelForgeError:
    """
    Map an HTTP failure to the error taxonomy by status code.

    Args:
        status_code: HTTP status code
        body: Response body (text or parsed JSON), used only as the message
        headers: Response headers (Retry-After is honoured for 429)
        provider: Provider name for the error

    Returns:
        Typed error instance (not raised)
    """
    if isinstance(body, Mapping):
        detail = body.get("message") or body.get("error") or body
        if isinstance(detail, Mapping):
            detail = detail.get("message") or detail
    else:
        detail = body
    message = f"HTTP {status_code}: {detail}" if detail else f"HTTP {status_code}"

    if status_code in (401, 403):
        return AuthError(message, provider)
    if status_code in (400, 404, 422):
        return InvalidRequestError(message, provider)
    if status_code == 429:
        return RateLimitError(message, provider, retry_after_seconds=_retry_after_seconds(headers))
    if status_code == 408 or 500 <= status_code < 600:
        return TransientError(message, provider)
    return ProviderError(message, provider)


def _blocked_category(ratings: Optional[Sequence[Mapping[str, Any]]]) -> Optional[str]:
    for rating in ratings or []:
        if rating.get("blocked"):
            return rating.get("category")
    return None


def classify_safety_feedback(
    response: Mapping[str, Any], provider: Optional[str] = "gemini"
) -> Optional[ContentPolicyError]:
    """
    Detect a safety rejection in a Gemini-style response body.

    Only structured fields are inspected: promptFeedback.blockReason,
    candidates[0].finishReason and the blocked entry of safetyRatings.

    Args:
        response: Parsed response body
        provider: Provider name for the error

    Returns:
        ContentPolicyError if the prompt or output was blocked, else None
    """
    feedback = response.get("promptFeedback") or {}
    block_reason = feedback.get("blockReason")
    if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
        category = _blocked_category(feedback.get("safetyRatings"))
        readable = HARM_CATEGORY_MESSAGES.get(category or "") or BLOCK_REASON_MESSAGES.get(block_reason)
        if not readable:
            readable = feedback.get("blockReasonMessage") or block_reason
        return ContentPolicyError(f"Prompt blocked: {readable}", provider, category=category or block_reason)

    candidates = response.get("candidates") or []
    if candidates:
        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        if finish_reason in SAFETY_FINISH_REASONS:
            category = _blocked_category(candidate.get("safetyRatings"))
            readable = HARM_CATEGORY_MESSAGES.get(category or "") or SAFETY_FINISH_REASONS[finish_reason]
            return ContentPolicyError(
                f"Output blocked: {readable}", provider, category=category or finish_reason
            )

    return None


def user_message(error: Exception) -> str:
    """
    Build an actionable message for a terminal error.

    Args:
        error: The exception

    Returns:
        Message suitable for showing to an end user
    """
    provider = getattr(error, "provider", None)
    where = f" ({provider})" if provider else ""

    if isinstance(error, AuthError):
        return f"Credential missing or invalid{where}. Check the API key in your .env file."
    if isinstance(error, RateLimitError):
        if error.retry_after_seconds:
            return f"Rate limited{where}, retry in {error.retry_after_seconds:.0f}s."
        return f"Rate limited{where}, retry later."
    if isinstance(error, ContentPolicyError):
        category = HARM_CATEGORY_MESSAGES.get(error.category or "", error.category or "unspecified")
        return f"Content rejected by safety filter: {category}. Rephrase the prompt."
    if isinstance(error, InvalidRequestError):
        return f"The request was rejected as invalid{where}: {error.message}"
    if isinstance(error, JobTimeoutError):
        return f"Generation took too long{where} ({error.elapsed_seconds:.0f}s). Try again."
    if isinstance(error, PollingExhaustedError):
        return f"Lost contact with the provider{where} while waiting. Try again."
    if isinstance(error, TransientError):
        return f"Temporary network or server error{where}. Try again."
    if isinstance(error, ProviderError):
        return f"Generation failed{where}: {error.message}"
    if isinstance(error, PipelineDependencyError):
        return f"A required earlier step did not complete: {error.message}"
    if isinstance(error, JobCancelledError):
        return "Generation was cancelled."
    return f"Unexpected error: {error}"


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delays: Sequence[float] = (2.0, 4.0),
    logger: Any = None,
    operation: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Await fn, retrying only errors marked retryable.

    Args:
        fn: Zero-argument coroutine factory
        attempts: Total attempts
        delays: Seconds to wait before each retry (last value repeats)
        logger: Optional logger for retry messages
        operation: Name used in log lines
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        The first successful result

    Raises:
        The last error, or the first non-retryable one
    """
    sleep = sleep or asyncio.sleep
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except ReelForgeError as e:
            if not e.retryable or attempt == attempts:
                raise
            delay = delays[min(attempt - 1, len(delays) - 1)] if delays else 0.0
            if logger:
                logger.warning(f"{operation} attempt {attempt}/{attempts} failed: {e}. Retrying in {delay:.0f}s...")
            await sleep(delay)
    raise ValueError("attempts must be at least 1")
