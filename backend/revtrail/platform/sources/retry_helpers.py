"""Retry helpers for calls against the internal revision endpoint.

Only throttling (429) is retried. Everything else is handed back to the caller
so auth failures and not-found results are never delayed.
"""

from typing import Callable, Optional

import httpx
from tenacity import RetryCallState, retry_if_exception


def should_retry_on_rate_limit(exception: BaseException) -> bool:
    """Check if exception is a retryable rate limit (429).

    Args:
        exception: Exception to check

    Returns:
        True if this is a 429 that should be retried
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code == 429
    return False


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Read a numeric Retry-After header, if present and sane."""
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        seconds = float(retry_after)
    except (ValueError, TypeError):
        return None
    return seconds if seconds >= 0 else None


def wait_rate_limit_with_backoff(
    base_seconds: float = 1.0, max_seconds: float = 30.0
) -> Callable[[RetryCallState], float]:
    """Build a wait strategy: Retry-After when given, else ``base * 2^(attempt-1)``.

    Both are capped at ``max_seconds``. The first retry waits ``base_seconds``.

    Args:
        base_seconds: Wait before the first retry
        max_seconds: Upper bound for any single wait

    Returns:
        A tenacity ``wait`` callable
    """

    def _wait(retry_state: RetryCallState) -> float:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exception, httpx.HTTPStatusError) and exception.response.status_code == 429:
            retry_after = parse_retry_after(exception.response)
            if retry_after is not None:
                return min(retry_after, max_seconds)
        attempt = max(retry_state.attempt_number, 1)
        return min(base_seconds * (2 ** (attempt - 1)), max_seconds)

    return _wait


retry_if_rate_limit = retry_if_exception(should_retry_on_rate_limit)
