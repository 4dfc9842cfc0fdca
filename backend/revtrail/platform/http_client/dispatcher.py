"""RateLimitedDispatcher - paced, 429-aware gateway to the internal endpoint.

Every call against the session-authenticated endpoint goes through one shared
dispatcher so the aggregate request rate stays under the platform's limit no
matter how many records are fetched concurrently.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt

from revtrail.core.config import settings
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.platform.rate_limiters import PacingRateLimiter
from revtrail.platform.sources.retry_helpers import (
    retry_if_rate_limit,
    wait_rate_limit_with_backoff,
)

RequestFn = Callable[[], Awaitable[httpx.Response]]


class RateLimitedDispatcher:
    """Runs request callables under pacing, bounded concurrency and 429 backoff.

    A 429 is converted to ``httpx.HTTPStatusError`` so tenacity can retry it;
    once attempts are exhausted that error propagates to the caller. Any other
    response, error statuses included, is returned untouched.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        limiter: Optional[PacingRateLimiter] = None,
        max_attempts: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the dispatcher.

        Args:
            client: HTTP client used by ``get``
            limiter: Pacing limiter; one is created from settings if omitted
            max_attempts: Total attempts per request, first one included
            backoff_base_seconds: Wait before the first retry
            backoff_max_seconds: Cap for any single wait
            sleep: Sleep used between attempts
            logger: Contextual logger
        """
        self._client = client
        self._limiter = limiter or PacingRateLimiter()
        self.max_attempts = max_attempts or settings.DISPATCHER_MAX_ATTEMPTS
        self._wait = wait_rate_limit_with_backoff(
            backoff_base_seconds
            if backoff_base_seconds is not None
            else settings.DISPATCHER_BACKOFF_BASE_SECONDS,
            backoff_max_seconds
            if backoff_max_seconds is not None
            else settings.DISPATCHER_BACKOFF_MAX_SECONDS,
        )
        self._sleep = sleep
        self._logger = logger or default_logger.with_context(component="dispatcher")

    @property
    def client(self) -> httpx.AsyncClient:
        """The wrapped HTTP client."""
        return self._client

    async def _attempt(self, request_fn: RequestFn) -> httpx.Response:
        async with self._limiter.slot():
            response = await request_fn()
        if response.status_code == 429:
            raise httpx.HTTPStatusError(
                "Rate limited by platform (429)",
                request=response.request,
                response=response,
            )
        return response

    def _log_retry(self, retry_state) -> None:
        self._logger.warning(
            f"[Dispatcher] 429 received, retrying in {retry_state.next_action.sleep:.2f}s "
            f"(attempt {retry_state.attempt_number}/{self.max_attempts})"
        )

    async def submit(self, request_fn: RequestFn) -> httpx.Response:
        """Run ``request_fn`` under the dispatcher's policy.

        Args:
            request_fn: Zero-argument coroutine function issuing one request

        Returns:
            The first non-429 response

        Raises:
            httpx.HTTPStatusError: 429 persisted through every attempt
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_rate_limit,
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(self._attempt, request_fn)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """GET ``url`` through the dispatcher."""
        return await self.submit(lambda: self._client.get(url, **kwargs))
