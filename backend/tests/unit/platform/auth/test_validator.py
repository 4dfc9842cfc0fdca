"""Tests for SessionValidator."""

from unittest.mock import patch

import httpx
import pytest

from revtrail.core.config import settings
from revtrail.core.shared_models import ProbeOutcome
from revtrail.platform.auth.validator import SessionValidator
from revtrail.platform.http_client.dispatcher import RateLimitedDispatcher
from revtrail.platform.rate_limiters import PacingRateLimiter


def make_validator(statuses_by_path, no_sleep):
    """Validator whose probes answer from ``statuses_by_path``; seen paths are recorded."""
    seen = []

    def handler(request):
        seen.append(request.url.path)
        status = statuses_by_path.get(request.url.path, 500)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, json={})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = RateLimitedDispatcher(
        client,
        PacingRateLimiter(min_interval_seconds=0, max_concurrency=1),
        max_attempts=1,
        sleep=no_sleep,
    )
    return SessionValidator(dispatcher), seen


@pytest.mark.asyncio
async def test_first_success_is_valid(no_sleep):
    """Test that a 200 on any probe makes the session valid."""
    validator, seen = make_validator(
        {"/v0.3/whoami": 401, "/v0.3/meta/bases": 200, "/v0.3/user/me": 200}, no_sleep
    )

    assert await validator.probe("session=abc") == ProbeOutcome.VALID
    assert seen == ["/v0.3/whoami", "/v0.3/meta/bases"]


@pytest.mark.asyncio
async def test_rejections_without_success_are_invalid(no_sleep):
    """Test that 401/403 with no 200 makes the session invalid."""
    validator, _ = make_validator(
        {"/v0.3/whoami": 401, "/v0.3/meta/bases": 403, "/v0.3/user/me": 500}, no_sleep
    )

    assert await validator.probe("session=abc") == ProbeOutcome.INVALID
    assert await validator.validate("session=abc") is False


@pytest.mark.asyncio
async def test_errors_only_are_inconclusive(no_sleep):
    """Test that transport errors and odd statuses are inconclusive."""
    validator, seen = make_validator(
        {
            "/v0.3/whoami": httpx.ConnectError("refused"),
            "/v0.3/meta/bases": 500,
            "/v0.3/user/me": 302,
        },
        no_sleep,
    )

    assert await validator.probe("session=abc") == ProbeOutcome.INCONCLUSIVE
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_inconclusive_is_failure_unless_configured(no_sleep):
    """Test the optimistic acceptance switch."""
    validator, _ = make_validator({}, no_sleep)

    assert await validator.validate("session=abc") is False
    with patch.object(settings, "SESSION_ACCEPT_INCONCLUSIVE_PROBE", True):
        assert await validator.validate("session=abc") is True
