"""SessionValidator - probes whether a cookie blob is still accepted."""

from typing import Optional, Sequence

import httpx

from revtrail.core.config import settings
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.core.shared_models import ProbeOutcome
from revtrail.platform.http_client.dispatcher import RateLimitedDispatcher
from revtrail.platform.http_client.headers import base_headers

PROBE_PATHS: Sequence[str] = ("/v0.3/whoami", "/v0.3/meta/bases", "/v0.3/user/me")


class SessionValidator:
    """Probes known-good endpoints with a cookie blob.

    The first 200 makes the blob valid. Without a 200, any 401/403 makes it
    invalid. Anything else (transport errors, unexpected statuses) is
    inconclusive.
    """

    def __init__(
        self,
        dispatcher: RateLimitedDispatcher,
        probe_paths: Sequence[str] = PROBE_PATHS,
        timeout_seconds: Optional[float] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the validator."""
        self._dispatcher = dispatcher
        self._probe_paths = tuple(probe_paths)
        self._timeout = timeout_seconds or settings.SESSION_PROBE_TIMEOUT_SECONDS
        self._logger = logger or default_logger.with_context(component="session_validator")

    async def probe(self, cookies: str) -> ProbeOutcome:
        """Probe each endpoint in order and classify the blob."""
        rejected = False
        headers = base_headers(cookies)
        headers["Accept"] = "application/json, text/plain, */*"
        headers["Referer"] = f"{settings.AIRTABLE_BASE_URL}/"

        for path in self._probe_paths:
            url = f"{settings.AIRTABLE_BASE_URL}{path}"
            try:
                response = await self._dispatcher.get(url, headers=headers, timeout=self._timeout)
            except httpx.HTTPError as e:
                self._logger.debug(f"[SessionValidator] Probe {path} failed: {e}")
                continue

            if response.status_code == 200:
                self._logger.info(f"[SessionValidator] Session valid (verified via {path})")
                return ProbeOutcome.VALID
            if response.status_code in (401, 403):
                self._logger.info(
                    f"[SessionValidator] Probe {path} rejected ({response.status_code})"
                )
                rejected = True
            else:
                self._logger.debug(
                    f"[SessionValidator] Probe {path} unexpected status {response.status_code}"
                )

        outcome = ProbeOutcome.INVALID if rejected else ProbeOutcome.INCONCLUSIVE
        self._logger.warning(f"[SessionValidator] No probe succeeded, outcome={outcome.value}")
        return outcome

    async def validate(self, cookies: str) -> bool:
        """Probe and reduce the outcome to a yes/no.

        Inconclusive counts as a failure unless SESSION_ACCEPT_INCONCLUSIVE_PROBE
        is enabled.
        """
        outcome = await self.probe(cookies)
        if outcome == ProbeOutcome.INCONCLUSIVE:
            return settings.SESSION_ACCEPT_INCONCLUSIVE_PROBE
        return outcome == ProbeOutcome.VALID
