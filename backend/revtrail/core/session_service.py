"""Session lifecycle: state, accessor, acquisition and explicit probes."""

import asyncio
from datetime import timedelta
from typing import Optional

from revtrail import schemas
from revtrail.core.config import settings
from revtrail.core.credential_store import CredentialStore
from revtrail.core.datetime_utils import utc_now_naive
from revtrail.core.exceptions import NoValidSessionException, SessionAcquisitionException
from revtrail.core.logging import logger
from revtrail.core.shared_models import SessionState
from revtrail.platform.auth.acquirer import CredentialAcquirer
from revtrail.platform.auth.validator import SessionValidator


class SessionService:
    """Owns the stored credential's lifecycle.

    States: absent, valid (fresh), stale (valid flag set but not probed within
    the freshness window) and invalid. ``get_valid_credential`` never logs in;
    acquisition is always an explicit call.
    """

    def __init__(
        self,
        store: CredentialStore,
        validator: SessionValidator,
        acquirer: CredentialAcquirer,
        freshness_seconds: Optional[int] = None,
    ):
        """Initialize the service."""
        self.store = store
        self.validator = validator
        self.acquirer = acquirer
        self.freshness = timedelta(
            seconds=(
                settings.SESSION_FRESHNESS_SECONDS
                if freshness_seconds is None
                else freshness_seconds
            )
        )
        self._acquire_lock = asyncio.Lock()

    def state_of(self, blob: Optional[schemas.CredentialBlob]) -> SessionState:
        """Classify a stored blob."""
        if blob is None:
            return SessionState.ABSENT
        if not blob.is_valid:
            return SessionState.INVALID
        if blob.last_validated_at is None:
            return SessionState.STALE
        if utc_now_naive() - blob.last_validated_at > self.freshness:
            return SessionState.STALE
        return SessionState.VALID

    async def get_state(self) -> SessionState:
        """Current state of the stored credential."""
        return self.state_of(await self.store.load())

    async def get_valid_credential(self) -> str:
        """Return cookies that are known good, re-probing a stale blob first.

        Raises:
            NoValidSessionException: Absent, invalid, or a stale blob failed its probe
        """
        blob = await self.store.load()
        state = self.state_of(blob)

        if state == SessionState.VALID:
            return blob.cookies
        if state in (SessionState.ABSENT, SessionState.INVALID):
            raise NoValidSessionException()

        logger.info("Stored session is stale, re-validating")
        if await self.validator.validate(blob.cookies):
            await self.store.mark_validated()
            return blob.cookies

        await self.store.mark_invalid(blob.cookies)
        raise NoValidSessionException("Stored session failed re-validation. Re-authenticate.")

    async def acquire(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        otp_code: Optional[str] = None,
        debug: bool = False,
    ) -> schemas.SessionStatus:
        """Log in and store the new credential.

        Only one acquisition may run at a time; a concurrent call is rejected
        rather than queued.

        Raises:
            SessionAcquisitionException: Missing credentials, a concurrent run, or login failure
            OtpCodeRequiredException: A one-time code is needed
        """
        email = email or settings.AIRTABLE_EMAIL
        password = password or settings.AIRTABLE_PASSWORD
        if not email or not password:
            raise SessionAcquisitionException("Email and password are required to log in")

        if self._acquire_lock.locked():
            raise SessionAcquisitionException("A session acquisition is already in progress")

        async with self._acquire_lock:
            acquired = await self.acquirer.acquire_credential(
                email, password, otp_code=otp_code, debug=debug
            )
            await self.store.save(acquired.cookies, mfa_required=acquired.mfa_required)
        return await self.status()

    async def validate(self) -> bool:
        """Probe the stored credential now and record the result.

        Raises:
            NoValidSessionException: Nothing is stored
        """
        blob = await self.store.load()
        if blob is None:
            raise NoValidSessionException()
        if await self.validator.validate(blob.cookies):
            await self.store.mark_validated()
            return True
        await self.store.mark_invalid(blob.cookies)
        return False

    async def invalidate(self) -> None:
        """Mark the stored credential invalid."""
        await self.store.mark_invalid()

    async def clear(self) -> int:
        """Delete the stored credential."""
        return await self.store.clear()

    async def status(self) -> schemas.SessionStatus:
        """Status view of the stored credential."""
        blob = await self.store.load()
        state = self.state_of(blob)
        if blob is None:
            return schemas.SessionStatus(has_credential=False, state=state, is_valid=False)
        return schemas.SessionStatus(
            has_credential=True,
            state=state,
            is_valid=blob.is_valid,
            last_validated_at=blob.last_validated_at,
            mfa_required=blob.mfa_required,
        )
