"""Persistent store for the session credential."""

from typing import AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from revtrail import crud, schemas
from revtrail.core.logging import logger
from revtrail.db.session import get_db_context

DbContextFactory = Callable[[], AsyncContextManager[AsyncSession]]


class CredentialStore:
    """Reads and writes the single stored credential blob.

    Only the acquirer (``save``) and the validity observers (``mark_validated``,
    ``mark_invalid``) write; sync code reads.
    """

    def __init__(self, db_context: Optional[DbContextFactory] = None):
        """Use ``db_context`` for sessions, defaulting to the app database."""
        self._db_context = db_context or get_db_context

    async def load(self) -> Optional[schemas.CredentialBlob]:
        """Return the stored credential, if any."""
        async with self._db_context() as db:
            blob = await crud.credential_blob.get_current(db)
            return schemas.CredentialBlob.model_validate(blob) if blob else None

    async def save(self, cookies: str, mfa_required: bool = False) -> schemas.CredentialBlob:
        """Store a freshly minted credential, replacing any previous one."""
        async with self._db_context() as db:
            blob = await crud.credential_blob.upsert(db, cookies=cookies, mfa_required=mfa_required)
            logger.info(f"Stored session credential (mfa_required={mfa_required})")
            return schemas.CredentialBlob.model_validate(blob)

    async def mark_validated(self) -> None:
        """Record a successful probe."""
        async with self._db_context() as db:
            await crud.credential_blob.mark_validated(db)

    async def mark_invalid(self, cookies: Optional[str] = None) -> bool:
        """Record that the platform rejected the credential.

        With ``cookies``, only a stored credential carrying exactly those cookies
        is invalidated, so a late rejection of an old session cannot flag a newer one.
        """
        async with self._db_context() as db:
            blob = await crud.credential_blob.mark_invalid(db, cookies=cookies)
        if blob is None:
            logger.debug("No matching session credential to invalidate")
            return False
        logger.warning("Session credential marked invalid")
        return True

    async def clear(self) -> int:
        """Delete the stored credential."""
        async with self._db_context() as db:
            deleted = await crud.credential_blob.delete_all(db)
        logger.info(f"Cleared {deleted} stored session credential(s)")
        return deleted
