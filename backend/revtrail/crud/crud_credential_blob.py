"""CRUD operations for the stored session credential.

The table holds at most one row; every write goes through ``upsert`` or one of
the validity helpers.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from revtrail.core.datetime_utils import utc_now_naive
from revtrail.models.credential_blob import CredentialBlob


class CRUDCredentialBlob:
    """CRUD operations for the credential blob."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = CredentialBlob

    async def get_current(self, db: AsyncSession) -> Optional[CredentialBlob]:
        """Get the stored credential, newest first if more than one slipped in.

        Args:
            db: Database session

        Returns:
            CredentialBlob if one is stored, None otherwise
        """
        result = await db.execute(
            select(self.model).order_by(self.model.modified_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        db: AsyncSession,
        cookies: str,
        mfa_required: bool = False,
    ) -> CredentialBlob:
        """Store a freshly minted credential as valid and just validated.

        Args:
            db: Database session
            cookies: Serialized cookie header value
            mfa_required: Whether login needed a one-time code

        Returns:
            The stored CredentialBlob
        """
        now = utc_now_naive()
        blob = await self.get_current(db)
        if blob is None:
            blob = self.model(cookies=cookies, mfa_required=mfa_required)
            db.add(blob)
        blob.cookies = cookies
        blob.mfa_required = mfa_required
        blob.is_valid = True
        blob.last_validated_at = now
        blob.modified_at = now
        await db.commit()
        await db.refresh(blob)
        return blob

    async def mark_validated(self, db: AsyncSession) -> Optional[CredentialBlob]:
        """Stamp the stored credential as valid now."""
        blob = await self.get_current(db)
        if blob is None:
            return None
        blob.is_valid = True
        blob.last_validated_at = utc_now_naive()
        await db.commit()
        await db.refresh(blob)
        return blob

    async def mark_invalid(
        self, db: AsyncSession, cookies: Optional[str] = None
    ) -> Optional[CredentialBlob]:
        """Flag the stored credential as rejected by the platform.

        Args:
            db: Database session
            cookies: The rejected cookies; when given, a stored credential with
                other cookies is left alone

        Returns:
            The invalidated credential, or None when nothing matched
        """
        blob = await self.get_current(db)
        if blob is None or (cookies is not None and blob.cookies != cookies):
            return None
        blob.is_valid = False
        await db.commit()
        await db.refresh(blob)
        return blob

    async def delete_all(self, db: AsyncSession) -> int:
        """Delete every stored credential.

        Returns:
            Number of deleted rows
        """
        result = await db.execute(delete(self.model))
        await db.commit()
        return result.rowcount or 0


credential_blob = CRUDCredentialBlob()
