"""Credential acquirer protocol."""

from typing import Optional, Protocol, runtime_checkable

from revtrail.schemas.credential_blob import AcquiredCredential


@runtime_checkable
class CredentialAcquirer(Protocol):
    """Mints a cookie blob by logging in interactively.

    Contract:
    - Returns the serialized cookies on success
    - Raises OtpCodeRequiredException when a one-time code is demanded but not given
    - Raises SessionAcquisitionException on any other failure
    - Never stores anything itself
    """

    async def acquire_credential(
        self,
        email: str,
        password: str,
        otp_code: Optional[str] = None,
        debug: bool = False,
    ) -> AcquiredCredential:
        """Log in and return the resulting cookies."""
        ...
