"""Session acquisition and validation."""

from .acquirer import CredentialAcquirer
from .playwright_acquirer import PlaywrightCredentialAcquirer
from .validator import SessionValidator

__all__ = ["CredentialAcquirer", "PlaywrightCredentialAcquirer", "SessionValidator"]
