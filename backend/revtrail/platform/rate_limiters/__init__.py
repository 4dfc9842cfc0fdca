"""Rate limiters for the internal endpoint."""

from ._base import PacingRateLimiter

__all__ = ["PacingRateLimiter"]
