"""HTTP dispatch for the internal web endpoints."""

from .dispatcher import RateLimitedDispatcher

__all__ = ["RateLimitedDispatcher"]
