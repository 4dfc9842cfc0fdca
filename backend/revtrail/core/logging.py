"""Logging setup with contextual dimensions.

Every logger handed out here is a ``ContextualLogger``: a stdlib ``LoggerAdapter``
that carries a dict of dimensions (job id, record id, component, ...) and renders
them after the message.
"""

import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

from revtrail.core.config import settings

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches dimensions to every record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[Dict[str, Any]] = None):
        """Wrap ``logger`` with a fixed set of dimensions."""
        super().__init__(logger, dict(dimensions or {}))
        self.dimensions: Dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        """Attach dimensions as ``extra`` and as a readable suffix."""
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("dimensions", self.dimensions)
        kwargs["extra"] = extra
        if self.dimensions:
            rendered = " ".join(f"{k}={v}" for k, v in self.dimensions.items())
            msg = f"{msg} [{rendered}]"
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with ``dimensions`` merged over the current ones."""
        merged = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, merged)


class LoggerConfigurator:
    """Configures the root handler once and hands out contextual loggers."""

    _configured = False

    @classmethod
    def _configure_root(cls) -> None:
        if cls._configured:
            return
        root = logging.getLogger("revtrail")
        root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
        if not root.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(_LOG_FORMAT))
            root.addHandler(handler)
        cls._configured = True

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[Dict[str, Any]] = None
    ) -> ContextualLogger:
        """Get a contextual logger.

        Args:
            name: Logger name, should live under the ``revtrail`` namespace
            dimensions: Dimensions rendered with every message

        Returns:
            ContextualLogger bound to ``name``
        """
        cls._configure_root()
        return ContextualLogger(logging.getLogger(name), dimensions)


logger = LoggerConfigurator.configure_logger("revtrail")
