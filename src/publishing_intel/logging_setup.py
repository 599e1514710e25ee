"""Process-wide logging configuration."""

import logging

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once — later calls only adjust the level.
    """
    resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not any(getattr(h, "_publishing_intel", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._publishing_intel = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(resolved)
