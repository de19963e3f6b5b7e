"""Process-wide logging configuration."""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Smartsheet SDK verbosity names plus the usual Python ones
LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "verbose": logging.DEBUG,
    "debug": logging.DEBUG,
    "silly": logging.DEBUG,
    "critical": logging.CRITICAL,
}

_configured = False


def resolve_level(name) -> int:
    """Map a configured verbosity name to a logging level, INFO when unknown."""
    if isinstance(name, int):
        return name
    return LEVELS.get(str(name or "").strip().lower(), logging.INFO)


def configure_logging(level="info") -> int:
    """Configure the root logger once and return the effective level.

    Calling again only adjusts the level, it never stacks handlers.
    """
    global _configured

    numeric = resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric)

    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
        _configured = True

    # per-request gateway logging only when asked for
    logging.getLogger("httpx").setLevel(logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING)

    root_logger.debug("Logging configured at %s", logging.getLevelName(numeric))
    return numeric
