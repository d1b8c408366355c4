"""
Utility functions for DEDUCE

Provides logging setup and the exception hierarchy
"""

import logging
from pathlib import Path
from typing import Optional


# ═══════════════════════════════════════════════════════════════════
# LOGGING
# ═══════════════════════════════════════════════════════════════════

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure logging for DEDUCE"""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for module"""
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════

class DeduceError(Exception):
    """Base exception for DEDUCE"""
    pass


class ConfigError(DeduceError):
    """Knowledge base could not be fetched, decoded or validated"""
    pass


class UnresolvedReferenceError(ConfigError):
    """Knowledge base references a variable or value that does not exist"""

    def __init__(self, kind: str, name: str, context: str = ""):
        self.kind = kind
        self.name = name
        self.context = context
        message = f"Unknown {kind} '{name}'"
        if context:
            message = f"{message} in {context}"
        super().__init__(message)


class ForeignObjectError(DeduceError):
    """A variable or value was used with an engine it does not belong to"""
    pass
