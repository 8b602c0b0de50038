import logging
import os
import sys
from typing import Dict, Optional, Union


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

NAMESPACE = "breadcount"

_configured: Dict[str, logging.Logger] = {}


def _coerce_level(value: Optional[Union[str, int]]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _env_level() -> int:
    return _coerce_level(os.environ.get("BREADCOUNT_LOG_LEVEL") or os.environ.get("LOG_LEVEL") or "INFO")


def get_logger(name: str) -> logging.Logger:
    """Return a configured `breadcount.<name>` logger.

    - Level from BREADCOUNT_LOG_LEVEL, then LOG_LEVEL (default INFO).
    - Writes to stderr so CLI output on stdout stays machine-readable.
    - LOG_FILE (optional) appends a copy of every line.
    """
    full_name = f"{NAMESPACE}.{name}"
    if full_name in _configured:
        return _configured[full_name]

    logger = logging.getLogger(full_name)
    level = _env_level()
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            logger.warning("LOG_FILE could not be opened; continuing without file logging")

    # Avoid duplicate lines through the root logger
    logger.propagate = False
    _configured[full_name] = logger
    return logger


def set_level(level: Union[str, int]) -> int:
    """Apply one level to every breadcount logger created so far and return it."""
    resolved = _coerce_level(level)
    for logger in _configured.values():
        logger.setLevel(resolved)
    return resolved
