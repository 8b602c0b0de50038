from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from .logging import get_logger

log = get_logger("config")


DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_TIMEOUT_SECONDS = 120.0


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    the repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return key/value pairs from the nearest .env (does not mutate os.environ)."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = {k: v.strip() for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


@dataclass(frozen=True)
class EstimatorConfig:
    """Everything the count estimator needs to talk to the vision service."""

    api_key: Optional[str]
    model_name: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class Settings:
    estimator: EstimatorConfig
    db_path: Optional[str] = None


def _lookup(key: str, env: Mapping[str, str], dotenv: Mapping[str, str]) -> Optional[str]:
    value = env.get(key)
    if value is None or not value.strip():
        value = dotenv.get(key) or dotenv.get(key.lower())
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_timeout(raw: Optional[str]) -> float:
    if raw is None:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"BREADCOUNT_TIMEOUT={raw!r} is not a number; using {DEFAULT_TIMEOUT_SECONDS}s")
        return DEFAULT_TIMEOUT_SECONDS
    if value <= 0:
        log.warning(f"BREADCOUNT_TIMEOUT must be positive; using {DEFAULT_TIMEOUT_SECONDS}s")
        return DEFAULT_TIMEOUT_SECONDS
    return value


def load_settings(dotenv_dir: Optional[str] = None, *, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load process-wide settings once: environment first, then the nearest .env."""
    env = os.environ if environ is None else environ
    dotenv = _read_dotenv(dotenv_dir or os.getcwd())

    api_key = _lookup("GEMINI_API_KEY", env, dotenv)
    if api_key:
        log.info("Vision service API key configured")
    else:
        log.warning("GEMINI_API_KEY not found in env or .env; record submission will fail")

    estimator = EstimatorConfig(
        api_key=api_key,
        model_name=_lookup("BREADCOUNT_MODEL", env, dotenv) or DEFAULT_MODEL,
        base_url=_lookup("BREADCOUNT_BASE_URL", env, dotenv) or DEFAULT_BASE_URL,
        timeout_seconds=_parse_timeout(_lookup("BREADCOUNT_TIMEOUT", env, dotenv)),
    )
    return Settings(estimator=estimator, db_path=_lookup("BREADCOUNT_DB_PATH", env, dotenv))
