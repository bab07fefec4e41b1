"""Configuration loading from ``KUSTOMAP_*`` environment variables.

Unset or empty variables fall back to their defaults. Integers are clamped
into their allowed range; malformed values raise ValueError naming the
variable.
"""

from __future__ import annotations

import os

from kustomap.models.config import (
    BuilderConfig,
    CACertConfig,
    FetchConfig,
    KustomapConfig,
    LogConfig,
)

ENV_PREFIX = "KUSTOMAP_"

LOG_LEVELS = ("debug", "info", "warning", "error")
LOG_FORMATS = ("json", "console")

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


def _env(key: str) -> str:
    return os.environ.get(ENV_PREFIX + key, "").strip()


def _env_flag(key: str, default: bool) -> bool:
    raw = _env(key).lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{ENV_PREFIX}{key} must be a boolean, got {raw!r}")


def _env_clamped(key: str, default: int, *, lower: int = 0, upper: int | None = None) -> int:
    """Read an integer and clamp it into ``[lower, upper]``."""
    raw = _env(key)
    try:
        value = int(raw) if raw else default
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None
    value = max(value, lower)
    return value if upper is None else min(value, upper)


def _env_choice(key: str, default: str, allowed: tuple[str, ...], what: str) -> str:
    value = (_env(key) or default).lower()
    if value not in allowed:
        raise ValueError(f"Invalid {what} {value!r} in {ENV_PREFIX}{key}; expected one of {', '.join(allowed)}")
    return value


def _env_ca_bundle(key: str) -> str:
    path = _env(key)
    if path and not os.path.isfile(path):
        raise ValueError(f"CA bundle file does not exist: {path}")
    return path


def load_config() -> KustomapConfig:
    """Load configuration from KUSTOMAP_* environment variables."""
    return KustomapConfig(
        fetch=FetchConfig(
            github_token=_env("GITHUB_TOKEN"),
            gitlab_token=_env("GITLAB_TOKEN"),
            timeout_seconds=_env_clamped("FETCH_TIMEOUT", 60, lower=5, upper=600),
            max_attempts=_env_clamped("FETCH_MAX_ATTEMPTS", 3, lower=1, upper=10),
            ca_bundle=_env_ca_bundle("CA_BUNDLE"),
        ),
        builder=BuilderConfig(
            max_workers=_env_clamped("BUILD_MAX_WORKERS", 8, lower=1, upper=64),
            timeout_seconds=_env_clamped("BUILD_TIMEOUT", 300),
            max_depth=_env_clamped("BUILD_MAX_DEPTH", 0),
            workdir=_env("BUILD_WORKDIR"),
            keep_workdir=_env_flag("BUILD_KEEP_WORKDIR", False),
        ),
        cacert=CACertConfig(
            enabled=_env_flag("CACERT_ENABLED", True),
            ttl_seconds=_env_clamped("CACERT_TTL", 3600),
            handshake_timeout=_env_clamped("CACERT_HANDSHAKE_TIMEOUT", 10, lower=1, upper=120),
            max_workers=_env_clamped("CACERT_MAX_WORKERS", 8, lower=1, upper=64),
            port=_env_clamped("CACERT_PORT", 443, lower=1, upper=65535),
        ),
        log=LogConfig(
            level=_env_choice("LOG_LEVEL", "info", LOG_LEVELS, "log level"),
            format=_env_choice("LOG_FORMAT", "json", LOG_FORMATS, "log format"),
        ),
    )
