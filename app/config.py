"""Application configuration read from the environment."""

import os
from dataclasses import dataclass

MEBIBYTE = 1024 * 1024


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "n", "off"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class CacheSettings:
    """
    Settings for the in-memory PDF cache.

    Parameters
    ----------
    enabled : bool
        Whether caching is active. Default is True.
    ttl_seconds : int
        Lifetime of an entry in seconds. Default is 5 minutes.
    max_entries : int
        Maximum number of cached PDFs. Default is 100.
    max_memory_bytes : int
        Memory budget for cached PDF bytes. Default is 500 MiB.
    cleanup_interval_seconds : int
        How often the expiry sweep runs. Default is 60 seconds.
    """

    enabled: bool = True
    ttl_seconds: int = 300
    max_entries: int = 100
    max_memory_bytes: int = 500 * MEBIBYTE
    cleanup_interval_seconds: int = 60

    @classmethod
    def from_env(cls) -> "CacheSettings":
        return cls(
            enabled=_env_bool("PDF_CACHE_ENABLED", True),
            ttl_seconds=_env_int("PDF_CACHE_TTL", 300),
            max_entries=_env_int("PDF_CACHE_MAX_SIZE", 100),
            max_memory_bytes=_env_int("PDF_CACHE_MAX_MEMORY", 500) * MEBIBYTE,
            cleanup_interval_seconds=_env_int("PDF_CACHE_CLEANUP_INTERVAL", 60),
        )


@dataclass(frozen=True)
class RendererSettings:
    """Settings for the external Chromium rendering service."""

    base_url: str = "http://localhost:3000"
    timeout_seconds: float = 30.0
    site_base_url: str = "http://localhost:5173"

    @classmethod
    def from_env(cls) -> "RendererSettings":
        return cls(
            base_url=os.environ.get("PDF_RENDERER_URL", "http://localhost:3000").strip(),
            timeout_seconds=_env_float("PDF_RENDERER_TIMEOUT", 30.0),
            site_base_url=os.environ.get("PDF_SITE_BASE_URL", "http://localhost:5173").strip(),
        )


@dataclass(frozen=True)
class Settings:
    """Top-level settings resolved once at process start."""

    cache: CacheSettings
    renderer: RendererSettings
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cache=CacheSettings.from_env(),
            renderer=RendererSettings.from_env(),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_format=os.environ.get("LOG_FORMAT", "text").strip().lower() or "text",
        )
