"""Scanner configuration.

Loads all settings from .env with sensible defaults.
The domain itself is NOT configured here - it comes from the caller per scan.
"""

import math
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_USER_AGENT = 'domain-posture/1.0 (+public security posture check)'


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    value = _env_float(name, default)
    if value != int(value):
        raise ValueError(f"{name} must be a whole number, got {value}")
    return int(value)


class Config:
    """Configuration for the posture scanner.

    Single source of truth for all tunables. Every value can be
    overridden from the environment or a .env file at the working directory.
    """

    def __init__(self, env_file: Optional[Path] = None):
        """Load configuration from .env file (if present) and the environment."""
        env_file = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        # ===== ORCHESTRATOR =====
        # Applies to probes that don't declare their own deadline
        self.default_timeout_ms = _env_int("DEFAULT_TIMEOUT_MS", 30000)

        # ===== NETWORK SETTINGS =====
        self.dns_timeout = _env_float("DNS_TIMEOUT", 4.0)
        self.http_timeout = _env_float("HTTP_TIMEOUT", 15.0)
        self.user_agent = os.getenv("USER_AGENT") or DEFAULT_USER_AGENT

        # ===== CACHE / RATE LIMIT =====
        self.cache_ttl_seconds = _env_int("CACHE_TTL_SECONDS", 900)
        cache_dir = os.getenv("CACHE_DIR")
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.rate_limit_max_scans = _env_int("RATE_LIMIT_MAX_SCANS", 10)
        self.rate_limit_window_seconds = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)

        # ===== OUTPUT =====
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_file = os.getenv("LOG_FILE")
        self.log_file = Path(log_file) if log_file else None

    def to_dict(self) -> dict:
        """Convert config to dict for logging."""
        return {
            'default_timeout_ms': self.default_timeout_ms,
            'dns_timeout': self.dns_timeout,
            'http_timeout': self.http_timeout,
            'cache_ttl_seconds': self.cache_ttl_seconds,
            'cache_dir': str(self.cache_dir) if self.cache_dir else None,
            'rate_limit_max_scans': self.rate_limit_max_scans,
            'rate_limit_window_seconds': self.rate_limit_window_seconds,
            'log_level': self.log_level,
        }

    def __repr__(self) -> str:
        """Human-readable config summary."""
        return (
            f"Config(\n"
            f"  default_timeout_ms={self.default_timeout_ms}\n"
            f"  cache_ttl={self.cache_ttl_seconds}s\n"
            f"  rate_limit={self.rate_limit_max_scans}/{self.rate_limit_window_seconds}s\n"
            f"  cache_dir={self.cache_dir}\n"
            f")"
        )
