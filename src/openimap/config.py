from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import find_dotenv, load_dotenv

from openimap.constants import TimeoutType
from openimap.errors import ConfigError


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SMTPConfig:
    host: str = "localhost"
    port: int = 25
    username: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = False
    use_starttls: bool = False
    from_email: Optional[str] = None
    timeout: float = 30.0


@dataclass
class Settings:
    open_timeout: float = 15.0
    read_timeout: float = 60.0
    write_timeout: float = 60.0
    close_timeout: float = 15.0
    retry_backoff: float = 0.5
    max_log_entries: int = 1000
    smtp: SMTPConfig = field(default_factory=SMTPConfig)

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True), override=False)
        smtp = SMTPConfig(
            host=os.getenv("OPENIMAP_SMTP_HOST", "localhost"),
            port=_env_int("OPENIMAP_SMTP_PORT", 25),
            username=os.getenv("OPENIMAP_SMTP_USER") or None,
            password=os.getenv("OPENIMAP_SMTP_PASSWORD") or None,
            use_ssl=_env_bool("OPENIMAP_SMTP_SSL", False),
            use_starttls=_env_bool("OPENIMAP_SMTP_STARTTLS", False),
            from_email=os.getenv("OPENIMAP_SMTP_FROM") or None,
        )
        settings = cls(
            open_timeout=_env_float("OPENIMAP_OPEN_TIMEOUT", 15.0),
            read_timeout=_env_float("OPENIMAP_READ_TIMEOUT", 60.0),
            write_timeout=_env_float("OPENIMAP_WRITE_TIMEOUT", 60.0),
            close_timeout=_env_float("OPENIMAP_CLOSE_TIMEOUT", 15.0),
            retry_backoff=_env_float("OPENIMAP_RETRY_BACKOFF", 0.5),
            max_log_entries=_env_int("OPENIMAP_MAX_LOG_ENTRIES", 1000),
            smtp=smtp,
        )
        if settings.max_log_entries < 1:
            raise ConfigError("OPENIMAP_MAX_LOG_ENTRIES must be >= 1")
        if settings.smtp.use_ssl and settings.smtp.use_starttls:
            raise ConfigError("Choose OPENIMAP_SMTP_SSL or OPENIMAP_SMTP_STARTTLS (not both)")
        return settings

    def get_timeout(self, kind: TimeoutType) -> float:
        return self._timeouts()[kind]

    def set_timeout(self, kind: TimeoutType, seconds: float) -> None:
        attr = _TIMEOUT_ATTRS[kind]
        setattr(self, attr, float(seconds))

    def _timeouts(self) -> Dict[TimeoutType, float]:
        return {kind: getattr(self, attr) for kind, attr in _TIMEOUT_ATTRS.items()}


_TIMEOUT_ATTRS: Dict[TimeoutType, str] = {
    TimeoutType.OPEN: "open_timeout",
    TimeoutType.READ: "read_timeout",
    TimeoutType.WRITE: "write_timeout",
    TimeoutType.CLOSE: "close_timeout",
}

_lock = threading.RLock()
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded from the environment on first use."""
    global _settings
    with _lock:
        if _settings is None:
            _settings = Settings.from_env()
        return _settings


def configure(settings: Optional[Settings] = None) -> Settings:
    """Replace the process-wide settings (``None`` reloads from the environment)."""
    global _settings
    with _lock:
        _settings = settings if settings is not None else Settings.from_env()
        return _settings


def settings_lock() -> threading.RLock:
    return _lock
