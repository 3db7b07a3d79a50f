"""Environment-driven client settings."""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from .utils.converters import str_to_bool
from .utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = ROOT_DIR / ".env"
load_dotenv(ENV_FILE)

MAINNET_REST_URL = "https://api.binance.com"
MAINNET_WS_URL = "wss://stream.binance.com:9443/ws"
MAINNET_COMBINED_WS_URL = "wss://stream.binance.com:9443/stream"
TESTNET_REST_URL = "https://testnet.binance.vision"
TESTNET_WS_URL = "wss://testnet.binance.vision/ws"
TESTNET_COMBINED_WS_URL = "wss://testnet.binance.vision/stream"


def _to_int(value: str | int | None, default: int) -> int:
    """Parse an integer, falling back to ``default``."""
    if isinstance(value, int):
        return value
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_proxy_url(value: Optional[str]) -> Optional[str]:
    """Validate a proxy URL. Empty values mean no proxy."""
    if value is None or not value.strip():
        return None
    try:
        parts = urlsplit(value.strip())
        # accessing .port validates the numeric part
        parts.port
    except ValueError as exc:
        raise ConfigurationError(f"invalid proxy url: {value!r}") from exc
    if not parts.scheme or not parts.hostname:
        raise ConfigurationError(f"invalid proxy url: {value!r}")
    return value.strip()


class KeyType(str, Enum):
    """Supported API key signature schemes."""

    HMAC = "HMAC"
    RSA = "RSA"
    ED25519 = "ED25519"

    @classmethod
    def parse(cls, value: "KeyType | str") -> "KeyType":
        if isinstance(value, KeyType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ConfigurationError(f"unsupported key type: {value!r}") from exc


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(populate_by_name=True)

    level: str = Field(default="INFO")
    log_dir: Optional[Path] = Field(default=None)
    file_name: str = Field(default="mbxclient.log")
    rotation_when: str = Field(default="midnight")
    rotation_interval: int = Field(default=1, ge=1)
    backup_count: int = Field(default=7, ge=0)

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        log_dir_value = os.getenv("MBX_LOG_DIR")
        return cls(
            level=os.getenv("MBX_LOG_LEVEL", "INFO"),
            log_dir=Path(log_dir_value).expanduser() if log_dir_value else None,
            file_name=os.getenv("MBX_LOG_FILE_NAME", "mbxclient.log"),
            rotation_when=os.getenv("MBX_LOG_ROTATION_WHEN", "midnight"),
            rotation_interval=_to_int(os.getenv("MBX_LOG_ROTATION_INTERVAL"), 1),
            backup_count=_to_int(os.getenv("MBX_LOG_BACKUP_COUNT"), 7),
        )

    @property
    def normalized_level(self) -> str:
        return self.level.upper()

    def resolve_log_path(self, root_dir: Path) -> Optional[Path]:
        """Full log file path, or ``None`` when file logging is disabled."""
        if self.log_dir is None:
            return None
        log_dir = self.log_dir if self.log_dir.is_absolute() else (root_dir / self.log_dir).resolve()
        return log_dir / self.file_name


class MbxSettings(BaseModel):
    """Exchange credentials and endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[SecretStr] = Field(default=None)
    secret_key: Optional[SecretStr] = Field(default=None)
    key_type: KeyType = Field(default=KeyType.HMAC)
    passphrase: Optional[SecretStr] = Field(default=None)
    use_testnet: bool = Field(default=False)
    base_rest_url: Optional[str] = Field(default=None)
    base_ws_url: Optional[str] = Field(default=None)
    combined_ws_url: Optional[str] = Field(default=None)
    http_proxy_url: Optional[str] = Field(default=None)
    ws_proxy_url: Optional[str] = Field(default=None)
    time_offset_ms: int = Field(default=0)

    @field_validator("key_type", mode="before")
    @classmethod
    def _parse_key_type(cls, value: object) -> KeyType:
        return KeyType.parse(value)  # type: ignore[arg-type]

    @field_validator("http_proxy_url", "ws_proxy_url", mode="before")
    @classmethod
    def _parse_proxy(cls, value: Optional[str]) -> Optional[str]:
        return parse_proxy_url(value)

    @classmethod
    def from_env(cls) -> "MbxSettings":
        api_key = os.getenv("MBX_API_KEY")
        secret_key = os.getenv("MBX_SECRET_KEY")
        passphrase = os.getenv("MBX_PASSPHRASE")
        return cls(
            api_key=SecretStr(api_key) if api_key else None,
            secret_key=SecretStr(secret_key) if secret_key else None,
            key_type=os.getenv("MBX_KEY_TYPE", KeyType.HMAC.value),
            passphrase=SecretStr(passphrase) if passphrase else None,
            use_testnet=str_to_bool(os.getenv("MBX_USE_TESTNET"), False),
            base_rest_url=os.getenv("MBX_BASE_REST_URL") or None,
            base_ws_url=os.getenv("MBX_BASE_WS_URL") or None,
            combined_ws_url=os.getenv("MBX_COMBINED_WS_URL") or None,
            http_proxy_url=os.getenv("MBX_HTTP_PROXY_URL"),
            ws_proxy_url=os.getenv("MBX_WS_PROXY_URL"),
            time_offset_ms=_to_int(os.getenv("MBX_TIME_OFFSET_MS"), 0),
        )

    @property
    def rest_url(self) -> str:
        if self.base_rest_url:
            return self.base_rest_url
        return TESTNET_REST_URL if self.use_testnet else MAINNET_REST_URL

    @property
    def ws_url(self) -> str:
        if self.base_ws_url:
            return self.base_ws_url
        return TESTNET_WS_URL if self.use_testnet else MAINNET_WS_URL

    @property
    def combined_url(self) -> str:
        if self.combined_ws_url:
            return self.combined_ws_url
        return TESTNET_COMBINED_WS_URL if self.use_testnet else MAINNET_COMBINED_WS_URL


class AppSettings(BaseModel):
    """All settings used by the library."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root_dir: Path = Field(default=ROOT_DIR)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    mbx: MbxSettings = Field(default_factory=MbxSettings)

    @classmethod
    def load(cls) -> "AppSettings":
        return cls(
            root_dir=ROOT_DIR,
            logging=LoggingSettings.from_env(),
            mbx=MbxSettings.from_env(),
        )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return the process-wide cached settings."""
    return AppSettings.load()


__all__ = [
    "AppSettings",
    "KeyType",
    "LoggingSettings",
    "MAINNET_COMBINED_WS_URL",
    "MAINNET_REST_URL",
    "MAINNET_WS_URL",
    "MbxSettings",
    "TESTNET_COMBINED_WS_URL",
    "TESTNET_REST_URL",
    "TESTNET_WS_URL",
    "get_settings",
    "parse_proxy_url",
]
