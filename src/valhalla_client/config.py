"""Centralized settings for the Valhalla client.

Values can be overridden via environment variables:
- VALHALLA_BASE_URL=https://valhalla.example.com
- VALHALLA_TIMEOUT_S=30
- VALHALLA_API_KEY_HEADER_NAME=X-Api-Key
- VALHALLA_API_KEY_HEADER_VALUE=...
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_base_url(url: str) -> str:
    """Strip query, fragment and trailing slashes so ``<base>/<endpoint>`` composes
    correctly for both root (``https://host/``) and sub-path
    (``https://host/valhalla/``) deployments."""
    parts = urlsplit(url.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise ValueError(f"base_url '{url}' is not an absolute http(s) URL")
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc, path, "", ""))


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VALHALLA_", frozen=True)

    base_url: str = "http://localhost:8002"

    # Overall deadline for one call: connect + headers + body
    timeout_s: float = 15.0

    # Optional credential header, attached per request (never on the session)
    api_key_header_name: Optional[str] = None
    api_key_header_value: Optional[SecretStr] = None

    # Log request/response bodies at DEBUG. The credential is never logged.
    enable_sensitive_logging: bool = False

    max_response_bytes: int = 10 * 1024 * 1024   # 10 MiB
    max_error_body_bytes: int = 8 * 1024         # 8 KiB kept on errors
    chunk_size: int = 8 * 1024

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, v: str) -> str:
        return normalize_base_url(v)

    @field_validator("timeout_s")
    @classmethod
    def _check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be greater than zero")
        return v

    @field_validator("max_response_bytes", "max_error_body_bytes", "chunk_size")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("size settings must be greater than zero")
        return v

    @model_validator(mode="after")
    def _check_api_key_pair(self) -> "ClientSettings":
        name = (self.api_key_header_name or "").strip()
        value = self.api_key_header_value.get_secret_value() if self.api_key_header_value else ""
        if bool(name) != bool(value.strip()):
            raise ValueError("api_key_header_name and api_key_header_value must be set together")
        return self

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key_header_name and self.api_key_header_value)

    @property
    def is_insecure_transport(self) -> bool:
        """True when a credential would travel over plain http."""
        return self.has_api_key and self.base_url.startswith("http://")

    def endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    """Settings loaded once from the environment and cached."""
    return ClientSettings()


def reset_settings() -> None:
    """Drop the cached settings (tests, or after changing the environment)."""
    get_settings.cache_clear()
