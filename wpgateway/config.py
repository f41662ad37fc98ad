# -*- coding: utf-8 -*-
"""Location: ./wpgateway/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

WordPress MCP Gateway Configuration.
This module defines configuration settings for the gateway using Pydantic.
It loads configuration from environment variables (or a ``.env`` file) with
sensible defaults for a single-instance development deployment.

Examples:
    >>> from wpgateway.config import Settings
    >>> s = Settings(encryption_key="a-sufficiently-long-root-key", _env_file=None)
    >>> s.cache_type
    'memory'
    >>> s.rate_limit_window
    60
    >>> s.database_settings["connect_args"]
    {'check_same_thread': False}
"""

# Standard
from functools import lru_cache
import json
from typing import Annotated, Any, Dict, List, Literal

# Third-Party
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MIN_ENCRYPTION_KEY_LENGTH = 16


class Settings(BaseSettings):
    """Gateway settings loaded from the environment.

    Attributes are grouped by concern: HTTP server, persistence, shared cache,
    credential vault, API keys, rate/quota enforcement, upstream calls, usage
    recording, protocol negotiation, logging and metrics.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # Server
    app_name: str = "WordPress MCP Gateway"
    host: str = "127.0.0.1"
    port: int = 4444

    # Persistence
    database_url: str = "sqlite:///./wpgateway.db"
    db_echo: bool = False

    # Shared cache
    cache_type: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_prefix: str = "wpgw:"

    # Credential vault
    encryption_key: SecretStr = Field(default=SecretStr("change-me-to-a-long-random-root-key"), description="Root key for connection secrets")
    encryption_salt: str = "wp-mcp-saas-salt"
    argon2id_time_cost: int = 3
    argon2id_memory_cost: int = 65536
    argon2id_parallelism: int = 1
    password_hash_iterations: int = 100_000

    # API keys
    api_key_prefix: str = "wp_mcp"
    api_key_random_length: int = 32
    api_key_display_chars: int = 8
    api_key_cache_ttl: int = 3600

    # Rate limiting / quotas
    rate_limit_window: int = 60
    rate_limit_skew_buffer: int = 10
    default_plan: str = "free"
    default_monthly_limit: int = 100
    default_rate_limit: int = 10

    # Upstream and request budgets (seconds)
    upstream_timeout: float = 30.0
    request_timeout: float = 60.0

    # Usage recording
    usage_queue_size: int = 1000
    usage_retention_days: int = 90

    # Protocol
    protocol_versions: Annotated[List[str], NoDecode] = ["2024-11-05", "2025-03-26", "2025-06-18"]
    server_name: str = "wordpress-mcp-gateway"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Metrics
    enable_metrics: bool = True
    metrics_excluded_handlers: str = ""

    @field_validator("encryption_key")
    @classmethod
    def _check_encryption_key(cls, value: SecretStr) -> SecretStr:
        """Reject root keys too short to derive a meaningful AES key from.

        Args:
            value: The configured root key.

        Returns:
            SecretStr: The unchanged key.

        Raises:
            ValueError: If the key is shorter than the minimum length.

        Examples:
            >>> Settings(encryption_key="short", _env_file=None)  # doctest: +ELLIPSIS
            Traceback (most recent call last):
            ...
            pydantic_core._pydantic_core.ValidationError: ...
        """
        if len(value.get_secret_value()) < MIN_ENCRYPTION_KEY_LENGTH:
            raise ValueError(f"encryption_key must be at least {MIN_ENCRYPTION_KEY_LENGTH} characters")
        return value

    @field_validator("protocol_versions", mode="before")
    @classmethod
    def _parse_protocol_versions(cls, value: Any) -> Any:
        """Accept a comma-separated string as well as a JSON list.

        Args:
            value: Raw value from the environment.

        Returns:
            Any: A list of versions when given a CSV string, else the input.

        Examples:
            >>> Settings._parse_protocol_versions("2024-11-05, 2025-03-26")
            ['2024-11-05', '2025-03-26']
            >>> Settings._parse_protocol_versions('["2025-06-18"]')
            ['2025-06-18']
        """
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @property
    def latest_protocol_version(self) -> str:
        """Newest protocol version this gateway speaks.

        Returns:
            str: The last entry of ``protocol_versions``.
        """
        return self.protocol_versions[-1]

    @property
    def database_settings(self) -> Dict[str, Any]:
        """Keyword arguments for :func:`sqlalchemy.create_engine`.

        Returns:
            Dict[str, Any]: ``connect_args`` and ``echo`` for the engine.
        """
        connect_args: Dict[str, Any] = {}
        if self.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        return {"connect_args": connect_args, "echo": self.db_echo}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: A cached instance of the Settings class.

    Examples:
        >>> get_settings() is get_settings()
        True
    """
    return Settings()


settings = get_settings()
