"""Memory plugin configuration.

Settings are read from a YAML (or JSON) file. Keys may be written in snake_case or in
camelCase as in host plugin manifests (``indexName``,
``autoRecall``, ``apiKey``...). Unknown keys are rejected.

String values may reference environment variables as ``${VAR}``. The Redis URL must
resolve; optional secrets (password, API key, base URL) resolve to an empty string
when the variable is unset.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import MemoryConfigError
from .xdg import get_xdg_config_path

EmbeddingProviderType = Literal["openai", "gemini", "local", "auto"]
EmbeddingFallbackType = Literal["openai", "gemini", "local", "none"]

EMBEDDING_PROVIDERS = ("openai", "gemini", "local", "auto")

DEFAULT_INDEX_NAME = "idx:redmem:memories"
DEFAULT_KEY_PREFIX = "redmem:memory"
CONFIG_FILENAME = "memory.yaml"

# Used for index creation until the embedding provider reports its real dimension
DEFAULT_VECTOR_DIM = 1536

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Substitute ``${VAR}`` references, failing if a variable is unset or empty."""

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        env_value = os.environ.get(name)
        if not env_value:
            raise ValueError(f"Environment variable {name} is not set")
        return env_value

    return _ENV_VAR_PATTERN.sub(_replace, value)


def resolve_env_vars_optional(value: Optional[str]) -> Optional[str]:
    """Substitute ``${VAR}`` references, using an empty string for unset variables."""
    if not value:
        return None
    if "${" not in value:
        return value
    return _ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)


def get_default_vector_dim() -> int:
    return DEFAULT_VECTOR_DIM


class _Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, str_strip_whitespace=True)


class RedisSettings(_Settings):
    """Redis Stack connection settings."""

    url: str
    password: Optional[str] = None
    tls: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def _resolve_url(cls, value: str) -> str:
        return resolve_env_vars(value)

    @field_validator("password")
    @classmethod
    def _resolve_password(cls, value: Optional[str]) -> Optional[str]:
        return resolve_env_vars_optional(value)


class EmbeddingSettings(_Settings):
    """Embedding provider selection."""

    provider: EmbeddingProviderType = "auto"
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model: Optional[str] = None
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    fallback: EmbeddingFallbackType = "none"
    dimension: Optional[int] = Field(default=None, gt=0)

    @field_validator("api_key", "base_url")
    @classmethod
    def _resolve_optional(cls, value: Optional[str]) -> Optional[str]:
        return resolve_env_vars_optional(value)

    @model_validator(mode="after")
    def _require_api_key(self):
        if self.provider in ("openai", "gemini") and not self.api_key:
            raise ValueError(f"embedding.apiKey is required for {self.provider} provider")
        return self


class MemoryConfig(_Settings):
    """Top-level memory plugin configuration."""

    redis: RedisSettings
    embedding: EmbeddingSettings
    index_name: str = Field(default=DEFAULT_INDEX_NAME, alias="indexName")
    key_prefix: str = Field(default=DEFAULT_KEY_PREFIX, alias="keyPrefix")
    auto_capture: bool = Field(default=False, alias="autoCapture")
    auto_recall: bool = Field(default=False, alias="autoRecall")


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "config"
        message = item["msg"]
        if item["type"] == "extra_forbidden":
            message = "unknown key"
        parts.append(f"{location}: {message}")
    return "; ".join(parts)


def parse_config(data: Any) -> MemoryConfig:
    """Validate a raw config mapping.

    Raises:
        MemoryConfigError: If the config is missing, malformed or references unset env vars
    """
    if not isinstance(data, dict):
        raise MemoryConfigError("memory config required")
    if "redis" not in data or not isinstance(data.get("redis"), dict) or "url" not in data["redis"]:
        raise MemoryConfigError("redis.url is required")
    if not data.get("embedding"):
        raise MemoryConfigError("embedding config is required")

    try:
        return MemoryConfig.model_validate(data)
    except ValidationError as e:
        raise MemoryConfigError(f"Invalid memory config: {_format_validation_error(e)}") from e


def get_config_path() -> Path:
    return get_xdg_config_path(CONFIG_FILENAME)


def load_config(path: Optional[Path] = None) -> MemoryConfig:
    """Load memory configuration from a YAML or JSON file.

    Args:
        path: Path to the config file. If None, uses the default XDG location

    Returns:
        Validated MemoryConfig

    Raises:
        MemoryConfigError: If the file is missing, unreadable or invalid
    """
    if path is None:
        path = get_config_path()

    if not path.exists():
        raise MemoryConfigError(f"Memory config not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise MemoryConfigError(f"Failed to parse memory config at {path}: {e}") from e

    return parse_config(data)
