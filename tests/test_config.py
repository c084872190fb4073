"""Tests for memory configuration."""

from pathlib import Path

import pytest
import yaml

from redmem.config import (
    DEFAULT_INDEX_NAME,
    DEFAULT_KEY_PREFIX,
    MemoryConfig,
    load_config,
    parse_config,
    resolve_env_vars,
    resolve_env_vars_optional,
)
from redmem.exceptions import MemoryConfigError
from redmem.xdg import config_candidates, get_xdg_config_path


def minimal(**overrides):
    data = {"redis": {"url": "redis://localhost:6379"}, "embedding": {"provider": "local"}}
    data.update(overrides)
    return data


def test_defaults():
    config = parse_config(minimal())

    assert isinstance(config, MemoryConfig)
    assert config.index_name == DEFAULT_INDEX_NAME
    assert config.key_prefix == DEFAULT_KEY_PREFIX
    assert config.auto_recall is False
    assert config.auto_capture is False
    assert config.embedding.fallback == "none"
    assert config.embedding.model is None
    assert config.redis.password is None


def test_camel_case_keys():
    config = parse_config(
        {
            "redis": {"url": "redis://cache:6379", "password": "pw", "tls": True},
            "embedding": {"provider": "openai", "apiKey": "sk-test", "baseUrl": "http://proxy/v1", "fallback": "local"},
            "indexName": "idx:custom",
            "keyPrefix": "custom:memory",
            "autoRecall": True,
            "autoCapture": True,
        }
    )

    assert config.redis.tls is True
    assert config.embedding.api_key == "sk-test"
    assert config.embedding.base_url == "http://proxy/v1"
    assert config.embedding.fallback == "local"
    assert config.index_name == "idx:custom"
    assert config.key_prefix == "custom:memory"
    assert config.auto_recall is True
    assert config.auto_capture is True


def test_snake_case_keys():
    config = parse_config(minimal(index_name="idx:snake", auto_recall=True))

    assert config.index_name == "idx:snake"
    assert config.auto_recall is True


class TestValidation:
    def test_missing_config(self):
        with pytest.raises(MemoryConfigError, match="memory config required"):
            parse_config(None)

    def test_missing_redis_url(self):
        with pytest.raises(MemoryConfigError, match="redis.url is required"):
            parse_config({"redis": {}, "embedding": {"provider": "local"}})

    def test_missing_embedding(self):
        with pytest.raises(MemoryConfigError, match="embedding config is required"):
            parse_config({"redis": {"url": "redis://localhost"}})

    def test_unknown_top_level_key(self):
        with pytest.raises(MemoryConfigError, match="unknown key"):
            parse_config(minimal(vectorStore="qdrant"))

    def test_unknown_nested_key(self):
        with pytest.raises(MemoryConfigError, match="embedding.temperature: unknown key"):
            parse_config(minimal(embedding={"provider": "local", "temperature": 0.2}))

    @pytest.mark.parametrize("provider", ["openai", "gemini"])
    def test_remote_provider_requires_api_key(self, provider):
        with pytest.raises(MemoryConfigError, match=f"apiKey is required for {provider}"):
            parse_config(minimal(embedding={"provider": provider}))

    def test_unknown_provider(self):
        with pytest.raises(MemoryConfigError):
            parse_config(minimal(embedding={"provider": "cohere"}))

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_config(None)


class TestEnvVars:
    def test_required_var_substituted(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "cache.internal")
        assert resolve_env_vars("redis://${REDIS_HOST}:6379") == "redis://cache.internal:6379"

    def test_required_var_unset(self, monkeypatch):
        monkeypatch.delenv("REDIS_HOST", raising=False)
        with pytest.raises(ValueError, match="Environment variable REDIS_HOST is not set"):
            resolve_env_vars("redis://${REDIS_HOST}")

    def test_optional_var_unset_is_empty(self, monkeypatch):
        monkeypatch.delenv("MISSING_KEY", raising=False)
        assert resolve_env_vars_optional("${MISSING_KEY}") == ""

    def test_optional_none(self):
        assert resolve_env_vars_optional(None) is None

    def test_url_env_var_in_config(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://from-env:6379")
        config = parse_config(minimal(redis={"url": "${REDIS_URL}"}))
        assert config.redis.url == "redis://from-env:6379"

    def test_unset_url_env_var_fails(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        with pytest.raises(MemoryConfigError, match="REDIS_URL is not set"):
            parse_config(minimal(redis={"url": "${REDIS_URL}"}))

    def test_api_key_env_var(self, monkeypatch):
        monkeypatch.setenv("OPENAI_KEY_FOR_TEST", "sk-env")
        config = parse_config(minimal(embedding={"provider": "openai", "apiKey": "${OPENAI_KEY_FOR_TEST}"}))
        assert config.embedding.api_key == "sk-env"

    def test_unset_api_key_env_var_for_remote_provider_fails(self, monkeypatch):
        monkeypatch.delenv("OPENAI_KEY_FOR_TEST", raising=False)
        with pytest.raises(MemoryConfigError, match="apiKey is required"):
            parse_config(minimal(embedding={"provider": "openai", "apiKey": "${OPENAI_KEY_FOR_TEST}"}))


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "memory.yaml"
        path.write_text(yaml.safe_dump(minimal(autoRecall=True)))

        config = load_config(path)

        assert config.auto_recall is True
        assert config.embedding.provider == "local"

    def test_load_json(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text('{"redis": {"url": "redis://x:6379"}, "embedding": {"provider": "local"}}')

        assert load_config(path).redis.url == "redis://x:6379"

    def test_missing_file(self, tmp_path):
        with pytest.raises(MemoryConfigError, match="Memory config not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "memory.yaml"
        path.write_text("redis: [unclosed")

        with pytest.raises(MemoryConfigError, match="Failed to parse"):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "memory.yaml"
        path.write_text("")

        with pytest.raises(MemoryConfigError, match="memory config required"):
            load_config(path)


class TestXdgPath:
    def test_prefers_legacy_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        legacy = tmp_path / ".redmem" / "memory.yaml"
        legacy.parent.mkdir()
        legacy.write_text("")

        assert get_xdg_config_path("memory.yaml") == legacy

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

        assert get_xdg_config_path("memory.yaml") == tmp_path / "xdg" / "redmem" / "memory.yaml"

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)

        assert get_xdg_config_path("memory.yaml") == tmp_path / ".config" / "redmem" / "memory.yaml"

    def test_candidates_order(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

        assert config_candidates("memory.yaml") == [
            tmp_path / ".redmem" / "memory.yaml",
            tmp_path / "xdg" / "redmem" / "memory.yaml",
            tmp_path / ".config" / "redmem" / "memory.yaml",
        ]
        assert config_candidates("memory.yaml", legacy_dir=False)[0] == tmp_path / "xdg" / "redmem" / "memory.yaml"
