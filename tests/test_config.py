"""Tests for configuration storage"""

import json
import stat

import pytest

from xyzulu.config.config import ConfigError, ConfigManager, default_config_path
from xyzulu.config.schema import ProviderCredentials


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "nested" / "config.json"


def read_json(path):
    return json.loads(path.read_text())


class TestLoad:
    def test_missing_file_is_empty_config(self, config_path):
        manager = ConfigManager(config_path)

        config = manager.get_all_providers()
        assert config.providers == {}
        assert config.default_provider is None
        assert not config_path.exists()

    def test_corrupt_file_is_empty_config(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("{not json")

        manager = ConfigManager(config_path)

        assert manager.get_all_providers().providers == {}

    def test_non_object_document_is_empty_config(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("[1, 2, 3]")

        assert ConfigManager(config_path).get_all_providers().providers == {}

    def test_schema_mismatch_is_empty_config(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"providers": {"qwen": {"timeout": "soon"}}}))

        assert ConfigManager(config_path).get_all_providers().providers == {}

    def test_loads_new_format(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({
            "providers": {
                "OpenAI": {
                    "apiKey": "sk-openai-key-1",
                    "baseUrl": "https://proxy.example.com/v1",
                    "timeout": 5000,
                    "maxRetries": 2,
                    "customHeaders": {"X-Team": "core"},
                },
            },
            "defaultProvider": "OpenAI",
            "defaultModel": "gpt-4o",
        }))

        manager = ConfigManager(config_path)
        creds = manager.get_provider_config("openai")

        assert creds.api_key == "sk-openai-key-1"
        assert creds.base_url == "https://proxy.example.com/v1"
        assert creds.timeout == 5000
        assert creds.max_retries == 2
        assert creds.custom_headers == {"X-Team": "core"}
        assert manager.get_default_provider() == "openai"
        assert manager.get_default_model() == "gpt-4o"

    def test_env_var_sets_default_path(self, isolated_config):
        assert default_config_path() == isolated_config
        assert ConfigManager().config_path == isolated_config


class TestLegacyMigration:
    def test_migrates_and_rewrites_file(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"apiKey": "sk-old", "defaultModel": "qwen-turbo"}))

        manager = ConfigManager(config_path)

        assert manager.get_provider_key("qwen") == "sk-old"
        assert manager.get_default_provider() == "qwen"
        assert manager.get_default_model() == "qwen-turbo"
        assert read_json(config_path) == {
            "providers": {"qwen": {"apiKey": "sk-old"}},
            "defaultProvider": "qwen",
            "defaultModel": "qwen-turbo",
        }

    def test_legacy_without_model(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"apiKey": "sk-old"}))

        manager = ConfigManager(config_path)

        assert manager.get_default_model() is None
        assert "defaultModel" not in read_json(config_path)


class TestMutations:
    def test_set_provider_key_round_trip(self, config_path):
        manager = ConfigManager(config_path)

        manager.set_provider_key("openai", "sk-openai-key-1")
        manager.set_provider_key("qwen", "sk-qwen")

        assert manager.get_provider_key("openai") == "sk-openai-key-1"
        assert manager.get_provider_key("qwen") == "sk-qwen"
        assert ConfigManager(config_path).get_provider_key("openai") == "sk-openai-key-1"

    def test_set_provider_key_keeps_other_settings(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_config("qwen", ProviderCredentials(api_key="old", timeout=1000))

        manager.set_provider_key("qwen", "new")

        creds = manager.get_provider_config("qwen")
        assert creds.api_key == "new"
        assert creds.timeout == 1000

    def test_names_are_lowercased(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_key("OpenAI", "sk-openai-key-1")

        assert manager.get_provider_key("openai") == "sk-openai-key-1"
        assert manager.has_provider("OPENAI")
        assert list(read_json(config_path)["providers"]) == ["openai"]

    def test_file_permissions(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_key("qwen", "sk-qwen")

        assert stat.S_IMODE(config_path.stat().st_mode) == 0o600

    def test_set_default_provider_requires_entry(self, config_path):
        manager = ConfigManager(config_path)

        with pytest.raises(ConfigError):
            manager.set_default_provider("openai")

        manager.set_provider_key("openai", "sk-openai-key-1")
        manager.set_default_provider("openai")
        assert read_json(config_path)["defaultProvider"] == "openai"

    def test_set_default_model(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_default_model("qwen-max")

        assert ConfigManager(config_path).get_default_model() == "qwen-max"

    def test_remove_provider_clears_default(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_key("qwen", "sk-qwen")
        manager.set_default_provider("qwen")

        assert manager.remove_provider("qwen") is True
        assert manager.get_provider_key("qwen") is None
        assert manager.get_default_provider() is None
        assert manager.remove_provider("qwen") is False

    def test_has_provider_requires_key(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_config("qwen", ProviderCredentials(api_key=""))

        assert manager.has_provider("qwen") is False

    def test_get_all_providers_is_a_copy(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_provider_key("qwen", "sk-qwen")

        snapshot = manager.get_all_providers()
        snapshot.providers["qwen"].api_key = "tampered"

        assert manager.get_provider_key("qwen") == "sk-qwen"


class TestEffectiveConfig:
    def test_env_key_fills_missing_provider(self, config_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env-123")
        manager = ConfigManager(config_path)

        config = manager.effective_config()

        assert config.providers["openai"].api_key == "sk-from-env-123"
        assert manager.get_provider_key("openai") is None
        assert not config_path.exists()

    def test_stored_key_wins(self, config_path, monkeypatch):
        monkeypatch.setenv("DASHSCOPE_API_KEY", "sk-env")
        manager = ConfigManager(config_path)
        manager.set_provider_key("qwen", "sk-stored")

        assert manager.effective_config().providers["qwen"].api_key == "sk-stored"

    def test_env_key_fills_empty_stored_key(self, config_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env-key-12345")
        manager = ConfigManager(config_path)
        manager.set_provider_config("anthropic", ProviderCredentials(api_key="", timeout=2000))

        creds = manager.effective_config().providers["anthropic"]

        assert creds.api_key == "sk-ant-env-key-12345"
        assert creds.timeout == 2000
