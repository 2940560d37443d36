"""
Tests for configuration loading, validation and environment overrides.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import ConfigManager, ConfigurationError, DEFAULT_SEARCH_TYPES


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PROVIDER_API_KEY_NAME", "PROVIDER_API_KEY_PASSWORD", "PROVIDER_BASE_URL",
                 "PROVIDER_PROXY_URL", "PERSONA_VERIFIER_EMAILS"):
        monkeypatch.delenv(name, raising=False)
    yield
    ConfigManager.reset_instance()


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoading:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(str(tmp_path / "absent.yaml"))
        assert config.provider.search_types == DEFAULT_SEARCH_TYPES
        assert config.storage.local_quota_bytes == 5 * 1024 * 1024
        assert config.search.history_limit == 50
        assert config.api.verifier_emails == []

    def test_shipped_config_loads(self):
        config = ConfigManager(str(Path(__file__).parent.parent / "config.yaml"))
        assert config.provider.search_types["person"] == "PersonSearch"
        assert config.storage.storage_key == "persona_guest_data"

    def test_sections_are_parsed(self, tmp_path):
        path = write_config(tmp_path, """
provider:
  proxy_url: https://proxy.example.com/search
  timeout_seconds: 5
  search_types:
    criminal: CriminalSearchV3
storage:
  local_quota_bytes: 1024
search:
  history_limit: 10
api:
  verifier_emails: [" Reviewer@Example.com "]
""")
        config = ConfigManager(path)
        assert config.provider.proxy_url == "https://proxy.example.com/search"
        assert config.provider.timeout_seconds == 5
        assert config.provider.search_types["criminal"] == "CriminalSearchV3"
        assert config.provider.search_types["person"] == "PersonSearch"
        assert config.storage.local_quota_bytes == 1024
        assert config.search.history_limit == 10
        assert config.api.verifier_emails == ["reviewer@example.com"]

    def test_to_dict_omits_secrets(self, tmp_path):
        path = write_config(tmp_path, "provider:\n  api_key_name: name\n  api_key_password: secret\n")
        data = ConfigManager(path).to_dict()
        assert "api_key_password" not in data["provider"]
        assert "password" not in data["database"]


class TestValidation:

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "provider: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path)

    def test_non_mapping_document(self, tmp_path):
        path = write_config(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path)

    def test_unknown_category(self, tmp_path):
        path = write_config(tmp_path, "provider:\n  search_types:\n    horoscope: Stars\n")
        with pytest.raises(ConfigurationError, match="horoscope"):
            ConfigManager(path)

    def test_non_positive_quota(self, tmp_path):
        path = write_config(tmp_path, "storage:\n  local_quota_bytes: 0\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path)

    def test_unknown_log_level(self, tmp_path):
        path = write_config(tmp_path, "logging:\n  level: LOUD\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path)


class TestEnvironment:

    def test_provider_secrets_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PROVIDER_API_KEY_NAME", "env-name")
        monkeypatch.setenv("PROVIDER_API_KEY_PASSWORD", "env-secret")
        config = ConfigManager(str(tmp_path / "absent.yaml"))
        assert config.provider.api_key_name == "env-name"
        assert config.provider.api_key_password == "env-secret"

    def test_verifier_emails_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PERSONA_VERIFIER_EMAILS", "a@example.com, B@Example.com")
        config = ConfigManager(str(tmp_path / "absent.yaml"))
        assert config.is_verifier("b@example.com")
        assert config.is_verifier("A@EXAMPLE.COM")
        assert not config.is_verifier("c@example.com")

    def test_nobody_is_verifier_by_default(self, tmp_path):
        config = ConfigManager(str(tmp_path / "absent.yaml"))
        assert not config.is_verifier("anyone@example.com")
        assert not config.is_verifier(None)
