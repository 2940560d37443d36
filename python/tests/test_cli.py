"""
Tests for the persona command line.
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import persona_cli
from config_manager import ConfigManager, get_config


@pytest.fixture
def custom_config(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "storage:\n"
        f"  local_data_dir: {tmp_path / 'guest'}\n"
        "search:\n"
        "  history_limit: 7\n"
        "logging:\n"
        "  level: WARNING\n",
        encoding="utf-8"
    )
    yield path
    ConfigManager.reset_instance()


class TestConfigOption:

    def test_config_file_replaces_loaded_default(self, custom_config, monkeypatch):
        # The default config is already loaded by importing the API module
        get_config()
        seen = {}

        def capture(services, args):
            seen['limit'] = services.config.search.history_limit
            seen['path'] = services.config.config_path

        monkeypatch.setattr(persona_cli, "cmd_history", capture)
        assert persona_cli.main(["--config", str(custom_config), "history"]) == 0
        assert seen == {'limit': 7, 'path': custom_config}

    def test_guest_data_goes_to_configured_directory(self, custom_config, tmp_path, capsys):
        assert persona_cli.main(["--config", str(custom_config), "guest", "on"]) == 0
        assert json.loads(capsys.readouterr().out)["guest_mode"] is True
        assert list((tmp_path / "guest").glob("*.json"))

        assert persona_cli.main(["--config", str(custom_config), "guest", "status"]) == 0
        assert json.loads(capsys.readouterr().out) == {"guest_mode": True}

        assert persona_cli.main(["--config", str(custom_config), "guest", "off"]) == 0
        assert not list((tmp_path / "guest").glob("*.json"))
