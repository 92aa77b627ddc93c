"""Tests for session configuration."""

import json

import pytest
from pydantic import ValidationError

from labrunner.config import (
    ConfigError,
    SessionConfig,
    build_config,
    load_user_config,
    parse_assignment,
    save_user_config,
)


class TestSessionConfig:
    """Test the immutable session configuration."""

    def test_defaults(self):
        config = SessionConfig()
        assert config.server_host == "127.0.0.1"
        assert config.server_port == 9999
        assert config.client_port == 9998
        assert config.client_root is None
        assert config.verbose is False

    def test_is_immutable(self, session_config):
        with pytest.raises(ValidationError):
            session_config.server_port = 1

    def test_init_data_excludes_local_fields(self, session_config):
        data = session_config.init_data(repo="owner/name", version="0.1.0")
        assert "serverHost" not in data
        assert "serverPort" not in data
        assert "clientRoot" not in data
        assert data["repo"] == "owner/name"
        assert data["version"] == "0.1.0"

    def test_init_data_keeps_everything_else(self, session_config):
        data = session_config.init_data(repo="owner/name", version="0.1.0")
        assert set(data) == {
            "clientHost", "clientPort", "verbose", "runner", "browsers", "repo", "version",
        }
        assert data["browsers"] == ["chrome", "firefox"]
        assert data["clientPort"] == 9998

    def test_copy_with_bound_port(self, session_config):
        updated = session_config.model_copy(update={"client_port": 7123})
        assert updated.init_data("r", "v")["clientPort"] == 7123
        assert session_config.client_port == 9998


class TestBuildConfig:
    """Test configuration merging."""

    def test_overrides_beat_user_file(self):
        config = build_config(
            {"serverHost": "cli.host", "serverPort": None},
            {"serverHost": "file.host", "serverPort": 9100},
        )
        assert config.server_host == "cli.host"
        assert config.server_port == 9100

    def test_extra_fields_kept(self):
        config = build_config({"timeout": 5}, {})
        assert config.init_data("r", "v")["timeout"] == 5

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError):
            build_config({"serverPort": "not-a-port"})


class TestUserConfigFile:
    """Test loading and saving the user config file."""

    def test_missing_file_is_empty(self, isolated_user_config):
        assert not isolated_user_config.exists()
        assert load_user_config() == {}

    def test_save_then_load(self, isolated_user_config):
        save_user_config({"serverHost": "10.0.0.5"})
        assert json.loads(isolated_user_config.read_text()) == {"serverHost": "10.0.0.5"}
        assert load_user_config() == {"serverHost": "10.0.0.5"}

    def test_corrupt_file_is_ignored(self, isolated_user_config):
        isolated_user_config.parent.mkdir(parents=True)
        isolated_user_config.write_text("{not json")
        assert load_user_config() == {}

    def test_non_object_is_ignored(self, isolated_user_config):
        isolated_user_config.parent.mkdir(parents=True)
        isolated_user_config.write_text("[1, 2]")
        assert load_user_config() == {}


class TestParseAssignment:
    """Test key=value parsing."""

    def test_json_values(self):
        assert parse_assignment("serverPort=9000") == ("serverPort", 9000)
        assert parse_assignment("verbose=true") == ("verbose", True)
        assert parse_assignment('browsers=["chrome"]') == ("browsers", ["chrome"])

    def test_plain_string(self):
        assert parse_assignment("serverHost=example.com") == ("serverHost", "example.com")

    def test_empty_value(self):
        assert parse_assignment("runner=") == ("runner", "")

    @pytest.mark.parametrize("text", ["novalue", "=value"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_assignment(text)
