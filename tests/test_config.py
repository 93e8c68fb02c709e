"""Tests for cartograph.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the flat runtime
Config: validate_config() and load_config().
"""

import logging

import pytest

from cartograph.config import Config, load_config, validate_config

# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): world, URL and formatter checks."""

    def test_defaults_valid(self):
        validate_config(Config())

    def test_world_normalised(self):
        config = Config(world="  DragonRealms ")
        validate_config(config)
        assert config.world == "dragonrealms"

    def test_unknown_world(self):
        with pytest.raises(ValueError, match="Unknown world 'shattered'"):
            validate_config(Config(world="shattered"))

    def test_remote_url_scheme(self):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(remote_url="ftp://example.com/map.json"))

    def test_remote_url_needs_host(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(remote_url="https:///map.json"))

    def test_empty_formatter_command(self):
        with pytest.raises(ValueError, match="Formatter command cannot be empty"):
            validate_config(Config(formatter_command=[]))

    def test_disabled_formatter_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cartograph.config"):
            validate_config(Config(formatter_enabled=False))
        assert "formatter disabled" in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() precedence: CLI > env > YAML > default."""

    def test_zero_config(self):
        config = load_config()
        assert config.world == "gemstone"
        assert config.work_dir is None
        assert config.formatter_command == ["standardrb", "--fix-unsafely"]
        assert config.batch_size == 500
        assert config.formatter_timeout == 300.0
        assert config.ok_exit_codes == [0, 1]

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("CARTOGRAPH_WORLD", "dragonrealms")
        monkeypatch.setenv("CARTOGRAPH_OUTPUT_DIR", "/srv/mapdb")
        monkeypatch.setenv("CARTOGRAPH_FORMATTER", "rubocop -A")
        monkeypatch.setenv("CARTOGRAPH_BATCH_SIZE", "100")
        monkeypatch.setenv("CARTOGRAPH_FORMATTER_TIMEOUT", "12.5")

        config = load_config()

        assert config.world == "dragonrealms"
        assert config.output_dir == "/srv/mapdb"
        assert config.formatter_command == ["rubocop", "-A"]
        assert config.batch_size == 100
        assert config.formatter_timeout == 12.5

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("CARTOGRAPH_OUTPUT_DIR", "/from/env")
        config = load_config(output_dir="/from/cli")
        assert config.output_dir == "/from/cli"

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("CARTOGRAPH_WORK_DIR", "/from/env")
        config = load_config(yaml_fallbacks={"work_dir": "/from/yaml"})
        assert config.work_dir == "/from/env"

    def test_yaml_fallbacks(self):
        config = load_config(
            yaml_fallbacks={
                "world": "dragonrealms",
                "formatter_command": ["rubocop"],
                "batch_size": 50,
                "formatter_timeout": None,
                "max_parallel_writes": 4,
            }
        )
        assert config.world == "dragonrealms"
        assert config.formatter_command == ["rubocop"]
        assert config.batch_size == 50
        assert config.formatter_timeout is None
        assert config.max_parallel_writes == 4

    def test_no_format_flag(self, monkeypatch):
        monkeypatch.setenv("CARTOGRAPH_FORMATTER_ENABLED", "true")
        assert load_config(no_format=True).formatter_enabled is False

    def test_formatter_enabled_env(self, monkeypatch):
        monkeypatch.setenv("CARTOGRAPH_FORMATTER_ENABLED", "off")
        assert load_config().formatter_enabled is False

    @pytest.mark.parametrize("value", ["0", "20000", "many"])
    def test_invalid_batch_size(self, monkeypatch, value):
        monkeypatch.setenv("CARTOGRAPH_BATCH_SIZE", value)
        with pytest.raises(ValueError, match="CARTOGRAPH_BATCH_SIZE"):
            load_config()

    @pytest.mark.parametrize("value", ["0", "-3", "soon"])
    def test_invalid_timeout(self, monkeypatch, value):
        monkeypatch.setenv("CARTOGRAPH_FORMATTER_TIMEOUT", value)
        with pytest.raises(ValueError, match="CARTOGRAPH_FORMATTER_TIMEOUT"):
            load_config()

    def test_formatter_settings_model(self):
        settings = load_config(
            yaml_fallbacks={"batch_size": 25}
        ).formatter_settings()
        assert settings.batch_size == 25
        assert settings.command == ["standardrb", "--fix-unsafely"]
