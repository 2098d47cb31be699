"""Tests for the configuration system."""

from pathlib import Path

import pytest
import yaml

from colourcanvas.config import (
    ConfigError,
    ConfigValue,
    ValidationError,
    get_config,
    get_config_manager,
)


class TestConfigValue:

    def test_default(self):
        assert ConfigValue(default=3).get() == 3

    def test_env_var_takes_precedence(self, monkeypatch):
        value = ConfigValue(default=3, env_var="COLOUR_TEST_INT")
        value.set(5)
        monkeypatch.setenv("COLOUR_TEST_INT", "7")
        assert value.get() == 7

    def test_string_coercion(self):
        flag = ConfigValue(default=False)
        flag.set("yes")
        assert flag.get() is True

        items = ConfigValue(default=["a"])
        items.set("x,y")
        assert items.get() == ["x", "y"]

    def test_bad_integer(self):
        with pytest.raises(ValidationError):
            ConfigValue(default=1).set("many")

    def test_validator(self):
        value = ConfigValue(default=1, validator=lambda v: v > 0)
        with pytest.raises(ValidationError):
            value.set(0)


class TestConfigManager:

    def test_singleton(self):
        assert get_config_manager() is get_config_manager()

    def test_defaults(self):
        mgr = get_config_manager()
        assert mgr.get("channel.logs_dir") == "logs"
        assert mgr.get("channel.canvases_channel") == "Colour-Canvases"
        assert mgr.get("observability.log_level") == "warning"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("COLOUR_LOGS_DIR", "/srv/colour")
        assert get_config().channel.logs_dir.get() == "/srv/colour"

    def test_set_and_reset(self):
        mgr = get_config_manager()
        mgr.set("observability.log_format", "text")
        assert mgr.get("observability.log_format") == "text"
        mgr.reset()
        assert mgr.get("observability.log_format") == "json"

    def test_set_rejects_invalid_value(self):
        with pytest.raises(ValidationError):
            get_config_manager().set("observability.log_level", "loud")

    def test_invalid_path(self):
        mgr = get_config_manager()
        with pytest.raises(ConfigError):
            mgr.get("channel.nope")
        with pytest.raises(ConfigError):
            mgr.set("channel", "x")

    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "colourcanvas.yaml"
        path.write_text(yaml.dump({
            "channel": {"logs_dir": "/data/logs", "vote_prefix": "V-"},
            "observability": {"log_level": "debug"},
        }))
        mgr = get_config_manager()
        mgr.load_from_file(path)
        assert mgr.get("channel.logs_dir") == "/data/logs"
        assert mgr.get("channel.vote_prefix") == "V-"
        assert mgr.get("observability.log_level") == "debug"

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(tmp_path / "absent.yaml")

    def test_load_unknown_key(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("channel:\n  colour: red\n")
        with pytest.raises(ConfigError, match="channel.colour"):
            get_config_manager().load_from_file(path)

    @pytest.mark.parametrize("text", ["channel: [unclosed\n", "- a\n- b\n"])
    def test_load_malformed_file(self, tmp_path: Path, text):
        path = tmp_path / "bad.yaml"
        path.write_text(text)
        with pytest.raises(ConfigError):
            get_config_manager().load_from_file(path)

    def test_load_defaults_reads_project_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "colourcanvas.yaml").write_text("channel:\n  purchase_prefix: P-\n")
        mgr = get_config_manager()
        mgr.load_defaults()
        assert mgr.get("channel.purchase_prefix") == "P-"

    def test_validate(self, monkeypatch):
        mgr = get_config_manager()
        assert mgr.validate() == []
        monkeypatch.setenv("COLOUR_LOG_FORMAT", "xml")
        errors = mgr.validate()
        assert len(errors) == 1
        assert errors[0].startswith("observability.log_format")

    def test_export_schema(self):
        schema = get_config_manager().export_schema()
        logs_dir = schema["properties"]["channel"]["logs_dir"]
        assert logs_dir["env_var"] == "COLOUR_LOGS_DIR"
        assert logs_dir["type"] == "str"

    def test_to_yaml(self):
        data = yaml.safe_load(get_config().to_yaml())
        assert data["channel"]["vote_prefix"] == "Colour-Vote-"
