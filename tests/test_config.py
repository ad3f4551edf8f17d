"""Tests for configuration loading and validation."""

import json
import logging
from pathlib import Path

import pytest

from dcm_file_sort.exceptions import ConfigurationError
from dcm_file_sort.models.config import (
    Config,
    LogConfig,
    OtherConfig,
    PathGeneratorsConfig,
    PathGeneratorType,
    PathsConfig,
    config_from_dict,
    create_default_config,
    load_config,
    save_config,
)


def _write_toml(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


class TestDefaults:
    """Test default option values."""

    def test_other_defaults(self):
        other = OtherConfig()

        assert other.wait_time_millisec == 500
        assert other.io_timeout_millisec == 500
        assert other.copy_attempts == 100
        assert other.remove_attempts == 10
        assert other.mtime_delay_secs == 10
        assert other.limit_unique_filenames == 1000
        assert other.limit_max_processed_files == 1000
        assert other.recursive is True
        assert other.remove_empty_dirs is True

    def test_default_generator(self):
        assert Config().generator_type == PathGeneratorType.DEFAULT

    def test_retry_policies(self):
        config = Config(other=OtherConfig(copy_attempts=5, remove_attempts=2, io_timeout_millisec=250))
        copy_policy, remove_policy = config.retry_policies()

        assert copy_policy.attempts == 5
        assert remove_policy.attempts == 2
        assert copy_policy.delay == 0.25
        assert remove_policy.delay == 0.25

    @pytest.mark.parametrize("level,expected", [
        ("INFO", logging.INFO),
        ("debug", logging.DEBUG),
        ("TRACE", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("ERROR", logging.ERROR),
    ])
    def test_log_level_mapping(self, level, expected):
        assert Config(log=LogConfig(level=level)).log_level == expected


class TestLoadConfig:
    """Test reading configuration files."""

    def test_load_toml(self, tmp_path):
        path = _write_toml(tmp_path / "config.toml", """
[paths]
input_dir = "/data/in"
output_dir = "/data/out"
unknown_dir = "/data/unknown"

[path_generators]
dicom = "dicom_uzg"

[log]
level = "DEBUG"

[other]
copy_attempts = 7
recursive = false
""")
        config = load_config(path)

        assert config.paths.input_dir == Path("/data/in")
        assert config.generator_type == PathGeneratorType.UZG
        assert config.log.level == "DEBUG"
        assert config.other.copy_attempts == 7
        assert config.other.recursive is False
        assert config.other.remove_attempts == 10

    def test_load_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "paths": {"input_dir": "/a", "output_dir": "/b", "unknown_dir": "/c"},
        }))

        config = load_config(path)

        assert config.paths.output_dir == Path("/b")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path):
        path = _write_toml(tmp_path / "config.toml", "[paths\ninput_dir = ")

        with pytest.raises(ConfigurationError, match="Failed to parse"):
            load_config(path)

    def test_missing_paths_section(self):
        with pytest.raises(ConfigurationError, match=r"\[paths\]"):
            config_from_dict({"log": {"level": "INFO"}})

    def test_unknown_option_rejected(self):
        data = {
            "paths": {"input_dir": "/a", "output_dir": "/b", "unknown_dir": "/c"},
            "other": {"copy_attemps": 3},
        }
        with pytest.raises(ConfigurationError, match="copy_attemps"):
            config_from_dict(data)

    def test_wrong_type_rejected(self):
        data = {
            "paths": {"input_dir": "/a", "output_dir": "/b", "unknown_dir": "/c"},
            "other": {"copy_attempts": "many"},
        }
        with pytest.raises(ConfigurationError, match="integer"):
            config_from_dict(data)

    def test_bool_is_not_an_integer(self):
        data = {
            "paths": {"input_dir": "/a", "output_dir": "/b", "unknown_dir": "/c"},
            "other": {"copy_attempts": True},
        }
        with pytest.raises(ConfigurationError):
            config_from_dict(data)

    def test_expands_user(self):
        config = config_from_dict({
            "paths": {"input_dir": "~/in", "output_dir": "/b", "unknown_dir": "/c"},
        })
        assert "~" not in str(config.paths.input_dir)


class TestValidation:
    """Test Config.validate."""

    def _config(self, **other) -> Config:
        return Config(
            paths=PathsConfig(Path("/in"), Path("/out"), Path("/unknown")),
            other=OtherConfig(**other),
        )

    def test_valid(self):
        self._config().validate()

    def test_invalid_generator(self):
        config = self._config()
        config.path_generators = PathGeneratorsConfig(dicom="dicom_fancy")

        with pytest.raises(ConfigurationError, match="dicom_default, dicom_uzg"):
            config.validate()

    def test_invalid_log_level(self):
        config = self._config()
        config.log = LogConfig(level="LOUD")

        with pytest.raises(ConfigurationError, match="log level"):
            config.validate()

    @pytest.mark.parametrize("option", ["copy_attempts", "remove_attempts", "limit_max_processed_files"])
    def test_attempts_must_be_positive(self, option):
        with pytest.raises(ConfigurationError, match=option):
            self._config(**{option: 0}).validate()

    def test_negative_delay(self):
        with pytest.raises(ConfigurationError, match="wait_time_millisec"):
            self._config(wait_time_millisec=-1).validate()

    def test_output_inside_input(self):
        config = Config(paths=PathsConfig(Path("/data"), Path("/data/out"), Path("/unknown")))

        with pytest.raises(ConfigurationError, match="output_dir"):
            config.validate()

    def test_unknown_equals_input(self):
        config = Config(paths=PathsConfig(Path("/data"), Path("/out"), Path("/data")))

        with pytest.raises(ConfigurationError, match="unknown_dir"):
            config.validate()

    def test_input_inside_output_is_allowed(self):
        Config(paths=PathsConfig(Path("/out/in"), Path("/out"), Path("/unknown"))).validate()


class TestDirectories:
    """Test root creation and checks."""

    def test_create_dirs(self, tmp_path):
        config = Config(paths=PathsConfig(tmp_path / "i", tmp_path / "o" / "deep", tmp_path / "u"))

        config.create_dirs()

        assert (tmp_path / "o" / "deep").is_dir()
        config.check_roots()

    def test_check_roots_missing(self, tmp_path):
        config = Config(paths=PathsConfig(tmp_path / "i", tmp_path / "o", tmp_path / "u"))

        with pytest.raises(ConfigurationError, match="Not a directory"):
            config.check_roots()

    def test_create_dirs_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        config = Config(paths=PathsConfig(blocker / "in", tmp_path / "o", tmp_path / "u"))

        with pytest.raises(ConfigurationError, match="Unable to create"):
            config.create_dirs()


class TestSaveConfig:
    """Test writing configuration files."""

    def test_default_config_loads_back(self, tmp_path):
        path = tmp_path / "config.toml"

        created = create_default_config(path)
        loaded = load_config(path)

        assert loaded == created
        assert "[paths]" in path.read_text()
        assert "[other]" in path.read_text()

    def test_save_json(self, tmp_path):
        path = tmp_path / "config.json"
        config = Config(paths=PathsConfig(Path("/a"), Path("/b"), Path("/c")))

        save_config(config, path)

        data = json.loads(path.read_text())
        assert data["paths"]["input_dir"] == "/a"
        assert data["path_generators"]["dicom"] == "dicom_default"
