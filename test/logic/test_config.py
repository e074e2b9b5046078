"""Tests for meter configuration handling."""

from configparser import ConfigParser

import pytest

from ut181a.util import ConfigError, MeterConfig, load_config
from ut181a.util.defaults import DEFAULT_CHUNK_RETRIES, USB_VID


@pytest.fixture
def config_file(tmp_path):
    """Write a config.ini and return its path."""

    def write(values, section="ut181a"):
        parser = ConfigParser()
        parser[section] = values
        path = tmp_path / "config.ini"
        with open(path, "w") as f:
            parser.write(f)
        return path

    return write


def test_defaults():
    config = MeterConfig()
    assert config.chunk_retries == DEFAULT_CHUNK_RETRIES
    assert config.usb_vid == USB_VID
    assert config.serial is None


def test_load_values(config_file, tmp_path):
    path = config_file(
        {
            "serial": "1234ABCD",
            "usb_vid": "0x1a86",
            "timeout": "2.5",
            "chunk_retries": "5",
            "save_dir": str(tmp_path / "out"),
            "log_level": "debug",
        }
    )
    config = load_config(path)
    assert config.serial == "1234ABCD"
    assert config.usb_vid == 0x1A86
    assert config.timeout == 2.5
    assert config.chunk_retries == 5
    assert config.save_dir == str(tmp_path / "out")
    assert config.log_level == "DEBUG"


def test_unknown_keys_are_ignored(config_file, log_messages):
    config = load_config(config_file({"colour": "blue", "baudrate": "19200"}))
    assert config.baudrate == 19200
    assert any("colour" in m["message"] for m in log_messages)


def test_missing_section_gives_defaults(config_file):
    assert load_config(config_file({"serial": "X"}, section="other")) == MeterConfig()


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.ini")


def test_missing_default_file(tmp_path, monkeypatch):
    monkeypatch.setattr("ut181a.util.config.DEFAULT_CONFIG_PATH", tmp_path / "none.ini")
    assert load_config() == MeterConfig()


@pytest.mark.parametrize(
    "values",
    [
        {"timeout": "fast"},
        {"chunk_retries": "-1"},
        {"baudrate": "0"},
        {"log_level": "LOUD"},
    ],
)
def test_invalid_values(config_file, values):
    with pytest.raises(ConfigError):
        load_config(config_file(values))


def test_updated_ignores_none():
    config = MeterConfig(serial="A", chunk_retries=1)
    new = config.updated(serial=None, port="/dev/ttyUSB3", chunk_retries=2)
    assert new.serial == "A"
    assert new.port == "/dev/ttyUSB3"
    assert new.chunk_retries == 2
    assert config.chunk_retries == 1


def test_updated_validates():
    with pytest.raises(ConfigError):
        MeterConfig().updated(timeout=0)
