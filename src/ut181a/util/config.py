"""Meter configuration.

Defaults come from `ut181a.util.defaults`. An optional INI file can override
them, one key per field, in a `[ut181a]` section:

```ini
[ut181a]
serial = 1234567890
baudrate = 9600
timeout = 1.0
chunk_retries = 3
save_dir = ~/ut181a-records
log_level = DEBUG
```

Unknown keys are ignored with a warning. Command-line options override the
file.
"""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from loguru import logger
from mashumaro import DataClassDictMixin

from .defaults import (
    DEFAULT_BAUDRATE,
    DEFAULT_CHUNK_RETRIES,
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOGLEVEL,
    DEFAULT_SAVE_DIR,
    DEFAULT_TIMEOUT,
    HANDSHAKE_TIMEOUT,
    POLL_TIMEOUT,
    USB_PID,
    USB_VID,
)

SECTION = "ut181a"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    pass


@dataclass
class MeterConfig(DataClassDictMixin):
    """Settings for talking to the meter.

    Attributes
    ----------
    serial : str, optional
        Serial string of the meter to open, needed when several are attached
    port : str, optional
        Serial port to use directly, skipping USB enumeration
    usb_vid, usb_pid : int
        USB identity used to enumerate meters
    baudrate : int
        Serial link speed
    timeout : float
        Time to wait for one response frame (s)
    handshake_timeout : float
        Time to wait for the OpenSession ack (s)
    poll_timeout : float
        Time to wait for one live sample before counting an idle tick (s)
    chunk_retries : int
        Re-requests of a chunk that failed its checksum
    save_dir : str
        Directory for exported records
    log_level : str
        loguru level name
    """

    serial: Optional[str] = None
    port: Optional[str] = None
    usb_vid: int = USB_VID
    usb_pid: int = USB_PID
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT
    handshake_timeout: float = HANDSHAKE_TIMEOUT
    poll_timeout: float = POLL_TIMEOUT
    chunk_retries: int = DEFAULT_CHUNK_RETRIES
    save_dir: str = DEFAULT_SAVE_DIR
    log_level: str = DEFAULT_LOGLEVEL

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        validators = {
            "baudrate": (self.baudrate > 0, "Baud rate must be positive"),
            "timeout": (self.timeout > 0, "Timeout must be positive"),
            "handshake_timeout": (
                self.handshake_timeout > 0,
                "Handshake timeout must be positive",
            ),
            "poll_timeout": (self.poll_timeout > 0, "Poll timeout must be positive"),
            "chunk_retries": (
                self.chunk_retries >= 0,
                "Chunk retries cannot be negative",
            ),
            "log_level": (
                self.log_level.upper() in LOG_LEVELS,
                f"Log level must be one of {', '.join(LOG_LEVELS)}",
            ),
        }
        for param, (valid, message) in validators.items():
            if not valid:
                raise ConfigError(f"{message} (got {getattr(self, param)})")
        self.log_level = self.log_level.upper()

    def updated(self, **overrides) -> MeterConfig:
        """Copy with the given (non-None) fields replaced."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return MeterConfig.from_dict(data)


def _convert(name: str, raw: str, typ: type):
    if typ is int:
        return int(raw, 0)
    if typ is float:
        return float(raw)
    if name == "save_dir":
        return str(Path(raw).expanduser())
    return raw


_FIELD_TYPES = {
    "serial": str,
    "port": str,
    "usb_vid": int,
    "usb_pid": int,
    "baudrate": int,
    "timeout": float,
    "handshake_timeout": float,
    "poll_timeout": float,
    "chunk_retries": int,
    "save_dir": str,
    "log_level": str,
}


def load_config(path: Optional[str | Path] = None) -> MeterConfig:
    """Read the INI file at `path` (default `~/.ut181a/config.ini`).

    A missing default file gives the defaults; a missing explicit file, a
    malformed value or an out-of-range value raises ConfigError.
    """
    explicit = path is not None
    path = Path(path).expanduser() if explicit else DEFAULT_CONFIG_PATH
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file {path} not found")
        return MeterConfig()

    parser = ConfigParser()
    parser.read(path)
    if SECTION not in parser:
        logger.warning("Config file {} has no [{}] section, using defaults", path, SECTION)
        return MeterConfig()

    known = {f.name for f in fields(MeterConfig)}
    values = {}
    for key, raw in parser[SECTION].items():
        if key not in known:
            logger.warning("Ignoring unknown config key '{}' in {}", key, path)
            continue
        try:
            values[key] = _convert(key, raw.strip(), _FIELD_TYPES[key])
        except ValueError as e:
            raise ConfigError(f"Bad value for '{key}' in {path}: {raw!r}") from e

    config = MeterConfig(**values)
    logger.debug("Loaded config from {}", path)
    return config
