# -*- coding: utf-8 -*-

import pathlib

# USB identity of the meter's CP2110 USB-UART bridge
USB_VID = 0x10C4
USB_PID = 0xEA80

DEFAULT_BAUDRATE = 9600
DEFAULT_TIMEOUT = 1.0  # seconds, single frame receive
HANDSHAKE_TIMEOUT = 2.0  # seconds, OpenSession ack
CLOSE_TIMEOUT = 0.5  # seconds, CloseSession ack (best effort)
POLL_TIMEOUT = 0.5  # seconds, one live-sample poll
DEFAULT_CHUNK_RETRIES = 3  # re-requests of a corrupt chunk before giving up
READ_SIZE = 256  # max bytes per transport read

DEFAULT_LOGLEVEL = "INFO"
TEST_LOGLEVEL = "TRACE"
SINGLE_LINE_ERR_LOG = False  # reformat tracebacks into a single line

HOME_DIR = pathlib.Path.home() / ".ut181a"
DEFAULT_CONFIG_PATH = HOME_DIR / "config.ini"
DEFAULT_SAVE_DIR = "."
