# -*- coding: utf-8 -*-
"""
Logging setup (loguru).

The console sink is for short diagnostics; full tracebacks and protocol
traces (TRACE level) go to the log file.
"""

import os
import sys
import traceback

from loguru import logger

from .defaults import DEFAULT_LOGLEVEL, HOME_DIR, SINGLE_LINE_ERR_LOG

CONSOLE_FORMAT = "<level>{level: <8}</level> | {message}"

_log_path = ""


def format_error_response():
    """Traceback of the exception being handled, for debug logging."""
    text = traceback.format_exc()
    if not SINGLE_LINE_ERR_LOG:
        return text
    return "\t".join(line.strip() for line in text.splitlines())


def log_default_path() -> str:
    return str(HOME_DIR / "ut181a.log")


def start_log(
    log_to_file=True,
    log_to_stdout=True,
    log_path=None,
    clear_prev=True,
    log_level=DEFAULT_LOGLEVEL,
):
    """
    Replace the loguru sinks with a log file and/or a stderr console sink.

    Arguments
    ---------
    log_to_file : bool
        Write to `log_path`.
    log_to_stdout : bool
        Write short, colourised messages to stderr.
    log_path : str, optional
        Log file, `log_default_path()` when empty.
    clear_prev : bool
        Delete the previous log file first. Ignored when not logging to file.
    log_level : str
        Minimum level for both sinks.
    """
    global _log_path
    log_path = os.path.abspath(log_path) if log_path else log_default_path()

    logger.remove()
    _log_path = ""

    if log_to_file:
        if clear_prev:
            clear_log(log_path)
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        logger.add(log_path, level=log_level, colorize=False)
        _log_path = log_path
    if log_to_stdout:
        logger.add(
            sys.stderr,
            level=log_level,
            format=CONSOLE_FORMAT,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )
    if _log_path:
        logger.debug("Logging to {}", _log_path)


def clear_log(log_path: str):
    """Delete the log file at `log_path`; a missing file is fine."""
    try:
        os.remove(log_path)
    except FileNotFoundError:
        pass
    except PermissionError:
        logger.error("Cannot clear log file {} (permission denied).", log_path)


def shutdown_log():
    global _log_path
    try:
        logger.remove()
    except ValueError:
        logger.exception("Error removing log sinks.")
    _log_path = ""


def get_log_filename() -> str:
    """Current log file, empty when not logging to file."""
    return _log_path
