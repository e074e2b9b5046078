# -*- coding: utf-8 -*-
"""
Utility functions and constants for ut181a.

- Default settings (`defaults`)
- Configuration file handling (`config`)
- Logging configuration (`logging`)
- Record export (`save`)

Examples
--------
Saving a downloaded record:
```python
from ut181a.util import save_record
save_record(record, "~/records")
```

See Also
--------
ut181a.util.logging : Logging configuration
ut181a.util.save : Record export
"""

from .config import ConfigError, MeterConfig, load_config
from .defaults import (
    DEFAULT_CHUNK_RETRIES,
    DEFAULT_LOGLEVEL,
    DEFAULT_TIMEOUT,
    POLL_TIMEOUT,
    SINGLE_LINE_ERR_LOG,
    TEST_LOGLEVEL,
)
from .logging import (
    clear_log,
    format_error_response,
    get_log_filename,
    log_default_path,
    shutdown_log,
    start_log,
)
from .save import record_metadata, save_record

__all__ = [
    "DEFAULT_CHUNK_RETRIES",
    "DEFAULT_LOGLEVEL",
    "DEFAULT_TIMEOUT",
    "POLL_TIMEOUT",
    "SINGLE_LINE_ERR_LOG",
    "TEST_LOGLEVEL",
    "ConfigError",
    "MeterConfig",
    "load_config",
    "clear_log",
    "format_error_response",
    "get_log_filename",
    "log_default_path",
    "shutdown_log",
    "start_log",
    "record_metadata",
    "save_record",
]
