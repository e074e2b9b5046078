"""
Command-line interface for ut181a.

This module provides command-line tools for the UT181A multimeter:

- Listing connected meters
- Listing the records stored on the meter
- Downloading records as CSV files
- Monitoring live measurements

The CLI is built using the Click framework. Long operations (listing,
downloading, monitoring) are cancelled with Ctrl-C; the session with the
meter is always closed on the way out.

Examples
--------
Download records 1 and 3 into ./data:
```bash
$ ut181a get 1 3 -o data
```

Try the commands without a meter attached:
```bash
$ ut181a --mock list
```

CLI Tree
--------

```
$ ut181a --tree
cli
└── get
└── list
└── monitor
└── ports
```

See Also
--------
ut181a.device : Session, catalog, download and monitor components
"""

from .base import cli, main, tree_option

__all__ = ["cli", "main", "tree_option"]
