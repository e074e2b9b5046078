# -*- coding: utf-8 -*-
"""# ut181a

Host-side tool for the UNI-T UT181A bench multimeter.

Connects to the meter over its USB serial bridge, lists and downloads the
records stored on the instrument, and streams live measurements.

- [Device](device/index.html): session handling, record listing/download and
  the live monitor, plus a simulated meter for testing.
- [Protocol](protocol/index.html): the binary frame codec and request/response
  link.
- [Types](types/index.html): record/sample data classes and the error taxonomy.
- [CLI](cli/index.html): the `ut181a` command.
"""

from ._version import __version__
