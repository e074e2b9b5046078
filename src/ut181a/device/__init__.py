# -*- coding: utf-8 -*-
"""
Meter access for ut181a.

The protocol components, leaves first:

- `transport`: byte transports (`SerialTransport`) and USB enumeration
- `session`: `SessionManager`, device selection and the OpenSession handshake
- `catalog`: `RecordCatalog`, the stored-record listing
- `downloader`: `RecordDownloader`, chunked record download and decoding
- `monitor`: `LiveMonitor`, the live measurement stream
- `ut181a`: the `UT181A` front-end used by the command line
- `mock`: a simulated meter for tests and demos

Examples
--------
```python
from ut181a.device import UT181A
from ut181a.protocol import CancellationToken

dmm = UT181A()
if dmm.open():
    try:
        dmm.list_records(CancellationToken(), sink=print)
    finally:
        dmm.close()
```
"""

from .catalog import RecordCatalog
from .device import Device
from .downloader import RecordDownloader
from .mock import MockUT181A, demo_meter
from .monitor import LiveMonitor, MonitorState
from .session import DeviceSession, SessionManager, select_candidate
from .transport import SerialTransport, Transport, enumerate_candidates
from .ut181a import UT181A

__all__ = [
    "Device",
    "DeviceSession",
    "LiveMonitor",
    "MockUT181A",
    "MonitorState",
    "RecordCatalog",
    "RecordDownloader",
    "SerialTransport",
    "SessionManager",
    "Transport",
    "UT181A",
    "demo_meter",
    "enumerate_candidates",
    "select_candidate",
]
