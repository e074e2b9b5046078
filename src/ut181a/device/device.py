"""Device base class.

Instrument front-ends derive from `Device` and implement `open`, `close` and
`is_connected`. Extra settings may be passed as keyword arguments; they are
set as attributes and checked against `required_config` on construction.

Examples
--------
```python
class PortMeter(Device):
    required_config = {"port": str}

    def open(self) -> bool:
        ...

PortMeter(port="/dev/ttyUSB0")
```
"""

from __future__ import annotations

from typing import Iterator

from loguru import logger


class Device:
    """Base class for instrument front-ends.

    Attributes
    ----------
    required_config : dict[str, type]
        Keyword settings the subclass needs, with their expected types
    """

    required_config: dict[str, type] = {}

    def __init__(self, **config_kwargs):
        for key, value in config_kwargs.items():
            setattr(self, key, value)
        problems = list(self._config_problems())
        if problems:
            msg = f"{self.__class__.__name__}: " + "; ".join(problems)
            logger.error(msg)
            raise ValueError(msg)

    def _config_problems(self) -> Iterator[str]:
        for key, expected in self.required_config.items():
            if not hasattr(self, key):
                yield f"missing required config key '{key}'"
                continue
            value = getattr(self, key)
            if not isinstance(value, expected):
                yield (
                    f"config key '{key}' is {type(value).__name__}, "
                    + f"expected {expected.__name__}"
                )

    def open(self, *args, **kwargs) -> bool:
        raise NotImplementedError()

    def close(self):
        raise NotImplementedError()

    def is_connected(self) -> bool:
        raise NotImplementedError()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        state = "connected" if self.is_connected() else "disconnected"
        return f"{self.__class__.__name__}({state})"
