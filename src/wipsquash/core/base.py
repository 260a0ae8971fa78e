"""Model bases shared by config.py and log.py.

Sections that own resources (the logger and its sinks) are closed
together when the settings tree is closed.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    def close(self) -> None: ...


class BaseCloseable(BaseModel):
    """Closes every Closeable field, depth first through sections."""

    def close(self):
        for name, child in self:
            if not isinstance(child, Closeable):
                continue
            try:
                child.close()
            except Exception as e:
                # stderr: the logger may be what just failed to close
                print(f"Warning: closing {name} failed: {e}", file=sys.stderr)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """A section loaded from YAML, environment or command line."""


class BaseState(BaseCloseable):
    """A section filled in while a command runs."""


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
