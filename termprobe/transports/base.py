"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

DataListener = Callable[[bytes], None]


class InputSource(Protocol):
    def isatty(self) -> bool:
        """Return True when the source is an interactive terminal."""

    def add_listener(self, listener: DataListener) -> None:
        """Deliver every chunk of received bytes to ``listener``."""

    def remove_listener(self, listener: DataListener) -> None:
        """Stop delivering chunks to ``listener``."""


class OutputSink(Protocol):
    def isatty(self) -> bool:
        """Return True when the sink is an interactive terminal."""

    def write(self, data: bytes) -> object:
        """Write all of ``data`` to the terminal."""
