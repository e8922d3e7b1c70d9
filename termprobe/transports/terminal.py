"""File-descriptor transports for a local terminal, driven by asyncio."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import IO

from termprobe.core.errors import TransportWriteError
from termprobe.transports.base import DataListener

LOGGER = logging.getLogger(__name__)

_READ_SIZE = 1024


class TerminalInput:
    """Input source reading raw bytes from a terminal file descriptor.

    The descriptor is registered with the running event loop only while at
    least one listener is attached.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._listeners: list[DataListener] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_file(cls, fileobj: IO[str] | IO[bytes]) -> TerminalInput:
        return cls(fileobj.fileno())

    def isatty(self) -> bool:
        return os.isatty(self.fd)

    def add_listener(self, listener: DataListener) -> None:
        if self._loop is None:
            loop = asyncio.get_running_loop()
            loop.add_reader(self.fd, self._on_readable)
            self._loop = loop
        self._listeners.append(listener)

    def remove_listener(self, listener: DataListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        if not self._listeners:
            self._detach()

    def _detach(self) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self.fd)
            self._loop = None

    def _on_readable(self) -> None:
        try:
            data = os.read(self.fd, _READ_SIZE)
        except BlockingIOError:
            return
        except OSError as exc:
            LOGGER.warning("Terminal read failed on fd %d: %s", self.fd, exc)
            self._detach()
            return

        if not data:
            LOGGER.debug("End of input on fd %d", self.fd)
            self._detach()
            return

        for listener in list(self._listeners):
            listener(data)


class TerminalOutput:
    """Output sink writing raw bytes to a terminal file descriptor."""

    def __init__(self, fd: int) -> None:
        self.fd = fd

    @classmethod
    def from_file(cls, fileobj: IO[str] | IO[bytes]) -> TerminalOutput:
        return cls(fileobj.fileno())

    def isatty(self) -> bool:
        return os.isatty(self.fd)

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        total = 0
        try:
            while total < len(view):
                total += os.write(self.fd, view[total:])
        except OSError as exc:
            raise TransportWriteError(f"Terminal write failed on fd {self.fd}: {exc}") from exc
        return total
