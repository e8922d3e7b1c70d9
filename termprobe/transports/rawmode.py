"""Raw-mode control for a local terminal using termios."""

from __future__ import annotations

import os
from typing import Any

from termprobe.core.errors import RawModeError


class RawModeController:
    """Switch a terminal fd between its original mode and cbreak without echo.

    Usable directly through ``set_raw_mode`` or as a context manager that
    restores the original attributes on exit. Non-terminal descriptors are
    left untouched.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._saved: list[Any] | None = None

    @property
    def enabled(self) -> bool:
        return self._saved is not None

    def set_raw_mode(self, enabled: bool) -> None:
        if not os.isatty(self.fd):
            return

        try:
            import termios
            import tty
        except ImportError as exc:
            raise RawModeError("This platform does not provide termios; raw mode is unavailable.") from exc

        try:
            if enabled and self._saved is None:
                saved = termios.tcgetattr(self.fd)
                tty.setcbreak(self.fd, termios.TCSANOW)
                self._saved = saved
            elif not enabled and self._saved is not None:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)
                self._saved = None
        except termios.error as exc:
            action = "enable" if enabled else "disable"
            raise RawModeError(f"Could not {action} raw mode on fd {self.fd}: {exc}") from exc

    def __enter__(self) -> RawModeController:
        self.set_raw_mode(True)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.set_raw_mode(False)
