"""Stable public API for building tooling on top of termprobe.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
from collections.abc import Callable

from termprobe.core.catalog import load_catalog
from termprobe.core.detector import DEFAULT_DETECTION_TIMEOUT_S, detect_termcap
from termprobe.core.errors import (
    CatalogLoadError,
    CatalogValidationError,
    ProviderNotStartedError,
    RawModeError,
    TermprobeError,
    TransportError,
    TransportWriteError,
)
from termprobe.core.extract import normalize_color
from termprobe.core.model import DetectionResult, FeatureDescriptor, LoadedCatalog
from termprobe.transports.base import InputSource, OutputSink
from termprobe.transports.rawmode import RawModeController
from termprobe.transports.terminal import TerminalInput, TerminalOutput

__all__ = [
    "TermprobeError",
    "CatalogLoadError",
    "CatalogValidationError",
    "ProviderNotStartedError",
    "TransportError",
    "RawModeError",
    "TransportWriteError",
    "DetectionResult",
    "FeatureDescriptor",
    "LoadedCatalog",
    "InputSource",
    "OutputSink",
    "TerminalInput",
    "TerminalOutput",
    "RawModeController",
    "DEFAULT_DETECTION_TIMEOUT_S",
    "detect_termcap",
    "load_catalog",
    "normalize_color",
    "TermcapProvider",
    "use_termcap",
]

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[DetectionResult], None]

_current_provider: contextvars.ContextVar[TermcapProvider | None] = contextvars.ContextVar(
    "termprobe_provider", default=None
)


class TermcapProvider:
    """Run detection once and expose the result to everything inside it.

    Use as an async context manager. While detection is in flight,
    ``capabilities`` reports ``ready=False`` with default values; subscribers
    are called once with the finished result. Raw mode, when a
    ``set_raw_mode`` callback is given, is switched on before detection and
    left on afterwards.
    """

    def __init__(
        self,
        *,
        source: InputSource | None = None,
        sink: OutputSink | None = None,
        timeout_s: float = DEFAULT_DETECTION_TIMEOUT_S,
        initial_capabilities: DetectionResult | None = None,
        set_raw_mode: Callable[[bool], None] | None = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._timeout_s = timeout_s
        self._initial = initial_capabilities
        self._set_raw_mode = set_raw_mode
        self._capabilities = initial_capabilities if initial_capabilities is not None else DetectionResult()
        self._subscribers: list[ResultCallback] = []
        self._task: asyncio.Task[DetectionResult] | None = None
        self._token: contextvars.Token[TermcapProvider | None] | None = None
        self._started = False

    @property
    def capabilities(self) -> DetectionResult:
        if not self._started:
            raise ProviderNotStartedError("TermcapProvider has not been started; use 'async with'.")
        return self._capabilities

    async def __aenter__(self) -> TermcapProvider:
        # Raw mode first: a failure here must leave no provider published.
        if self._initial is None and self._set_raw_mode is not None:
            self._set_raw_mode(True)

        self._token = _current_provider.set(self)
        self._started = True
        if self._initial is not None:
            return self

        self._task = asyncio.create_task(
            detect_termcap(self._source, self._sink, self._timeout_s)
        )
        self._task.add_done_callback(self._on_detected)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                LOGGER.debug("Detection abandoned before completion")
        if self._token is not None:
            _current_provider.reset(self._token)
            self._token = None

    async def wait_ready(self) -> DetectionResult:
        if not self._started:
            raise ProviderNotStartedError("TermcapProvider has not been started; use 'async with'.")
        if self._task is not None:
            return await asyncio.shield(self._task)
        return self._capabilities

    def subscribe(self, callback: ResultCallback) -> Callable[[], None]:
        """Call ``callback`` with the finished result; returns an unsubscribe function."""
        if self._capabilities.ready:
            callback(self._capabilities)
            return lambda: None

        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _on_detected(self, task: asyncio.Task[DetectionResult]) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            LOGGER.error("Terminal capability detection failed: %s", task.exception())
            return
        self._capabilities = task.result()
        subscribers, self._subscribers = self._subscribers, []
        for callback in subscribers:
            callback(self._capabilities)


def use_termcap() -> DetectionResult:
    """Return the capabilities of the enclosing ``TermcapProvider``."""
    provider = _current_provider.get()
    if provider is None:
        raise ProviderNotStartedError("use_termcap must be used within a TermcapProvider")
    return provider.capabilities
