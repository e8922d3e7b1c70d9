"""Terminal capability detection.

All queries from the catalog are written in one batch; replies are matched
against the whole accumulated input until the device-attributes reply (the
sentinel) arrives or the timeout elapses. Either way the caller gets a
finished ``DetectionResult``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from termprobe.core.catalog import catalog_queries, load_catalog
from termprobe.core.extract import extract_value
from termprobe.core.model import DetectionResult, FeatureDescriptor
from termprobe.transports.base import InputSource, OutputSink

LOGGER = logging.getLogger(__name__)

DEFAULT_DETECTION_TIMEOUT_S = 1.0


class _DetectionRun:
    """State owned by a single in-flight detection."""

    def __init__(
        self,
        source: InputSource,
        features: tuple[FeatureDescriptor, ...],
        future: asyncio.Future[DetectionResult],
    ) -> None:
        self.source = source
        self.features = features
        self.future = future
        self.buffer = b""
        self.matched: set[str] = set()
        self.values: dict[str, Any] = {}
        self.timer: asyncio.TimerHandle | None = None
        self.listening = False

    def listen(self) -> None:
        self.source.add_listener(self.on_data)
        self.listening = True

    def on_data(self, chunk: bytes) -> None:
        if self.future.done():
            return

        self.buffer += chunk
        sentinel_seen = False
        for feature in self.features:
            if feature.id in self.matched:
                continue
            match = feature.pattern.search(self.buffer)
            if match is None:
                continue
            self.matched.add(feature.id)
            if feature.is_sentinel:
                sentinel_seen = True
                continue
            value = extract_value(feature, match)
            if feature.field is not None:
                self.values[feature.field] = value
            LOGGER.debug("Terminal answered %s: %r", feature.id, value)

        if sentinel_seen:
            LOGGER.debug("Sentinel reply received after %d bytes", len(self.buffer))
            self.finalize()

    def on_timeout(self) -> None:
        if not self.future.done():
            missing = [f.id for f in self.features if f.id not in self.matched]
            LOGGER.debug("Detection timed out; unanswered: %s", ", ".join(missing))
        self.timer = None
        self.finalize()

    def finalize(self) -> None:
        self.release()
        if not self.future.done():
            self.future.set_result(DetectionResult(ready=True, **self.values))

    def release(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.listening:
            self.source.remove_listener(self.on_data)
            self.listening = False


async def detect_termcap(
    source: InputSource | None = None,
    sink: OutputSink | None = None,
    timeout_s: float = DEFAULT_DETECTION_TIMEOUT_S,
    *,
    features: tuple[FeatureDescriptor, ...] | None = None,
) -> DetectionResult:
    """Query the terminal and return the capabilities it reports.

    The caller must already have the terminal in raw mode; this function
    never changes it. Non-interactive sources and sinks yield the default
    result immediately without any I/O. Write failures and missing replies
    degrade to defaults instead of raising.
    """
    if source is None or sink is None or not source.isatty() or not sink.isatty():
        return DetectionResult(ready=True)

    if features is None:
        features = load_catalog().features

    loop = asyncio.get_running_loop()
    future: asyncio.Future[DetectionResult] = loop.create_future()
    run = _DetectionRun(source, features, future)
    run.listen()
    run.timer = loop.call_later(timeout_s, run.on_timeout)

    try:
        sink.write(catalog_queries(features))
    except Exception as exc:
        LOGGER.warning("Could not send terminal queries: %s", exc)
        run.finalize()

    try:
        return await future
    finally:
        run.release()
