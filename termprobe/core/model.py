"""Core data models used across catalog, detector, and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class FeatureDescriptor:
    id: str
    name: str
    query: bytes
    pattern: re.Pattern[bytes]
    extract: str
    field: str | None = None
    min_level: int = 2

    @property
    def is_sentinel(self) -> bool:
        return self.extract == "sentinel"


@dataclass(frozen=True)
class LoadedCatalog:
    features: tuple[FeatureDescriptor, ...]

    @property
    def sentinel(self) -> FeatureDescriptor:
        return self.features[-1]


@dataclass(frozen=True)
class DetectionResult:
    """Capabilities reported by the terminal.

    Every optional field stays at its "unknown/unsupported" default unless
    the terminal answered the corresponding query before detection finished.
    """

    ready: bool = False
    background_color: str | None = None
    terminal_name: str | None = None
    kitty_protocol_supported: bool = False
    enhanced_key_disambiguation_supported: bool = False


RESULT_FIELDS: tuple[str, ...] = (
    "background_color",
    "terminal_name",
    "kitty_protocol_supported",
    "enhanced_key_disambiguation_supported",
)
