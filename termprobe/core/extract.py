"""Extraction rules turning a matched terminal response into result values."""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from typing import Any

from termprobe.core.model import FeatureDescriptor

# Largest value representable with 1..4 hex digits.
_CHANNEL_MAX = {1: 0xF, 2: 0xFF, 3: 0xFFF, 4: 0xFFFF}


def _scale_channel(hex_value: str) -> int:
    value = int(hex_value, 16)
    width = len(hex_value)
    if width == 2:
        return value
    scaled = value / _CHANNEL_MAX[width] * 255 if width in _CHANNEL_MAX else value
    # Half-up rounding, not round()'s banker's rounding.
    return int(math.floor(scaled + 0.5))


def normalize_color(r_hex: str, g_hex: str, b_hex: str) -> str:
    """Normalize 1-4 digit hex channels from an OSC color reply to ``#rrggbb``.

    >>> normalize_color("1a", "1a", "1a")
    '#1a1a1a'
    >>> normalize_color("f", "0", "0")
    '#ff0000'
    >>> normalize_color("1a1a", "1a1a", "1a1a")
    '#1a1a1a'
    """
    return "#" + "".join(f"{_scale_channel(c):02x}" for c in (r_hex, g_hex, b_hex))


def _extract_flag(feature: FeatureDescriptor, match: re.Match[bytes]) -> Any:
    return True


def _extract_color(feature: FeatureDescriptor, match: re.Match[bytes]) -> Any:
    r, g, b = (group.decode("ascii") for group in match.group(1, 2, 3))
    return normalize_color(r, g, b)


def _extract_text(feature: FeatureDescriptor, match: re.Match[bytes]) -> Any:
    return match.group(1).decode("utf-8", errors="replace")


def _extract_level(feature: FeatureDescriptor, match: re.Match[bytes]) -> Any:
    return int(match.group(1)) >= feature.min_level


EXTRACTORS: dict[str, Callable[[FeatureDescriptor, re.Match[bytes]], Any]] = {
    "flag": _extract_flag,
    "color": _extract_color,
    "text": _extract_text,
    "level": _extract_level,
}


def extract_value(feature: FeatureDescriptor, match: re.Match[bytes]) -> Any:
    """Return the value a matched response contributes to its result field."""
    return EXTRACTORS[feature.extract](feature, match)
