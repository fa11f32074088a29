"""Pattern rules for the Broadcast Tools monitor payload.

The ``values`` object returned by ``getexchanger_monitor.cgi`` has no
schema.  Sensors are announced by a marker key carrying a numeric index
(``T101``, ``M105``, ``VCLabel03`` ...) and their reading lives under a
companion key with a zero-padded two-digit index (``TempValue01``,
``MeterValue05``, ``VCValue03`` ...).

Each :class:`FieldRule` pairs a marker pattern with the extractor that
reads the companion key.  Marker families never overlap, so the order of
:data:`FIELD_RULES` does not affect decoding.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from btmon.api.errors import DecodeAnomaly

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

TEMP_UNIT_SUFFIX = " *F"


class SensorCategory(StrEnum):
    """Category tag used as the prefix of a decoded field name."""

    TEMP = "temp"
    METER = "meter"
    VC = "vc"
    STATUS = "status"
    RELAY = "relay"


# ---------------------------------------------------------------------------
# Typed accessors; never raise on a missing key or a type mismatch
# ---------------------------------------------------------------------------


def get_value(src: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Return ``src[key]`` or *default* when the key is absent."""
    return src.get(key, default)


def get_str(src: Mapping[str, Any], key: str, default: str = "") -> str:
    """Return ``src[key]`` if it is a string, otherwise *default*."""
    value = src.get(key)
    if isinstance(value, str):
        return value
    if value is not None:
        logger.debug("Expected string for %s, got %r", key, value)
    return default


_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


def parse_int(text: str, default: int = 0) -> int:
    """Parse *text* as a signed 64-bit base-10 integer, or return *default*.

    Only an optional sign followed by ASCII digits is accepted: no
    whitespace, no ``_`` separators, no other Unicode digits.
    """
    if _INT_RE.fullmatch(text) is None:
        logger.debug("Unparseable integer: %r", text)
        return default
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        logger.debug("Integer out of range: %r", text)
        return default
    return value


def companion_key(prefix: str, index: int) -> str:
    """Build the value key for *index*, e.g. ``companion_key("TempValue", 1) == "TempValue01"``."""
    return f"{prefix}{index:02d}"


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


def _temperature(src: Mapping[str, Any], index: int) -> int:
    """Read ``TempValueNN`` (e.g. ``"72 *F"``) as an integer; ``0`` if unparseable."""
    raw = get_str(src, companion_key("TempValue", index))
    return parse_int(raw.removesuffix(TEMP_UNIT_SUFFIX))


def _passthrough(prefix: str) -> Callable[[Mapping[str, Any], int], Any]:
    def _extract(src: Mapping[str, Any], index: int) -> Any:
        return get_value(src, companion_key(prefix, index))

    _extract.__name__ = f"_extract_{prefix}"
    return _extract


@dataclass(frozen=True)
class FieldRule:
    """Maps a marker-key pattern to a sensor category and value extractor."""

    pattern: re.Pattern[str]
    """Full-match pattern whose first group captures the sensor index."""

    category: SensorCategory

    extract: Callable[[Mapping[str, Any], int], Any]
    """Callable ``(values, index) -> value``."""

    def match(self, key: str) -> int | None:
        """Return the sensor index captured from *key*, or ``None`` if it does not match.

        Raises:
            DecodeAnomaly: The key matched but the captured index is not numeric.
        """
        m = self.pattern.fullmatch(key)
        if m is None:
            return None
        try:
            return int(m.group(1))
        except (IndexError, ValueError) as exc:
            raise DecodeAnomaly(f"{key}: no numeric index") from exc


def _marker(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"{prefix}([0-9]+)", re.ASCII)


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(_marker("T1"), SensorCategory.TEMP, _temperature),
    FieldRule(_marker("M1"), SensorCategory.METER, _passthrough("MeterValue")),
    FieldRule(_marker("VCLabel"), SensorCategory.VC, _passthrough("VCValue")),
    FieldRule(_marker("S1"), SensorCategory.STATUS, _passthrough("StatusIndicator")),
    FieldRule(_marker("R2"), SensorCategory.RELAY, _passthrough("RelayIndicator")),
)


def field_name(category: SensorCategory | str, index: int) -> str:
    """Return the decoded measurement name, e.g. ``temp_5``."""
    return f"{category}_{index}"
