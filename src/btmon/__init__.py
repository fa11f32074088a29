"""btmon: poll Broadcast Tools devices and decode their monitor telemetry."""

from __future__ import annotations

__version__ = "0.1.0"
