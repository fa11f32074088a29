"""Device telemetry: field decoding, per-device polling, fleet coordination."""

from __future__ import annotations

from btmon.telemetry.decoder import FieldDecoder
from btmon.telemetry.fields import FIELD_RULES, FieldRule, SensorCategory
from btmon.telemetry.fleet import CollectingSink, FleetCoordinator, TelemetrySink
from btmon.telemetry.poller import RECORD_NAME, DevicePoller, MeasurementRecord

__all__ = [
    "FIELD_RULES",
    "RECORD_NAME",
    "CollectingSink",
    "DevicePoller",
    "FieldDecoder",
    "FieldRule",
    "FleetCoordinator",
    "MeasurementRecord",
    "SensorCategory",
    "TelemetrySink",
]
