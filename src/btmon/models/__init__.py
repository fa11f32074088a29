"""Pydantic models for btmon configuration."""

from __future__ import annotations

from btmon.models.config import DESCRIPTION, SAMPLE_CONFIG, AppSettings, Endpoint

__all__ = [
    "DESCRIPTION",
    "SAMPLE_CONFIG",
    "AppSettings",
    "Endpoint",
]
