from __future__ import annotations

import dataclasses
import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel


def _serialize(obj: Any) -> Any:
    """Convert *obj* to a JSON-friendly structure.

    * :class:`pydantic.BaseModel` instances are dumped via
      :meth:`~pydantic.BaseModel.model_dump` with *exclude_none=True*.
    * Dataclass instances (e.g. measurement records) become dicts.
    * Exceptions become ``{"type": ..., "message": ...}``.
    * Lists are recursed element-wise.
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(exclude_none=True)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}
    if isinstance(obj, list):
        return [_serialize(item) for item in obj]
    if isinstance(obj, dict):
        return {key: _serialize(value) for key, value in obj.items()}
    return obj


def format_json_response(*, data: Any, command: str) -> str:
    """Return a JSON envelope for a successful response.

    The envelope has the shape::

        {
          "ok": true,
          "command": "<command>",
          "data": <serialised payload>,
          "timestamp": "<ISO-8601 UTC>"
        }
    """
    envelope: dict[str, Any] = {
        "ok": True,
        "command": command,
        "data": _serialize(data),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return json.dumps(envelope, indent=2, default=str)


def format_json_error(*, code: str, message: str, command: str) -> str:
    """Return a JSON envelope for an error response."""
    envelope: dict[str, Any] = {
        "ok": False,
        "command": command,
        "error": {"code": code, "message": message},
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return json.dumps(envelope, indent=2, default=str)
