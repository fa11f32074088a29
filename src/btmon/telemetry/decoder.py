"""Decode the monitor ``values`` object into a flat measurement mapping."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from btmon.api.errors import DecodeAnomaly
from btmon.telemetry.fields import FIELD_RULES, field_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from btmon.telemetry.fields import FieldRule

logger = logging.getLogger(__name__)


class FieldDecoder:
    """Applies :data:`~btmon.telemetry.fields.FIELD_RULES` to a raw payload.

    Stateless: a single instance can be shared by every device poll.
    """

    def __init__(self, rules: Iterable[FieldRule] | None = None) -> None:
        self._rules: tuple[FieldRule, ...] = tuple(rules) if rules is not None else FIELD_RULES

    @property
    def rules(self) -> tuple[FieldRule, ...]:
        return self._rules

    def decode(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Decode *values* into ``{"<category>_<index>": value}``.

        Keys that match no rule are ignored.  A matching key whose
        companion value is missing decodes to ``None``.  An extractor that
        fails skips only that key.
        """
        fields: dict[str, Any] = {}
        for key in values:
            for rule in self._rules:
                try:
                    index = rule.match(key)
                    if index is None:
                        continue
                    fields[field_name(rule.category, index)] = self._extract(rule, values, index)
                except DecodeAnomaly as exc:
                    logger.debug("Skipping %s: %s", key, exc)
        return fields

    @staticmethod
    def _extract(rule: FieldRule, values: Mapping[str, Any], index: int) -> Any:
        try:
            return rule.extract(values, index)
        except Exception as exc:
            raise DecodeAnomaly(f"{rule.category} extractor failed: {exc}") from exc
