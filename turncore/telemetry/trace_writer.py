from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from turncore.contracts import Cognition, DomainRouting

SCHEMA_VERSION = "turncore_telemetry_v1"
ROUTING_EVENT = "turncore.routing"

META_FIELDS = (
    "schema_version",
    "source",
    "session_id",
    "turn_index",
    "timestamp_ms",
    "policy_version",
    "policy_source",
    "policy_fingerprint",
)


def _default_serializer(obj: Any) -> Any:
    if hasattr(obj, "to_dict") and callable(getattr(obj, "to_dict")):
        return obj.to_dict()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def _inject_meta(event: dict[str, Any], meta: Mapping[str, Any]) -> dict[str, Any]:
    for key in META_FIELDS:
        if key not in event or event[key] is None:
            event[key] = meta.get(key)
    if event.get("schema_version") is None:
        event["schema_version"] = SCHEMA_VERSION
    return event


def _append_line(path: Path | str, event: Mapping[str, Any]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as handle:
        json.dump(event, handle, ensure_ascii=False, default=_default_serializer)
        handle.write("\n")


def write_telemetry_jsonl(path: Path | str, cog: Cognition, meta: Mapping[str, Any]) -> None:
    """Append ``cog.telemetry`` to ``path`` as one JSON line."""

    if cog.telemetry is None:
        return
    event = cog.telemetry.to_dict()
    event["trace"] = cog.trace
    _append_line(path, _inject_meta(event, meta))


def append_routing_event(path: Path | str, routing: DomainRouting, meta: Mapping[str, Any]) -> None:
    """Append one domain-routing decision next to the mediation telemetry.

    The line carries the same meta stamp as the mediation event of the turn,
    so both can be joined on ``session_id`` and ``turn_index``.
    """

    event: dict[str, Any] = {"event": ROUTING_EVENT}
    event.update(routing.to_dict())
    _append_line(path, _inject_meta(event, meta))


__all__ = ["SCHEMA_VERSION", "ROUTING_EVENT", "META_FIELDS", "write_telemetry_jsonl", "append_routing_event"]
