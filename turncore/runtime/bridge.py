from __future__ import annotations

from dataclasses import dataclass

from turncore.contracts import Bridge, NormalizedTurn, SessionSnapshot
from turncore.runtime.coerce import norm_token

DEFAULT_LANE = "general"
LANE_ACTION_SWITCH = "switch_lane"


@dataclass(frozen=True)
class LaneDecision:
    lane: str
    reason: str
    bridge: Bridge
    lane_action: str = ""


def canonical_lane(turn: NormalizedTurn, session: SessionSnapshot) -> tuple[str, str]:
    """Resolve the lane for this turn and where it came from."""

    for source, raw in (
        ("payload", turn.turn_signals.payload_lane),
        ("turn", turn.lane),
        ("session", session.lane),
    ):
        token = norm_token(raw)
        if token:
            return token, source
    return DEFAULT_LANE, "default"


def resolve_lane(turn: NormalizedTurn, session: SessionSnapshot) -> LaneDecision:
    lane, reason = canonical_lane(turn, session)
    signals = turn.turn_signals
    previous = norm_token(session.lane)

    chip_label = norm_token(signals.payload_label)
    if signals.payload_action.lower() == "chip" or (signals.payload_intent == "select" and signals.payload_label):
        bridge = Bridge(
            enabled=True,
            kind="chip_select",
            lane_from=previous,
            lane_to=lane,
            reason="chip_select",
            chip_label=chip_label,
        )
        return LaneDecision(lane=lane, reason=reason, bridge=bridge, lane_action=LANE_ACTION_SWITCH)

    if previous and lane != previous:
        bridge = Bridge(enabled=True, kind="lane_switch", lane_from=previous, lane_to=lane, reason="lane_switch")
        return LaneDecision(lane=lane, reason=reason, bridge=bridge, lane_action=LANE_ACTION_SWITCH)

    return LaneDecision(lane=lane, reason=reason, bridge=Bridge())


__all__ = [
    "DEFAULT_LANE",
    "LANE_ACTION_SWITCH",
    "LaneDecision",
    "canonical_lane",
    "resolve_lane",
]
