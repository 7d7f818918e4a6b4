"""Immersion ("velvet") state machine.

Two states, INACTIVE and ACTIVE. The session snapshot carries the previous
state; each turn yields the next state and the reason for it:

ACTIVE   -> INACTIVE  ``stabilize_exit`` | ``lane_shift_exit``
ACTIVE   -> ACTIVE    ``hold`` (eligible lane) | ``carry`` (any other lane)
INACTIVE -> ACTIVE    ``entry``
INACTIVE -> INACTIVE  ``no``

On medium or high risk immersion is blocked: an active session leaves with
``forced_exit`` and an inactive one stays out with ``blocked``.
"""

from __future__ import annotations

from dataclasses import dataclass

from turncore.contracts import Intent, LatentDesire, NormalizedTurn, SessionSnapshot
from turncore.policy.config import VelvetPolicy
from turncore.policy.lexicon import DesireLexicon
from turncore.runtime.coerce import norm_token, safe_str

REASON_ENTRY = "entry"
REASON_NO = "no"
REASON_BLOCKED = "blocked"
REASON_HOLD = "hold"
REASON_CARRY = "carry"
REASON_STABILIZE_EXIT = "stabilize_exit"
REASON_LANE_SHIFT_EXIT = "lane_shift_exit"
REASON_FORCED = "forced"
REASON_FORCED_EXIT = "forced_exit"


@dataclass(frozen=True)
class VelvetState:
    active: bool
    since: int
    reason: str


def count_entry_votes(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    lane: str,
    nyx_confidence: float,
    desire: LatentDesire,
    policy: VelvetPolicy,
    lexicon: DesireLexicon,
) -> int:
    signals = turn.turn_signals
    wants_depth = turn.action in policy.depth_actions or bool(lexicon.depth.search(safe_str(turn.text, 1400)))
    previous_lane = norm_token(session.lane)
    repeated_topic = bool(
        previous_lane
        and lane == previous_lane
        and turn.year is not None
        and turn.year == session.last_year
    )
    accepted_suggestion = bool(
        signals.has_payload
        and signals.payload_actionable
        and (signals.payload_action or signals.payload_year is not None)
    )
    votes = (
        wants_depth,
        repeated_topic,
        accepted_suggestion,
        nyx_confidence >= policy.nyx_confidence_min,
        desire in (LatentDesire.COMFORT, LatentDesire.CURIOSITY),
    )
    return sum(1 for vote in votes if vote)


def step_velvet(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    lane: str,
    intent: Intent,
    nyx_confidence: float,
    desire: LatentDesire,
    now_ms: int,
    policy: VelvetPolicy,
    lexicon: DesireLexicon,
    *,
    allowed: bool = True,
) -> VelvetState:
    """Advance the immersion state for one turn.

    ``lane`` is the canonical lane of the turn (payload, turn, then session).
    When ``allowed`` is false immersion is blocked regardless of votes.
    """

    lane = norm_token(lane)
    eligible = lane in policy.eligible_lanes or bool(turn.action)
    previous_lane = norm_token(session.lane)

    if not allowed:
        if session.velvet_mode:
            return VelvetState(False, session.velvet_since, REASON_FORCED_EXIT)
        return VelvetState(False, 0, REASON_BLOCKED)

    if session.velvet_mode:
        since = session.velvet_since
        if intent is Intent.STABILIZE:
            return VelvetState(False, since, REASON_STABILIZE_EXIT)
        if previous_lane and lane and lane != previous_lane:
            return VelvetState(False, since, REASON_LANE_SHIFT_EXIT)
        if eligible:
            return VelvetState(True, since or now_ms, REASON_HOLD)
        return VelvetState(True, since, REASON_CARRY)

    if eligible:
        votes = count_entry_votes(turn, session, lane, nyx_confidence, desire, policy, lexicon)
        if votes >= policy.entry_votes:
            return VelvetState(True, now_ms, REASON_ENTRY)
    return VelvetState(False, 0, REASON_NO)


def force_velvet(session: SessionSnapshot, enabled: bool, now_ms: int) -> VelvetState:
    if enabled:
        since = session.velvet_since if session.velvet_mode and session.velvet_since else now_ms
        return VelvetState(True, since, REASON_FORCED)
    return VelvetState(False, session.velvet_since, REASON_FORCED_EXIT)


__all__ = [
    "REASON_ENTRY",
    "REASON_NO",
    "REASON_BLOCKED",
    "REASON_HOLD",
    "REASON_CARRY",
    "REASON_STABILIZE_EXIT",
    "REASON_LANE_SHIFT_EXIT",
    "REASON_FORCED",
    "REASON_FORCED_EXIT",
    "VelvetState",
    "count_entry_votes",
    "step_velvet",
    "force_velvet",
]
