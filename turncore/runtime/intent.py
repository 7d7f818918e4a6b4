from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from turncore.contracts import Intent, MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import StallPolicy
from turncore.policy.lexicon import IntentLexicon
from turncore.runtime.coerce import safe_str


@dataclass(frozen=True)
class IntentDecision:
    intent: Intent
    actionable: bool
    reason: str


def is_actionable(turn: NormalizedTurn) -> bool:
    """An explicit action or an actionable payload outranks anything the text says."""

    signals = turn.turn_signals
    if turn.action:
        return True
    if signals.payload_actionable and signals.has_payload and (signals.payload_action or signals.payload_year is not None):
        return True
    return bool(signals.payload_actionable and signals.text_empty and signals.has_payload)


def classify_intent(turn: NormalizedTurn, lexicon: IntentLexicon) -> IntentDecision:
    actionable = is_actionable(turn)
    if actionable:
        return IntentDecision(Intent.ADVANCE, True, "actionable")
    text = safe_str(turn.text, 1400).lower()
    if lexicon.stabilize.search(text):
        return IntentDecision(Intent.STABILIZE, False, "stabilize_cue")
    if lexicon.clarify.search(text):
        return IntentDecision(Intent.CLARIFY, False, "clarify_cue")
    return IntentDecision(Intent.CLARIFY, False, "default")


def detect_stall(session: SessionSnapshot, now_ms: int, policy: StallPolicy) -> bool:
    """True when the conversation has not advanced for too many turns or too long."""

    if session.turns_since_advance >= policy.max_turns_since_advance:
        return True
    if session.last_advance_at and now_ms - session.last_advance_at > policy.max_idle_ms:
        return True
    return False


def apply_stall_guard(intent: Intent, mode: MacMode, stalled: bool) -> Tuple[Intent, bool]:
    """Force CLARIFY on a stalled architect/transitional turn that is not advancing.

    Returns the (possibly replaced) intent and whether the guard fired.
    """

    if stalled and mode in (MacMode.ARCHITECT, MacMode.TRANSITIONAL) and intent is not Intent.ADVANCE:
        return Intent.CLARIFY, True
    return intent, False


__all__ = [
    "IntentDecision",
    "is_actionable",
    "classify_intent",
    "detect_stall",
    "apply_stall_guard",
]
