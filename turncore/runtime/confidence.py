from __future__ import annotations

from turncore.contracts import Confidence, Intent, MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import ConfidenceWeights
from turncore.policy.lexicon import IntentLexicon
from turncore.runtime.coerce import clamp01, safe_str


def score_confidence(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    mode: MacMode,
    intent: Intent,
    weights: ConfidenceWeights,
    lexicon: IntentLexicon,
) -> Confidence:
    """Estimate how sure the user is (``user``) and how sure the assistant can be (``nyx``)."""

    signals = turn.turn_signals
    text = safe_str(turn.text, 1400).strip().lower()
    payload_anchored = signals.payload_actionable and signals.has_payload and (
        bool(signals.payload_action) or signals.payload_year is not None
    )

    user = weights.user_base
    if turn.action or payload_anchored:
        user += weights.user_actionable
    if signals.text_empty and signals.has_payload and signals.payload_actionable:
        user += weights.user_silent_payload
    if lexicon.uncertainty.search(text):
        user += weights.user_uncertainty
    if lexicon.doubt.search(text):
        user += weights.user_doubt

    nyx = weights.nyx_base
    if intent is Intent.ADVANCE:
        nyx += weights.nyx_advance
    elif intent is Intent.STABILIZE:
        nyx += weights.nyx_stabilize
    if (
        turn.action
        and turn.action == session.last_action
        and turn.year is not None
        and turn.year == session.last_year
    ):
        nyx += weights.nyx_repeat
    if mode in (MacMode.ARCHITECT, MacMode.TRANSITIONAL):
        nyx += weights.nyx_directive_mode
    elif mode is MacMode.USER:
        nyx += weights.nyx_user_mode

    return Confidence(user=round(clamp01(user), 4), nyx=round(clamp01(nyx), 4))


__all__ = ["score_confidence"]
