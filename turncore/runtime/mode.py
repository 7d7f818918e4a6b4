from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from turncore.contracts import MacMode, NormalizedTurn, SessionSnapshot, parse_mac_mode
from turncore.policy.config import ModeWeights
from turncore.policy.lexicon import ModeLexicon
from turncore.runtime.coerce import any_match, clamp01, safe_str

STABILITY_STEADY = "steady"
STABILITY_SWITCHED = "switched"
STABILITY_HELD = "held"


@dataclass(frozen=True)
class ModeScores:
    architect: int = 0
    user: int = 0
    transitional: int = 0


@dataclass(frozen=True)
class ModeDecision:
    mode: MacMode
    scores: ModeScores
    reasons: Tuple[str, ...]
    confidence: float
    stability: str = STABILITY_STEADY
    candidate: Optional[MacMode] = None
    source: str = "implicit"


# Ordered decision table; the first matching row picks the mode. ``None`` falls
# through to the architect default.
_DECISION_TABLE: Tuple[Tuple[str, Callable[[ModeScores, ModeWeights], bool], MacMode], ...] = (
    ("transitional", lambda s, w: s.transitional >= w.transitional_threshold, MacMode.TRANSITIONAL),
    ("architect_margin", lambda s, w: s.architect >= s.user + w.margin, MacMode.ARCHITECT),
    ("user_margin", lambda s, w: s.user >= s.architect + w.margin, MacMode.USER),
)


def score_mode_signals(text: str, weights: ModeWeights, lexicon: ModeLexicon) -> Tuple[ModeScores, List[str]]:
    """Score the architect and user signal families over ``text``."""

    s = safe_str(text, 1400).strip().lower()
    if not s:
        return ModeScores(), []
    a = u = 0
    why: List[str] = []
    if lexicon.directive.search(s):
        a += weights.directive
        why.append("architect:directive")
    if lexicon.constraint.search(s):
        a += weights.constraint
        why.append("architect:constraints")
    if any_match(lexicon.enumeration, s):
        a += weights.enumeration
        why.append("architect:enumeration")
    if lexicon.technical.search(s):
        a += weights.technical
        why.append("architect:technical")
    if lexicon.uncertainty.search(s):
        u += weights.uncertainty
        why.append("user:uncertainty")
    if lexicon.emotion.search(s):
        u += weights.emotion
        why.append("user:emotion")
    t = 0
    if a > 0 and u > 0:
        t = weights.transitional_bonus
        why.append("transitional:mixed_signals")
    return ModeScores(architect=a, user=u, transitional=t), why


def decide_mode(scores: ModeScores, weights: ModeWeights) -> Tuple[MacMode, str]:
    for row, predicate, mode in _DECISION_TABLE:
        if predicate(scores, weights):
            return mode, row
    return MacMode.ARCHITECT, "default_architect"


def mode_confidence(mode: MacMode, scores: ModeScores, *, decided: bool = True) -> float:
    if not decided:
        return 0.55
    if mode is MacMode.TRANSITIONAL:
        return 0.65
    if mode is MacMode.ARCHITECT:
        return clamp01(0.5 + 0.05 * scores.architect)
    return clamp01(0.5 + 0.05 * scores.user)


def classify_mode(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    weights: ModeWeights,
    lexicon: ModeLexicon,
    *,
    hold_mode: bool = False,
) -> ModeDecision:
    """Pick the conversational mode for ``turn``.

    A well-formed client override wins outright. Otherwise the weighted signal
    scores go through the decision table, falling back to architect. With
    ``hold_mode`` a low-confidence switch away from the session's previous mode
    is suppressed and the previous mode is kept.
    """

    previous = parse_mac_mode(session.mac_mode)
    override = parse_mac_mode(turn.mac_mode_override) or parse_mac_mode(turn.turn_signals.mac_mode_override)
    scores, why = score_mode_signals(turn.text, weights, lexicon)

    if override is not None:
        stability = STABILITY_STEADY if previous in (None, override) else STABILITY_SWITCHED
        return ModeDecision(
            mode=override,
            scores=scores,
            reasons=tuple(["override:client", *why][:8]),
            confidence=1.0,
            stability=stability,
            candidate=override,
            source="override",
        )

    candidate, row = decide_mode(scores, weights)
    confidence = mode_confidence(candidate, scores, decided=row != "default_architect")
    reasons = tuple([*why, f"table:{row}"][:8])

    if hold_mode and previous is not None and previous != candidate and confidence < weights.hold_confidence:
        return ModeDecision(
            mode=previous,
            scores=scores,
            reasons=reasons,
            confidence=confidence,
            stability=STABILITY_HELD,
            candidate=candidate,
            source="held",
        )

    stability = STABILITY_STEADY if previous in (None, candidate) else STABILITY_SWITCHED
    return ModeDecision(
        mode=candidate,
        scores=scores,
        reasons=reasons,
        confidence=confidence,
        stability=stability,
        candidate=candidate,
    )


__all__ = [
    "STABILITY_STEADY",
    "STABILITY_SWITCHED",
    "STABILITY_HELD",
    "ModeScores",
    "ModeDecision",
    "score_mode_signals",
    "decide_mode",
    "mode_confidence",
    "classify_mode",
]
