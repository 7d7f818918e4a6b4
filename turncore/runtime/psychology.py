"""Lightweight, deterministic read of the user's state from the turn text.

Nothing here is clinical. The estimates only steer posture: how much to say,
how firmly, and whether to slow down and ground the conversation first.
"""

from __future__ import annotations

from turncore.contracts import (
    Agency,
    CognitiveLoad,
    MacMode,
    NormalizedTurn,
    PsychologyState,
    Regulation,
    SessionSnapshot,
    SocialPressure,
)
from turncore.policy.config import StallPolicy
from turncore.policy.lexicon import PsychologyLexicon
from turncore.runtime.coerce import any_match, safe_str


def estimate_cognitive_load(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    now_ms: int,
    stall: StallPolicy,
    lexicon: PsychologyLexicon,
) -> CognitiveLoad:
    text = safe_str(turn.text, 1400)
    s = text.lower()
    score = 0
    if len(text) >= 900:
        score += 2
    elif len(text) >= 450:
        score += 1
    if text.count("?") >= 3:
        score += 1
    if any_match(lexicon.enumeration, s):
        score += 1
    if lexicon.technical.search(s):
        score += 1
    if lexicon.urgency.search(s):
        score += 1
    if session.last_advance_at and now_ms and now_ms - session.last_advance_at > stall.max_idle_ms:
        score += 1
    if score >= 4:
        return CognitiveLoad.HIGH
    if score >= 2:
        return CognitiveLoad.MEDIUM
    return CognitiveLoad.LOW


def estimate_regulation(turn: NormalizedTurn, lexicon: PsychologyLexicon) -> Regulation:
    s = safe_str(turn.text, 1400).lower()
    if lexicon.dysregulated.search(s):
        return Regulation.DYSREGULATED
    if lexicon.strained.search(s):
        return Regulation.STRAINED
    return Regulation.REGULATED


def estimate_agency(turn: NormalizedTurn, mode: MacMode, lexicon: PsychologyLexicon) -> Agency:
    s = safe_str(turn.text, 1400).lower()
    if lexicon.guided.search(s):
        return Agency.GUIDED
    if lexicon.autonomous.search(s):
        return Agency.AUTONOMOUS
    if mode is MacMode.USER:
        return Agency.AUTONOMOUS
    return Agency.GUIDED


def estimate_social_pressure(turn: NormalizedTurn, lexicon: PsychologyLexicon) -> SocialPressure:
    s = safe_str(turn.text, 1400).lower()
    if lexicon.pressure_high.search(s):
        return SocialPressure.HIGH
    if lexicon.pressure_medium.search(s):
        return SocialPressure.MEDIUM
    return SocialPressure.LOW


def estimate_psychology(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    mode: MacMode,
    now_ms: int,
    stall: StallPolicy,
    lexicon: PsychologyLexicon,
) -> PsychologyState:
    return PsychologyState(
        cognitive_load=estimate_cognitive_load(turn, session, now_ms, stall, lexicon),
        regulation=estimate_regulation(turn, lexicon),
        agency=estimate_agency(turn, mode, lexicon),
        social_pressure=estimate_social_pressure(turn, lexicon),
    )


def is_overloaded(state: PsychologyState) -> bool:
    return state.cognitive_load is CognitiveLoad.HIGH or state.social_pressure is SocialPressure.HIGH


__all__ = [
    "estimate_cognitive_load",
    "estimate_regulation",
    "estimate_agency",
    "estimate_social_pressure",
    "estimate_psychology",
    "is_overloaded",
]
