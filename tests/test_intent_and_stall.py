from __future__ import annotations

from turncore.contracts import Budget, Intent, MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import StallPolicy
from turncore.policy.lexicon import DEFAULT_LEXICON
from turncore.runtime.intent import apply_stall_guard, classify_intent, detect_stall, is_actionable
from turncore.runtime.mediator import mediate


def _turn(**raw) -> NormalizedTurn:
    return NormalizedTurn.from_value(raw)


def test_explicit_action_is_always_actionable() -> None:
    decision = classify_intent(_turn(text="I'm stuck, explain", action="top10"), DEFAULT_LEXICON.intent)
    assert decision.intent is Intent.ADVANCE
    assert decision.actionable is True
    assert decision.reason == "actionable"


def test_payload_actionability_needs_an_anchor() -> None:
    anchored = _turn(turnSignals={"hasPayload": True, "payloadActionable": True, "payloadAction": "top10"})
    silent = _turn(turnSignals={"hasPayload": True, "payloadActionable": True, "textEmpty": True})
    dangling = _turn(text="hello", turnSignals={"payloadActionable": True})
    assert is_actionable(anchored)
    assert is_actionable(silent)
    assert not is_actionable(dangling)


def test_text_cues_pick_stabilize_then_clarify() -> None:
    lex = DEFAULT_LEXICON.intent
    assert classify_intent(_turn(text="I'm stuck on this"), lex).reason == "stabilize_cue"
    assert classify_intent(_turn(text="explain the chart"), lex).reason == "clarify_cue"
    default = classify_intent(_turn(text="hello"), lex)
    assert default.intent is Intent.CLARIFY
    assert default.reason == "default"


def test_detect_stall_by_turn_count() -> None:
    policy = StallPolicy()
    assert detect_stall(SessionSnapshot(turns_since_advance=2), 0, policy)
    assert not detect_stall(SessionSnapshot(turns_since_advance=1), 0, policy)


def test_detect_stall_idle_boundary_is_strict() -> None:
    policy = StallPolicy()
    session = SessionSnapshot(last_advance_at=10_000)
    assert not detect_stall(session, 100_000, policy)
    assert detect_stall(session, 100_001, policy)


def test_stall_guard_only_touches_directive_modes() -> None:
    assert apply_stall_guard(Intent.STABILIZE, MacMode.ARCHITECT, True) == (Intent.CLARIFY, True)
    assert apply_stall_guard(Intent.CLARIFY, MacMode.TRANSITIONAL, True) == (Intent.CLARIFY, True)
    assert apply_stall_guard(Intent.ADVANCE, MacMode.ARCHITECT, True) == (Intent.ADVANCE, False)
    assert apply_stall_guard(Intent.STABILIZE, MacMode.USER, True) == (Intent.STABILIZE, False)
    assert apply_stall_guard(Intent.STABILIZE, MacMode.ARCHITECT, False) == (Intent.STABILIZE, False)


def test_stalled_conversation_forces_a_short_clarify() -> None:
    cog = mediate({"text": "hello there"}, {"turnsSinceAdvance": 3}, {"nowMs": 1_000})
    assert cog.stalled is True
    assert cog.intent is Intent.CLARIFY
    assert cog.budget is Budget.SHORT
    assert cog.grounding_max_lines <= 1
    assert cog.law_tags[0] == "no_spin"
    assert cog.law_tags[-1] == "coherence"


def test_stalled_but_actionable_turn_still_advances() -> None:
    cog = mediate({"action": "top10", "year": 1988}, {"turnsSinceAdvance": 5}, {"nowMs": 1_000})
    assert cog.stalled is True
    assert cog.intent is Intent.ADVANCE
    assert "no_spin" not in cog.law_tags
    assert "action_supremacy" in cog.law_tags
