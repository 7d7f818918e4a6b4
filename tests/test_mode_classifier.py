from __future__ import annotations

from turncore.contracts import MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import ModeWeights
from turncore.policy.lexicon import DEFAULT_LEXICON
from turncore.runtime.mode import (
    STABILITY_HELD,
    STABILITY_SWITCHED,
    ModeDecision,
    ModeScores,
    classify_mode,
    decide_mode,
)

WEIGHTS = ModeWeights()
LEX = DEFAULT_LEXICON.mode


def _classify(text: str, session: dict | None = None, **kwargs) -> ModeDecision:
    turn = NormalizedTurn.from_value({"text": text, **kwargs.pop("turn_extra", {})})
    return classify_mode(turn, SessionSnapshot.from_value(session or {}), WEIGHTS, LEX, **kwargs)


def test_client_override_wins_over_text_signals() -> None:
    decision = _classify("I'm not sure and I'm confused", turn_extra={"macModeOverride": "builder"})
    assert decision.mode is MacMode.ARCHITECT
    assert decision.source == "override"
    assert decision.reasons[0] == "override:client"


def test_malformed_override_is_ignored() -> None:
    decision = _classify("let's design the pipeline", turn_extra={"macModeOverride": "wizard"})
    assert decision.source == "implicit"
    assert decision.mode is MacMode.ARCHITECT


def test_directive_and_constraint_language_scores_architect() -> None:
    decision = _classify("let's design the pipeline")
    assert decision.mode is MacMode.ARCHITECT
    assert decision.scores.architect == 6
    assert decision.scores.user == 0
    assert "table:architect_margin" in decision.reasons
    assert abs(decision.confidence - 0.8) < 1e-9


def test_uncertainty_and_emotion_scores_user() -> None:
    decision = _classify("I'm not sure where to start, I'm confused")
    assert decision.mode is MacMode.USER
    assert decision.scores.user == 5
    assert abs(decision.confidence - 0.75) < 1e-9


def test_mixed_signals_are_transitional() -> None:
    decision = _classify("let's design this but I'm confused")
    assert decision.mode is MacMode.TRANSITIONAL
    assert decision.scores.transitional == 3
    assert decision.confidence == 0.65


def test_decision_table_defaults_to_architect_inside_the_margin() -> None:
    mode, row = decide_mode(ModeScores(architect=2, user=1, transitional=0), WEIGHTS)
    assert mode is MacMode.ARCHITECT
    assert row == "default_architect"

    mode, row = decide_mode(ModeScores(architect=0, user=0, transitional=0), WEIGHTS)
    assert mode is MacMode.ARCHITECT
    assert row == "default_architect"


def test_decision_table_order_prefers_transitional() -> None:
    mode, row = decide_mode(ModeScores(architect=9, user=2, transitional=3), WEIGHTS)
    assert mode is MacMode.TRANSITIONAL
    assert row == "transitional"


def test_empty_text_falls_back_to_architect_with_neutral_confidence() -> None:
    decision = _classify("")
    assert decision.mode is MacMode.ARCHITECT
    assert decision.confidence == 0.55


def test_hold_mode_keeps_previous_mode_on_weak_switch() -> None:
    decision = _classify("let's design it", {"macMode": "user"}, hold_mode=True)
    assert decision.mode is MacMode.USER
    assert decision.candidate is MacMode.ARCHITECT
    assert decision.stability == STABILITY_HELD


def test_without_hold_mode_the_switch_goes_through() -> None:
    decision = _classify("let's design it", {"macMode": "user"})
    assert decision.mode is MacMode.ARCHITECT
    assert decision.stability == STABILITY_SWITCHED


def test_hold_mode_allows_confident_switch() -> None:
    decision = _classify("let's design the pipeline", {"macMode": "user"}, hold_mode=True)
    assert decision.mode is MacMode.ARCHITECT
    assert decision.stability == STABILITY_SWITCHED
