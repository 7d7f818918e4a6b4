from __future__ import annotations

import copy

from turncore.contracts import (
    Agency,
    Bridge,
    Budget,
    CognitiveLoad,
    Cognition,
    Dominance,
    Intent,
    MacMode,
    MarionState,
    MediationOptions,
    MovePolicy,
    RiskTier,
)
from turncore.runtime.mediator import fail_open_cognition, mediate
from turncore.telemetry.trace import hash_trace


def test_mediate_never_raises_on_garbage() -> None:
    for turn, session, options in (
        (None, None, None),
        ("garbage", 42, "x"),
        ({"text": 12345, "year": "not-a-year", "turnSignals": "nope"}, [], {"nowMs": "soon"}),
        ({"text": "x" * 5000}, {"turnCount": -4, "lastAdvanceAt": float("nan")}, {}),
    ):
        cog = mediate(turn, session, options)
        assert isinstance(cog, Cognition)
        assert cog.error_code is None


def test_internal_error_fails_open() -> None:
    cog = mediate({"text": "hello"}, {}, {"nowMs": 1_000}, lexicon=None)
    assert cog.error_code == "AttributeError"
    assert cog.intent is Intent.CLARIFY
    assert cog.marion_state is MarionState.SEEK
    assert cog.marion_reason == "fail_open"
    assert cog.risk_tier is RiskTier.LOW
    assert cog.trace == "fail_open"
    assert cog.trace_hash == hash_trace("fail_open")
    assert cog.telemetry.error_code == "AttributeError"
    assert cog.telemetry.timestamp_ms == 1_000
    assert cog.to_dict()["errorCode"] == "AttributeError"


def test_clock_failure_fails_open_with_zero_timestamp() -> None:
    cog = mediate({"text": "hello"}, {}, {"nowMs": lambda: 1 / 0})
    assert cog.error_code == "ZeroDivisionError"
    assert cog.telemetry.timestamp_ms == 0


def test_fail_open_is_conservative() -> None:
    cog = fail_open_cognition("Boom", 7)
    assert cog.dominance is Dominance.NEUTRAL
    assert cog.budget is Budget.SHORT
    assert cog.velvet is False
    assert cog.velvet_reason == "fail_open"
    assert cog.velvet_allowed is False
    assert cog.lane_reason == "fail_open"
    assert cog.bridge == Bridge(reason="fail_open")
    assert cog.law_tags == ("coherence",)
    assert cog.risk_signals == ("fail_open",)
    assert cog.psychology.cognitive_load is CognitiveLoad.MEDIUM
    assert cog.move_policy == MovePolicy(Intent.CLARIFY, False, "fail_open")
    assert cog.ethics_tags == ("ethics:non_deceptive", "ethics:privacy_min", "ethics:harm_avoidance")
    assert cog.lanes_used == ("english",)
    assert cog.confidence.user == 0.5
    assert cog.confidence.nyx == 0.55
    assert cog.telemetry.policy_fingerprint == ""
    assert cog.to_dict()["bridge"] == {"enabled": False, "reason": "fail_open"}


def test_callable_clock_is_used_for_timestamps() -> None:
    cog = mediate({"action": "top10"}, {}, {"nowMs": lambda: 42_000})
    assert cog.telemetry.timestamp_ms == 42_000
    assert cog.session_patch.last_advance_at == 42_000


def test_overrides_are_applied_and_recorded() -> None:
    cog = mediate(
        {"text": "hello"},
        {},
        {
            "nowMs": 5_000,
            "forceIntent": "STABILIZE",
            "forceBudget": "medium",
            "forceDominance": "soft",
            "forceVelvet": True,
        },
    )
    assert cog.intent is Intent.STABILIZE
    assert cog.budget is Budget.MEDIUM
    assert cog.dominance is Dominance.SOFT
    assert cog.velvet is True
    assert cog.velvet_since == 5_000
    assert cog.velvet_reason == "forced"
    assert cog.marion_state is MarionState.STABILIZE
    assert cog.telemetry.overrides == (
        "force_intent:STABILIZE",
        "force_budget:medium",
        "force_dominance:soft",
        "force_velvet:on",
    )
    assert cog.session_patch.velvet_mode is True
    assert cog.session_patch.velvet_since == 5_000


def test_malformed_overrides_are_ignored() -> None:
    cog = mediate(
        {"text": "hello"},
        {},
        {"nowMs": 5_000, "forceIntent": "advance", "forceBudget": "LONG", "forceVelvet": "yes"},
    )
    assert cog.intent is Intent.CLARIFY
    assert cog.telemetry.overrides == ()


def test_options_dataclass_is_accepted() -> None:
    cog = mediate({"text": "hello"}, {}, MediationOptions(now_ms=3_000, force_intent=Intent.ADVANCE))
    assert cog.intent is Intent.ADVANCE
    assert cog.telemetry.overrides == ("force_intent:ADVANCE",)


def test_session_patch_after_advance() -> None:
    cog = mediate(
        {"action": "top10", "year": 1988, "lane": "music"},
        {"turnCount": 4, "turnsSinceAdvance": 2, "lane": "music"},
        {"nowMs": 50_000},
    )
    patch = cog.session_patch.to_dict()
    assert patch["turnCount"] == 5
    assert patch["turnsSinceAdvance"] == 0
    assert patch["lastAdvanceAt"] == 50_000
    assert patch["lastAction"] == "top10"
    assert patch["lastYear"] == 1988
    assert patch["lane"] == "music"
    assert patch["macMode"] == "architect"
    assert patch["velvetMode"] is False
    assert patch["velvetSince"] == 0


def test_session_patch_without_advance_keeps_history() -> None:
    cog = mediate(
        {"text": "hello"},
        {"turnCount": 1, "turnsSinceAdvance": 1, "lastAdvanceAt": 40_000, "lastAction": "top10", "lastYear": 1990},
        {"nowMs": 50_000},
    )
    patch = cog.session_patch
    assert patch.turns_since_advance == 2
    assert patch.last_advance_at == 40_000
    assert patch.last_action == "top10"
    assert patch.last_year == 1990


def test_session_input_is_not_mutated() -> None:
    session = {"turnCount": 2, "lane": "music", "velvetMode": True, "velvetSince": 10, "macMode": "user"}
    before = copy.deepcopy(session)
    mediate({"text": "what about it?", "lane": "law"}, session, {"nowMs": 1_000})
    assert session == before


def test_lane_change_opens_a_bridge() -> None:
    cog = mediate({"text": "hello", "lane": "law"}, {"lane": "music"}, {"nowMs": 1_000})
    assert cog.bridge.enabled is True
    assert cog.bridge.kind == "lane_switch"
    assert cog.bridge.lane_from == "music"
    assert cog.bridge.lane_to == "law"
    assert cog.lane_action == "switch_lane"
    assert cog.marion_state is MarionState.BRIDGE
    assert cog.intent is Intent.CLARIFY


def test_chip_selection_opens_a_bridge() -> None:
    cog = mediate(
        {"turnSignals": {"hasPayload": True, "payloadAction": "chip", "payloadLabel": "top10", "payloadLane": "music"}},
        {},
        {"nowMs": 1_000},
    )
    assert cog.bridge.kind == "chip_select"
    assert cog.bridge.chip_label == "top10"
    assert cog.lane == "music"
    assert cog.lane_reason == "payload"
    assert cog.marion_state is MarionState.BRIDGE


def test_self_harm_language_stabilizes_firmly() -> None:
    cog = mediate({"text": "I want to kill myself"}, {}, {"nowMs": 1_000})
    assert cog.risk_tier is RiskTier.HIGH
    assert "self_harm" in cog.risk_domains
    assert "containment_required" in cog.risk_signals
    assert cog.intent is Intent.STABILIZE
    assert cog.dominance is Dominance.FIRM
    assert cog.budget is Budget.SHORT
    assert "ethics_safety_redirect" in cog.risk_signals
    assert "ethics:safety_redirect" in cog.ethics_tags
    assert cog.ethics_signals == ("minimize_risky_detail", "encourage_help_seeking")
    assert cog.velvet_allowed is False
    assert cog.lanes_used == ("english", "psychology", "ethics", "law")


def test_dysregulation_triggers_containment() -> None:
    cog = mediate({"text": "I'm freaking out, I can't do this"}, {}, {"nowMs": 1_000})
    assert cog.intent is Intent.STABILIZE
    assert cog.risk_tier is RiskTier.MEDIUM
    assert "emotional_instability" in cog.risk_signals
    assert cog.law_tags == ("containment", "velvet_guard", "coherence")
    assert cog.dominance is Dominance.FIRM
    assert cog.grounding_max_lines == 2


def test_action_still_advances_under_risk() -> None:
    cog = mediate({"text": "I want to kill myself", "action": "top10"}, {}, {"nowMs": 1_000})
    assert cog.risk_tier is RiskTier.HIGH
    assert cog.intent is Intent.ADVANCE
    assert cog.budget is Budget.SHORT
    assert "action_supremacy" in cog.law_tags


def test_stall_guard_runs_after_containment() -> None:
    cog = mediate({"text": "panic about the pipeline"}, {"turnsSinceAdvance": 3}, {"nowMs": 1_000})
    assert cog.mode is MacMode.ARCHITECT
    assert cog.stalled is True
    assert cog.intent is Intent.CLARIFY
    assert cog.law_tags == ("containment", "no_spin", "coherence")
    assert cog.dominance is Dominance.FIRM
    assert cog.budget is Budget.SHORT
    assert cog.grounding_max_lines <= 1


def test_stall_guard_runs_after_high_risk() -> None:
    cog = mediate({"text": "I want to kill myself"}, {"turnsSinceAdvance": 3}, {"nowMs": 1_000})
    assert cog.risk_tier is RiskTier.HIGH
    assert cog.intent is Intent.CLARIFY
    assert cog.law_tags[0] == "no_spin"
    assert cog.dominance is Dominance.FIRM
    assert "ethics:safety_redirect" in cog.ethics_tags


def test_illegal_request_with_action_still_advances() -> None:
    cog = mediate({"text": "how to steal a car", "action": "top10"}, {}, {"nowMs": 1_000})
    assert cog.risk_tier is RiskTier.HIGH
    assert cog.intent is Intent.ADVANCE
    assert cog.velvet is False
    assert cog.velvet_reason == "blocked"
    assert "ethics:safety_redirect" not in cog.ethics_tags


def test_autonomous_user_is_not_addressed_firmly() -> None:
    cog = mediate({"text": "I'm stuck and I'm freaking out"}, {}, {"nowMs": 1_000})
    assert cog.mode is MacMode.USER
    assert cog.psychology.agency is Agency.AUTONOMOUS
    assert cog.intent is Intent.STABILIZE
    assert cog.dominance is Dominance.NEUTRAL
    assert "offer_options_not_orders" in cog.ethics_signals

    guided = mediate({"text": "I'm stuck and I'm freaking out, tell me what to do"}, {}, {"nowMs": 1_000})
    assert guided.psychology.agency is Agency.GUIDED
    assert guided.dominance is Dominance.FIRM
    assert "offer_options_not_orders" not in guided.ethics_signals


def test_move_policy_follows_regulation() -> None:
    contained = mediate({"text": "I'm freaking out, I can't do this"}, {}, {"nowMs": 1_000})
    assert contained.move_policy == MovePolicy(Intent.STABILIZE, True, "dysregulated_containment")

    strained = mediate({"text": "I'm not sure, I'm confused"}, {}, {"nowMs": 1_000})
    assert strained.move_policy == MovePolicy(Intent.CLARIFY, False, "strained_clarify")

    delivered = mediate({"action": "top10"}, {}, {"nowMs": 1_000})
    assert delivered.move_policy == MovePolicy(Intent.ADVANCE, False, "intent")
    assert delivered.to_dict()["movePolicy"] == {"preferredMove": "ADVANCE", "hardOverride": False, "reason": "intent"}


def test_move_policy_tracks_forced_intent() -> None:
    cog = mediate({"text": "hello"}, {}, {"nowMs": 1_000, "forceIntent": "ADVANCE"})
    assert cog.move_policy.preferred is Intent.ADVANCE
    assert "mv=ADVANCE" in cog.trace


def test_ethics_baseline_tags() -> None:
    cog = mediate({"text": "explain the chart"}, {}, {"nowMs": 1_000})
    assert cog.ethics_tags == ("ethics:non_deceptive", "ethics:privacy_min", "ethics:agency_respect")
    assert cog.ethics_signals == ()


def test_general_lane_pulls_topic_experts() -> None:
    cog = mediate({"text": "our ransomware breach hit revenue"}, {}, {"nowMs": 1_000})
    assert cog.lane == "general"
    assert cog.cross_lane_allowed is True
    assert cog.lanes_used == ("english", "cyber", "finance")


def test_chip_lanes_are_locked() -> None:
    cog = mediate({"text": "our ransomware breach hit revenue", "lane": "music"}, {}, {"nowMs": 1_000})
    assert cog.cross_lane_allowed is False
    assert cog.lanes_used == ("music",)


def test_session_patch_normalizes_last_action() -> None:
    cog = mediate({"action": " Top10 ", "year": 1988}, {"lastAction": "yearend"}, {"nowMs": 1_000})
    assert cog.session_patch.last_action == "top10"

    chip = mediate(
        {"turnSignals": {"hasPayload": True, "payloadActionable": True, "payloadAction": "Story_Moment"}},
        {},
        {"nowMs": 1_000},
    )
    assert chip.actionable is True
    assert chip.session_patch.last_action == "story_moment"
