"""Turn mediation: one pure call per inbound turn, failing open on any error."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Optional, Tuple

from turncore.contracts import (
    Bridge,
    Budget,
    CognitiveLoad,
    Cognition,
    Confidence,
    Dominance,
    Intent,
    LatentDesire,
    MacMode,
    MarionState,
    MediationOptions,
    MovePolicy,
    NormalizedTurn,
    PsychologyState,
    RiskTier,
    SessionPatch,
    SessionSnapshot,
    Telemetry,
)
from turncore.policy.config import MediationPolicy, TracePolicy, default_policy
from turncore.policy.lexicon import DEFAULT_LEXICON, Lexicon
from turncore.runtime.bridge import resolve_lane
from turncore.runtime.coerce import norm_token
from turncore.runtime.confidence import score_confidence
from turncore.runtime.desire import infer_latent_desire
from turncore.runtime.ethics import (
    SIGNAL_USE_NEUTRAL_TONE,
    TAG_HARM_AVOIDANCE,
    TAG_NON_DECEPTIVE,
    TAG_PRIVACY_MIN,
    apply_safety_redirect,
    compute_ethics,
)
from turncore.runtime.intent import classify_intent, detect_stall
from turncore.runtime.lanes import EXPERT_ENGLISH, route_lane_experts
from turncore.runtime.mode import ModeDecision, classify_mode
from turncore.runtime.novelty import NoveltyScore, discovery_hint, score_novelty
from turncore.runtime.psychology import estimate_psychology
from turncore.runtime.risk import (
    LAW_COHERENCE,
    assess_risk,
    collect_law_tags,
    derive_move_policy,
    resolve_intent,
    shape_posture,
    velvet_allowed,
)
from turncore.runtime.velvet import force_velvet, step_velvet
from turncore.telemetry.trace import (
    FAIL_OPEN_TRACE,
    build_telemetry,
    build_trace,
    hash_trace,
    trace_policy_check,
)

LOGGER = logging.getLogger(__name__)

_BRIDGE_ACTIONS = ("switch_lane", "ask_year")
_FAIL_OPEN = "fail_open"


def fail_open_cognition(error_code: str, now_ms: int = 0) -> Cognition:
    """The fixed conservative answer returned whenever mediation fails."""

    trace_policy = TracePolicy()
    trace_hash = hash_trace(FAIL_OPEN_TRACE, trace_policy.hash_chars)
    return Cognition(
        mode=MacMode.ARCHITECT,
        intent=Intent.CLARIFY,
        dominance=Dominance.NEUTRAL,
        budget=Budget.SHORT,
        latent_desire=LatentDesire.CURIOSITY,
        confidence=Confidence(user=0.5, nyx=0.55),
        velvet=False,
        velvet_reason=_FAIL_OPEN,
        novelty_score=0.0,
        marion_state=MarionState.SEEK,
        marion_reason=_FAIL_OPEN,
        lane_reason=_FAIL_OPEN,
        bridge=Bridge(reason=_FAIL_OPEN),
        risk_tier=RiskTier.LOW,
        risk_signals=(_FAIL_OPEN,),
        law_tags=(LAW_COHERENCE,),
        ethics_tags=(TAG_NON_DECEPTIVE, TAG_PRIVACY_MIN, TAG_HARM_AVOIDANCE),
        ethics_signals=(SIGNAL_USE_NEUTRAL_TONE,),
        velvet_allowed=False,
        move_policy=MovePolicy(Intent.CLARIFY, False, _FAIL_OPEN),
        lanes_used=(EXPERT_ENGLISH,),
        cross_lane_allowed=True,
        psychology=PsychologyState(cognitive_load=CognitiveLoad.MEDIUM, motivation=LatentDesire.CURIOSITY.value),
        trace=FAIL_OPEN_TRACE,
        trace_hash=trace_hash,
        telemetry=Telemetry(
            event=trace_policy.event_name,
            version=trace_policy.event_version,
            timestamp_ms=int(now_ms),
            policy_fingerprint="",
            trace_hash=trace_hash,
            error_code=error_code,
        ),
        error_code=error_code,
    )


def resolve_marion_state(cog: Cognition, turn: NormalizedTurn) -> Tuple[MarionState, str]:
    if cog.bridge.enabled:
        return MarionState.BRIDGE, "bridge"
    if cog.intent is Intent.STABILIZE:
        return MarionState.STABILIZE, "stabilize"
    if cog.intent is Intent.ADVANCE:
        return MarionState.DELIVER, "advance"
    action = norm_token(turn.action) or norm_token(turn.turn_signals.payload_action)
    if action in _BRIDGE_ACTIONS:
        return MarionState.BRIDGE, "action_bridge"
    return MarionState.SEEK, "default"


def build_session_patch(
    cog: Cognition,
    turn: NormalizedTurn,
    session: SessionSnapshot,
    decision: ModeDecision,
    now_ms: int,
) -> SessionPatch:
    advanced = cog.intent is Intent.ADVANCE
    signals = turn.turn_signals
    last_action = session.last_action
    last_year = session.last_year
    if cog.actionable:
        last_action = norm_token(turn.action) or norm_token(signals.payload_action) or last_action
        year = turn.year if turn.year is not None else signals.payload_year
        if year is not None:
            last_year = year
    return SessionPatch(
        mac_mode=cog.mode.value,
        mac_mode_stability=decision.stability,
        mac_mode_confidence=round(decision.confidence, 4),
        lane=cog.lane,
        last_action=last_action,
        last_year=last_year,
        turn_count=session.turn_count + 1,
        turns_since_advance=0 if advanced else session.turns_since_advance + 1,
        last_advance_at=now_ms if advanced else session.last_advance_at,
        velvet_mode=cog.velvet,
        velvet_since=cog.velvet_since if cog.velvet else 0,
    )


def apply_overrides(
    cog: Cognition,
    options: MediationOptions,
    session: SessionSnapshot,
    now_ms: int,
) -> Tuple[Cognition, Tuple[str, ...]]:
    """Apply the host's forced values on top of the computed cognition."""

    applied: List[str] = []
    changes: dict[str, Any] = {}
    if options.force_intent is not None:
        changes["intent"] = options.force_intent
        applied.append(f"force_intent:{options.force_intent.value}")
    if options.force_budget is not None:
        changes["budget"] = options.force_budget
        applied.append(f"force_budget:{options.force_budget.value}")
    if options.force_dominance is not None:
        changes["dominance"] = options.force_dominance
        applied.append(f"force_dominance:{options.force_dominance.value}")
    if options.force_velvet is not None:
        state = force_velvet(session, options.force_velvet, now_ms)
        changes.update(velvet=state.active, velvet_since=state.since, velvet_reason=state.reason)
        applied.append(f"force_velvet:{'on' if options.force_velvet else 'off'}")
    if not changes:
        return cog, ()
    return replace(cog, **changes), tuple(applied)


def finalize_cognition(
    cog: Cognition,
    turn: NormalizedTurn,
    session: SessionSnapshot,
    decision: ModeDecision,
    policy: MediationPolicy,
    options: MediationOptions,
    now_ms: int,
    overrides: Tuple[str, ...] = (),
) -> Cognition:
    """Rebuild every field derived from the (possibly overridden) core decision."""

    novelty = NoveltyScore(score=cog.novelty_score, reasons=cog.novelty_reasons)
    hint = discovery_hint(novelty, cog.intent, cog.mode, cog.actionable, policy.novelty)
    move = derive_move_policy(cog.intent, actionable=cog.actionable, psychology=cog.psychology)
    cog = replace(cog, discovery_hint=hint, move_policy=move)
    marion, marion_reason = resolve_marion_state(cog, turn)
    cog = replace(cog, marion_state=marion, marion_reason=marion_reason)

    trace = build_trace(cog, turn, policy.trace)
    cog = replace(cog, trace=trace, trace_hash=hash_trace(trace, policy.trace.hash_chars))
    cog = replace(
        cog,
        session_patch=build_session_patch(cog, turn, session, decision, now_ms),
        telemetry=build_telemetry(cog, policy, now_ms, overrides=overrides),
    )
    if options.dev_trace_policy_check:
        issues = trace_policy_check(cog, turn.text)
        if issues:
            LOGGER.warning("trace policy issues: %s", ",".join(issues))
            cog = replace(cog, trace_policy_issues=issues)
    return cog


def _mediate(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    options: MediationOptions,
    policy: MediationPolicy,
    lexicon: Lexicon,
    now_ms: int,
) -> Tuple[Cognition, ModeDecision]:
    decision = classify_mode(turn, session, policy.mode, lexicon.mode, hold_mode=options.hold_mode)
    mode = decision.mode
    classified = classify_intent(turn, lexicon.intent)
    actionable = classified.actionable
    stalled = detect_stall(session, now_ms, policy.stall)
    lane = resolve_lane(turn, session)

    psychology = estimate_psychology(turn, session, mode, now_ms, policy.stall, lexicon.psychology)
    risk = assess_risk(turn, psychology, lexicon.risk)
    ethics = compute_ethics(risk, psychology, actionable=actionable)
    risk = apply_safety_redirect(risk, ethics)
    resolution = resolve_intent(
        classified.intent,
        actionable=actionable,
        mode=mode,
        stalled=stalled,
        psychology=psychology,
        risk=risk,
    )
    intent = resolution.intent

    confidence = score_confidence(turn, session, mode, intent, policy.confidence, lexicon.intent)
    desire = infer_latent_desire(turn, session, mode, policy.desire, lexicon.desire)
    allowed = velvet_allowed(risk)
    velvet = step_velvet(
        turn,
        session,
        lane.lane,
        intent,
        confidence.nyx,
        desire,
        now_ms,
        policy.velvet,
        lexicon.desire,
        allowed=allowed,
    )
    posture, posture_tags = shape_posture(
        mode,
        intent,
        actionable=actionable,
        velvet=velvet.active,
        desire=desire,
        psychology=psychology,
        risk=risk,
        stall_guarded=resolution.stall_guarded,
    )
    novelty = score_novelty(turn, session, mode, intent, actionable, policy.novelty, policy.stall, lexicon)
    experts = route_lane_experts(lane.lane, turn.text, intent, risk, lexicon.router)

    cog = Cognition(
        mode=mode,
        intent=intent,
        dominance=posture.dominance,
        budget=posture.budget,
        stalled=stalled,
        actionable=actionable,
        text_empty=turn.turn_signals.text_empty or not turn.text.strip(),
        grounding_max_lines=posture.grounding_max_lines,
        latent_desire=desire,
        confidence=confidence,
        velvet=velvet.active,
        velvet_since=velvet.since,
        velvet_reason=velvet.reason,
        novelty_score=novelty.score,
        novelty_reasons=novelty.reasons,
        lane=lane.lane,
        lane_reason=lane.reason,
        lane_action=lane.lane_action,
        bridge=lane.bridge,
        risk_tier=risk.tier,
        risk_domains=risk.domains,
        risk_signals=risk.signals,
        law_tags=collect_law_tags(resolution.law_tags, posture_tags),
        ethics_tags=ethics.tags,
        ethics_signals=ethics.signals,
        velvet_allowed=allowed,
        lanes_used=experts.lanes_used,
        cross_lane_allowed=experts.cross_lane_allowed,
        psychology=replace(psychology, motivation=desire.value),
        mode_reasons=decision.reasons,
    )
    return cog, decision


def mediate(
    turn: Any,
    session: Any = None,
    options: Any = None,
    *,
    policy: Optional[MediationPolicy] = None,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> Cognition:
    """Classify one conversational turn into a :class:`Cognition`.

    ``turn``, ``session`` and ``options`` may be the dataclasses from
    :mod:`turncore.contracts` or plain host mappings. The call never raises:
    any internal error returns :func:`fail_open_cognition` with the exception
    class name as ``error_code``.
    """

    now_ms = 0
    try:
        opts = MediationOptions.from_value(options)
        now_ms = opts.resolve_now()
        norm = NormalizedTurn.from_value(turn)
        snapshot = SessionSnapshot.from_value(session)
        active = policy if policy is not None else default_policy()

        cog, decision = _mediate(norm, snapshot, opts, active, lexicon, now_ms)
        cog, overrides = apply_overrides(cog, opts, snapshot, now_ms)
        cog = finalize_cognition(cog, norm, snapshot, decision, active, opts, now_ms, overrides)
    except Exception as exc:
        error_code = type(exc).__name__
        LOGGER.warning("mediation failed open (error_code=%s)", error_code)
        return fail_open_cognition(error_code, now_ms)

    LOGGER.debug(
        "mediated turn trace_hash=%s intent=%s mode=%s",
        cog.trace_hash,
        cog.intent.value,
        cog.mode.value,
    )
    return cog


__all__ = [
    "fail_open_cognition",
    "resolve_marion_state",
    "build_session_patch",
    "apply_overrides",
    "finalize_cognition",
    "mediate",
]
