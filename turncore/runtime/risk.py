"""Risk assessment and the ordered rules that shape the reply posture.

The rules run in a fixed precedence and each one that fires leaves a tag in
``law_tags`` so telemetry can show why a posture was chosen:

``action_supremacy`` an actionable turn always advances
``containment``      dysregulated user on a non-actionable turn
``no_spin``          stalled architect/transitional turn forced to CLARIFY (last)
``budget_clamp``     high cognitive load or social pressure
``velvet_guard``     immersion is suspended while stabilizing
``coherence``        always last
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from turncore.contracts import (
    Agency,
    Budget,
    Dominance,
    Intent,
    LatentDesire,
    MacMode,
    MovePolicy,
    NormalizedTurn,
    PsychologyState,
    Regulation,
    RiskTier,
)
from turncore.policy.lexicon import RiskRule
from turncore.runtime.coerce import clamp_int, safe_str
from turncore.runtime.intent import apply_stall_guard
from turncore.runtime.psychology import is_overloaded

LAW_CONTAINMENT = "containment"
LAW_ACTION_SUPREMACY = "action_supremacy"
LAW_NO_SPIN = "no_spin"
LAW_BUDGET_CLAMP = "budget_clamp"
LAW_VELVET_GUARD = "velvet_guard"
LAW_COHERENCE = "coherence"

MAX_RISK_TAGS = 6

_TIER_RANK = {RiskTier.NONE: 0, RiskTier.LOW: 1, RiskTier.MEDIUM: 2, RiskTier.HIGH: 3}


@dataclass(frozen=True)
class RiskAssessment:
    tier: RiskTier = RiskTier.NONE
    domains: Tuple[str, ...] = ()
    signals: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Posture:
    dominance: Dominance
    budget: Budget
    grounding_max_lines: int


@dataclass(frozen=True)
class IntentResolution:
    intent: Intent
    law_tags: Tuple[str, ...]
    stall_guarded: bool


def _raise_tier(current: RiskTier, candidate: RiskTier) -> RiskTier:
    return candidate if _TIER_RANK[candidate] > _TIER_RANK[current] else current


def assess_risk(turn: NormalizedTurn, psychology: PsychologyState, rules: Sequence[RiskRule]) -> RiskAssessment:
    text = safe_str(turn.text, 1400).lower()
    tier = RiskTier.NONE
    domains: List[str] = []
    signals: List[str] = []

    for rule in rules:
        if not rule.pattern.search(text):
            continue
        domains.append(rule.domain)
        tier = _raise_tier(tier, RiskTier(rule.tier))
        if rule.signal:
            signals.append(rule.signal)

    if psychology.regulation is Regulation.DYSREGULATED and tier is not RiskTier.HIGH:
        tier = RiskTier.MEDIUM
        signals.append("emotional_instability")
    if len(domains) >= 2 and tier is not RiskTier.HIGH:
        tier = RiskTier.MEDIUM
        signals.append("multi_domain")
    if tier is RiskTier.NONE and is_overloaded(psychology):
        tier = RiskTier.LOW
        signals.append("high_load_or_pressure")

    return RiskAssessment(
        tier=tier,
        domains=tuple(domains[:MAX_RISK_TAGS]),
        signals=tuple(signals[:MAX_RISK_TAGS]),
    )


def resolve_intent(
    intent: Intent,
    *,
    actionable: bool,
    mode: MacMode,
    stalled: bool,
    psychology: PsychologyState,
    risk: RiskAssessment,
) -> IntentResolution:
    """Apply containment, high-risk stabilization and action supremacy, then the stall guard.

    The stall guard runs last so a stalled architect/transitional turn that is
    not advancing always ends on CLARIFY, even when containment or high risk
    asked for STABILIZE first. An actionable turn always advances.
    """

    tags: List[str] = []
    if actionable:
        intent = Intent.ADVANCE
        tags.append(LAW_ACTION_SUPREMACY)
    elif psychology.regulation is Regulation.DYSREGULATED:
        intent = Intent.STABILIZE
        tags.append(LAW_CONTAINMENT)
    elif risk.tier is RiskTier.HIGH:
        intent = Intent.STABILIZE

    intent, guarded = apply_stall_guard(intent, mode, stalled)
    if guarded:
        tags.append(LAW_NO_SPIN)
    return IntentResolution(intent=intent, law_tags=tuple(tags), stall_guarded=guarded)


def base_posture(mode: MacMode, intent: Intent) -> Posture:
    advancing = intent is Intent.ADVANCE
    if mode is MacMode.USER:
        budget = Budget.MEDIUM
        dominance = Dominance.NEUTRAL if advancing else Dominance.SOFT
    else:
        budget = Budget.SHORT
        dominance = Dominance.FIRM if advancing else Dominance.NEUTRAL

    if intent is Intent.STABILIZE:
        grounding = 3
    elif mode in (MacMode.USER, MacMode.TRANSITIONAL):
        grounding = 1
    else:
        grounding = 0
    return Posture(dominance=dominance, budget=budget, grounding_max_lines=grounding)


def shape_posture(
    mode: MacMode,
    intent: Intent,
    *,
    actionable: bool,
    velvet: bool,
    desire: LatentDesire,
    psychology: PsychologyState,
    risk: RiskAssessment,
    stall_guarded: bool,
) -> Tuple[Posture, Tuple[str, ...]]:
    """Derive dominance, budget and grounding for the settled mode and intent.

    Agency preference is applied last: a user who wants options is never
    addressed firmly on a turn that is not advancing.
    """

    posture = base_posture(mode, intent)
    dominance, budget, grounding = posture.dominance, posture.budget, posture.grounding_max_lines
    tags: List[str] = []

    if velvet and mode is MacMode.USER and intent is not Intent.ADVANCE:
        dominance = Dominance.SOFT
    if desire is LatentDesire.MASTERY and mode is not MacMode.USER and intent is Intent.ADVANCE:
        dominance = Dominance.FIRM

    if psychology.regulation is Regulation.DYSREGULATED and not actionable:
        dominance = Dominance.FIRM
        grounding = clamp_int(grounding, 0, 2, 0)

    if stall_guarded:
        budget = Budget.SHORT
        grounding = clamp_int(grounding, 0, 1, 0)
        if dominance is not Dominance.FIRM:
            dominance = Dominance.NEUTRAL

    if risk.tier is RiskTier.HIGH:
        budget = Budget.SHORT
        if mode is not MacMode.USER:
            dominance = Dominance.FIRM
    elif risk.tier is RiskTier.MEDIUM:
        budget = Budget.SHORT
    elif risk.tier is RiskTier.LOW and not actionable:
        budget = Budget.SHORT

    if psychology.agency is Agency.GUIDED:
        if intent is Intent.ADVANCE and dominance is Dominance.SOFT:
            dominance = Dominance.NEUTRAL
    elif dominance is Dominance.FIRM and intent is not Intent.ADVANCE:
        dominance = Dominance.NEUTRAL

    if is_overloaded(psychology):
        budget = Budget.SHORT
        tags.append(LAW_BUDGET_CLAMP)
    if intent is Intent.STABILIZE:
        tags.append(LAW_VELVET_GUARD)

    return Posture(dominance=dominance, budget=budget, grounding_max_lines=grounding), tuple(tags)


def velvet_allowed(risk: RiskAssessment) -> bool:
    """Immersion is blocked outright on medium and high risk."""

    return risk.tier not in (RiskTier.MEDIUM, RiskTier.HIGH)


def derive_move_policy(intent: Intent, *, actionable: bool, psychology: PsychologyState) -> MovePolicy:
    if psychology.regulation is Regulation.DYSREGULATED:
        if actionable:
            return MovePolicy(Intent.ADVANCE, False, "dysregulated_actionable")
        return MovePolicy(Intent.STABILIZE, True, "dysregulated_containment")
    if psychology.regulation is Regulation.STRAINED and not actionable:
        return MovePolicy(Intent.CLARIFY, False, "strained_clarify")
    return MovePolicy(intent, False, "intent")


def collect_law_tags(*groups: Sequence[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for group in groups:
        for tag in group:
            if tag not in out:
                out.append(tag)
    out.append(LAW_COHERENCE)
    return tuple(out[:8])


__all__ = [
    "LAW_CONTAINMENT",
    "LAW_ACTION_SUPREMACY",
    "LAW_NO_SPIN",
    "LAW_BUDGET_CLAMP",
    "LAW_VELVET_GUARD",
    "LAW_COHERENCE",
    "RiskAssessment",
    "Posture",
    "IntentResolution",
    "assess_risk",
    "resolve_intent",
    "base_posture",
    "shape_posture",
    "velvet_allowed",
    "derive_move_policy",
    "collect_law_tags",
]
