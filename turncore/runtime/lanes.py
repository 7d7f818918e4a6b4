"""Which knowledge experts may contribute to the reply for this turn.

Only the ``general`` lane crosses lanes. Every other lane (music, roku, radio,
schedule, news-canada and anything unknown) is locked to itself so chip lanes
never bleed into each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from turncore.contracts import Domain, Intent, RiskTier
from turncore.policy.lexicon import RouterLexicon
from turncore.runtime.bridge import DEFAULT_LANE
from turncore.runtime.coerce import any_match, norm_token, safe_str, uniq_bounded
from turncore.runtime.ethics import SELF_HARM_DOMAIN
from turncore.runtime.risk import RiskAssessment

EXPERT_ENGLISH = "english"
EXPERT_CYBER = "cyber"
EXPERT_FINANCE = "finance"
EXPERT_STRATEGY = "strategy"
EXPERT_AI = "ai"
EXPERT_PSYCHOLOGY = "psychology"
EXPERT_ETHICS = "ethics"
EXPERT_LAW = "law"

REASON_LANE_LOCK = "lane_lock"
REASON_GENERAL_ROUTER = "general_router"

MAX_EXPERTS = 5

# Topic keyword families reused from the domain router, in the order they are added.
_TOPIC_EXPERTS: Tuple[Tuple[Domain, str], ...] = (
    (Domain.CYBER, EXPERT_CYBER),
    (Domain.FIN, EXPERT_FINANCE),
    (Domain.STRATEGY, EXPERT_STRATEGY),
    (Domain.AI, EXPERT_AI),
)

_RISK_EXPERTS: Tuple[Tuple[str, str], ...] = (
    ("cyber", EXPERT_CYBER),
    ("financial", EXPERT_FINANCE),
    ("legal", EXPERT_LAW),
)


@dataclass(frozen=True)
class LaneExperts:
    lane: str
    lanes_used: Tuple[str, ...]
    cross_lane_allowed: bool
    reason: str


def cross_lane_allowed(lane: str) -> bool:
    return lane == DEFAULT_LANE


def route_lane_experts(
    lane: str,
    text: str,
    intent: Intent,
    risk: RiskAssessment,
    lexicon: RouterLexicon,
) -> LaneExperts:
    effective = norm_token(lane) or DEFAULT_LANE
    if not cross_lane_allowed(effective):
        return LaneExperts(effective, (effective,), False, REASON_LANE_LOCK)

    experts: List[str] = [EXPERT_ENGLISH]
    if intent is Intent.STABILIZE or risk.tier is RiskTier.HIGH or SELF_HARM_DOMAIN in risk.domains:
        experts += [EXPERT_PSYCHOLOGY, EXPERT_ETHICS, EXPERT_LAW]

    s = safe_str(text, 1400).lower()
    for domain, expert in _TOPIC_EXPERTS:
        if any_match(lexicon.keywords.get(domain, ()), s):
            experts.append(expert)
    for risk_domain, expert in _RISK_EXPERTS:
        if risk_domain in risk.domains:
            experts.append(expert)

    return LaneExperts(
        effective,
        tuple(uniq_bounded(experts, MAX_EXPERTS, 24)),
        True,
        REASON_GENERAL_ROUTER,
    )


__all__ = [
    "EXPERT_ENGLISH",
    "EXPERT_CYBER",
    "EXPERT_FINANCE",
    "EXPERT_STRATEGY",
    "EXPERT_AI",
    "EXPERT_PSYCHOLOGY",
    "EXPERT_ETHICS",
    "EXPERT_LAW",
    "REASON_LANE_LOCK",
    "REASON_GENERAL_ROUTER",
    "LaneExperts",
    "cross_lane_allowed",
    "route_lane_experts",
]
