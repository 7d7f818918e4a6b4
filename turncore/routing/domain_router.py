"""Pick the knowledge domain(s) that should answer a turn.

Scores live in a fixed-size numpy vector indexed by :data:`DOMAIN_ORDER`, so
ties always resolve in declaration order. Only token-shaped signal tags leave
this module; the turn text is read but never echoed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from turncore.contracts import (
    DOMAIN_ORDER,
    Domain,
    DomainRouting,
    NormalizedTurn,
    RoutingReason,
    SessionSnapshot,
    cognition_view,
)
from turncore.policy.config import RouterWeights, default_policy
from turncore.policy.lexicon import DEFAULT_LEXICON, Lexicon
from turncore.runtime.coerce import (
    any_match,
    as_mapping,
    clamp_int,
    lower_token,
    norm_token,
    pick,
    safe_str,
    uniq_bounded,
)

LOGGER = logging.getLogger(__name__)

_INDEX: Dict[Domain, int] = {domain: i for i, domain in enumerate(DOMAIN_ORDER)}


@dataclass(frozen=True)
class RouterOptions:
    max_secondary: int = 2
    min_secondary_score: float = 1.6

    @classmethod
    def from_value(cls, value: Any, weights: RouterWeights) -> "RouterOptions":
        if isinstance(value, RouterOptions):
            return cls(clamp_int(value.max_secondary, 0, 2, weights.max_secondary), value.min_secondary_score)
        raw = as_mapping(value)
        max_secondary = clamp_int(pick(raw, "maxSecondary", "max_secondary"), 0, 2, weights.max_secondary)
        min_score = pick(raw, "minSecondaryScore", "min_secondary_score")
        try:
            min_secondary_score = float(min_score) if min_score is not None else weights.min_secondary_score
        except (TypeError, ValueError):
            min_secondary_score = weights.min_secondary_score
        if not np.isfinite(min_secondary_score):
            min_secondary_score = weights.min_secondary_score
        return cls(max_secondary=max_secondary, min_secondary_score=min_secondary_score)


@dataclass(frozen=True, eq=False)
class DomainScores:
    scores: np.ndarray
    confidence: np.ndarray
    signals: Tuple[str, ...]

    def as_dict(self) -> Dict[str, float]:
        return {domain.value: round(float(self.scores[i]), 4) for i, domain in enumerate(DOMAIN_ORDER)}


def _bump(scores: np.ndarray, domain: str | Domain, amount: float) -> None:
    scores[_INDEX[Domain(domain)]] += amount


def _apply_lane_action(scores: np.ndarray, lane: str, action: str, weights: RouterWeights, lexicon: Lexicon) -> None:
    for token, domain, bonus in weights.lane_bonus:
        if lane and lane == token:
            _bump(scores, domain, bonus)
    if not action:
        return
    for domain, bonus in weights.action_bonus:
        cue = lexicon.router.action_cues.get(Domain(domain))
        if cue is not None and cue.search(action):
            _bump(scores, domain, bonus)


def _apply_keywords(scores: np.ndarray, text: str, weights: RouterWeights, lexicon: Lexicon) -> List[str]:
    hits: List[str] = []
    for domain, patterns in lexicon.router.keywords.items():
        if any_match(patterns, text):
            _bump(scores, domain, weights.keyword_hit)
            hits.append(f"kw:{domain.value}")
    for pattern, first, second in lexicon.router.coupling:
        if pattern.search(text):
            _bump(scores, first, weights.coupling)
            _bump(scores, second, weights.coupling)
    return hits


def _apply_intent_mode(
    scores: np.ndarray,
    intent: str,
    mode: str,
    lane: str,
    session_lane: str,
    weights: RouterWeights,
) -> None:
    if intent == "STABILIZE":
        for domain, bias in weights.stabilize_bias:
            _bump(scores, domain, bias)
    if mode in ("architect", "transitional"):
        _bump(scores, Domain.STRATEGY, weights.directive_mode_strategy)
    elif mode == "user":
        _bump(scores, Domain.ENGLISH, weights.user_mode_english)
    if session_lane and lane and session_lane == lane:
        _bump(scores, Domain.STRATEGY, weights.lane_stickiness)


def _apply_risk_clamp(scores: np.ndarray, tier: str, weights: RouterWeights) -> None:
    if tier == "high":
        for domain, bias in weights.high_risk_bias:
            _bump(scores, domain, bias)
        safe = np.zeros(len(DOMAIN_ORDER), dtype=bool)
        for domain, bias in weights.high_risk_bias:
            if bias > 0:
                safe[_INDEX[Domain(domain)]] = True
        if safe.any():
            ceiling = float(scores[safe].max()) * weights.high_risk_ceiling_ratio
            scores[~safe] = np.minimum(scores[~safe], ceiling)
    elif tier == "medium":
        for domain, bias in weights.medium_risk_bias:
            _bump(scores, domain, bias)


def score_domains(
    turn: Any,
    session: Any = None,
    cog: Any = None,
    *,
    weights: Optional[RouterWeights] = None,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> DomainScores:
    """Score every domain for the turn; ``confidence`` is each score over the max."""

    active = weights if weights is not None else default_policy().router
    norm = NormalizedTurn.from_value(turn)
    snapshot = SessionSnapshot.from_value(session)
    view = cognition_view(cog)

    scores = np.zeros(len(DOMAIN_ORDER), dtype=float)
    signals: List[str] = []

    lane = norm_token(norm.lane)
    action = norm_token(norm.action)
    text = safe_str(norm.text, 1400).lower()
    intent = str(view["intent"])
    mode = str(view["mode"]) or lower_token(snapshot.mac_mode, 16)
    tier = str(view["riskTier"])

    _apply_lane_action(scores, lane, action, active, lexicon)
    keyword_hits = _apply_keywords(scores, text, active, lexicon)
    _apply_intent_mode(scores, intent, mode, norm_token(view["lane"]), norm_token(snapshot.lane), active)
    _apply_risk_clamp(scores, tier, active)

    if float(np.clip(scores, 0.0, None).sum()) <= active.zero_epsilon:
        scores[:] = 0.0
        scores[_INDEX[Domain.CORE]] = 1.0
        signals.append("fallback:core")

    if lane:
        signals.append(f"lane:{lane}")
    if action:
        signals.append(f"action:{action[:18]}")
    if intent:
        signals.append(f"intent:{intent}")
    if tier:
        signals.append(f"risk:{tier}")
    signals.extend(keyword_hits)

    top = float(scores.max())
    denom = top if top > 0 else 1.0
    confidence = np.clip(scores / denom, 0.0, 1.0)
    return DomainScores(
        scores=scores,
        confidence=confidence,
        signals=tuple(uniq_bounded(signals, active.max_signals, 40)),
    )


def pick_domains(scores: np.ndarray, options: RouterOptions) -> Tuple[Domain, Tuple[Domain, ...]]:
    primary_index = int(np.argmax(scores))
    order = np.argsort(-scores, kind="stable")
    secondary: List[Domain] = []
    for index in order:
        if len(secondary) >= options.max_secondary:
            break
        index = int(index)
        if index == primary_index:
            continue
        if scores[index] >= options.min_secondary_score:
            secondary.append(DOMAIN_ORDER[index])
    return DOMAIN_ORDER[primary_index], tuple(secondary)


def _fallback_routing(signal: str) -> DomainRouting:
    return DomainRouting(
        primary=Domain.CORE,
        secondary=(),
        reason=RoutingReason(confidence=1.0, signals=(signal,)),
        scores=tuple((domain.value, 1.0 if domain is Domain.CORE else 0.0) for domain in DOMAIN_ORDER),
    )


def route_domain(
    turn: Any,
    session: Any = None,
    cog: Any = None,
    opts: Any = None,
    *,
    weights: Optional[RouterWeights] = None,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> DomainRouting:
    """Select a primary domain and up to two secondary ones; falls back to ``core`` on error."""

    try:
        active = weights if weights is not None else default_policy().router
        options = RouterOptions.from_value(opts, active)
        scored = score_domains(turn, session, cog, weights=active, lexicon=lexicon)
        primary, secondary = pick_domains(scored.scores, options)
        confidence = round(float(scored.confidence[_INDEX[primary]]), 4)
        score_items = scored.as_dict()
    except Exception as exc:
        LOGGER.warning("domain routing fell back to core (error_code=%s)", type(exc).__name__)
        return _fallback_routing("fallback:error")

    LOGGER.debug("routed primary=%s secondary=%s", primary.value, ",".join(d.value for d in secondary))
    return DomainRouting(
        primary=primary,
        secondary=secondary,
        reason=RoutingReason(confidence=confidence, signals=scored.signals),
        scores=tuple(score_items.items()),
    )


__all__ = [
    "RouterOptions",
    "DomainScores",
    "score_domains",
    "pick_domains",
    "route_domain",
]
