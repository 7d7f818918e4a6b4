from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from turncore.contracts import DiscoveryHint, Intent, MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import NoveltyWeights, StallPolicy
from turncore.policy.lexicon import Lexicon
from turncore.runtime.coerce import any_match, clamp01, safe_str


@dataclass(frozen=True)
class NoveltyScore:
    score: float
    reasons: Tuple[str, ...]


def _keyword_families(text: str, lexicon: Lexicon) -> int:
    return sum(1 for patterns in lexicon.router.keywords.values() if any_match(patterns, text))


def score_novelty(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    mode: MacMode,
    intent: Intent,
    actionable: bool,
    weights: NoveltyWeights,
    stall: StallPolicy,
    lexicon: Lexicon,
) -> NoveltyScore:
    """Additive ambiguity score; every trigger only ever adds weight."""

    text = safe_str(turn.text, 1400).strip().lower()
    signals = turn.turn_signals
    score = 0.0
    reasons: List[str] = []

    def hit(tag: str, weight: float) -> None:
        nonlocal score
        score += weight
        reasons.append(tag)

    words = len(text.split())
    if 1 <= words <= weights.short_text_max_words:
        hit("short_text", weights.short_text)
    if text and lexicon.novelty.conjunction.search(text) and _keyword_families(text, lexicon) >= 2:
        hit("mixed_domain", weights.mixed_domain)
    if "?" in text and lexicon.novelty.ambiguous_pronoun.search(text):
        hit("ambiguous_ref", weights.ambiguous_ref)
    if signals.has_payload and signals.text_empty and not actionable:
        hit("silent_payload", weights.silent_payload)
    if not turn.action and turn.year is None and signals.payload_year is None and not signals.payload_actionable:
        hit("no_anchor", weights.no_anchor)
    if session.turns_since_advance >= stall.max_turns_since_advance and intent is not Intent.ADVANCE:
        hit("stall_pressure", weights.stall_pressure)
    if mode is MacMode.ARCHITECT and not actionable:
        hit("architect_gap", weights.architect_gap)

    return NoveltyScore(score=round(clamp01(score), 4), reasons=tuple(reasons[: weights.max_reasons]))


def discovery_hint(
    novelty: NoveltyScore,
    intent: Intent,
    mode: MacMode,
    actionable: bool,
    weights: NoveltyWeights,
) -> DiscoveryHint:
    enabled = novelty.score >= weights.discovery_threshold and intent is Intent.CLARIFY and not actionable
    if not enabled:
        return DiscoveryHint(enabled=False, style="none", reason_codes=())
    style = "direct" if mode in (MacMode.ARCHITECT, MacMode.TRANSITIONAL) else "gentle"
    return DiscoveryHint(enabled=True, style=style, reason_codes=novelty.reasons)


__all__ = ["NoveltyScore", "score_novelty", "discovery_hint"]
