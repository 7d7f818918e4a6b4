"""Bounded decision trace, its grouping hash and the structured telemetry event.

The trace is a fixed-order ``key=value`` string built only from enums, flags,
small integers and routing tokens. It never carries the user's text.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from turncore.contracts import Cognition, NormalizedTurn, Telemetry
from turncore.policy.config import MediationPolicy, TracePolicy, policy_fingerprint
from turncore.runtime.coerce import clamp01, norm_token, safe_str

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619

FAIL_OPEN_TRACE = "fail_open"

_POLICY_CHECK_FIELDS = (
    "trace",
    "macModeWhy",
    "riskSignals",
    "riskDomains",
    "lawTags",
    "ethicsTags",
    "ethicsSignals",
    "movePolicy",
    "lanesUsed",
    "noveltyReasons",
    "discoveryHint",
    "bridge",
    "psychology",
    "telemetry",
)


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _tok(value: Any, limit: int) -> str:
    return safe_str(value, limit) or "-"


def build_trace(cog: Cognition, turn: NormalizedTurn, policy: TracePolicy) -> str:
    year = turn.year
    experts = ",".join(cog.lanes_used)
    parts = [
        f"m={cog.mode.value}",
        f"i={cog.intent.value}",
        f"d={cog.dominance.value}",
        f"b={cog.budget.value}",
        f"ln={_tok(norm_token(cog.lane), 12)}",
        f"la={_tok(cog.lane_action, 12)}",
        f"a={_tok(norm_token(turn.action), 18)}",
        f"y={year if year is not None else '-'}",
        f"p={_flag(cog.actionable)}",
        f"e={_flag(cog.text_empty)}",
        f"st={_flag(cog.stalled)}",
        f"rk={cog.risk_tier.value}",
        f"mv={cog.move_policy.preferred.value}",
        f"xc={_flag(cog.cross_lane_allowed)}",
        f"xl={_tok(experts[:24], 24)}",
        f"ld={cog.latent_desire.value}",
        f"cn={round(clamp01(cog.confidence.nyx) * 100)}",
        f"v={_flag(cog.velvet)}",
        f"nv={round(clamp01(cog.novelty_score) * 100)}",
        f"dh={_flag(cog.discovery_hint.enabled)}",
        f"ms={cog.marion_state.value}",
        f"pl={cog.psychology.cognitive_load.value}",
        f"pr={cog.psychology.regulation.value}",
        f"br={_tok(cog.bridge.kind, 16)}",
        f"lw={_tok(cog.law_tags[0] if cog.law_tags else '', 16)}",
    ]
    base = "|".join(parts)
    if len(base) <= policy.max_chars:
        return base
    return base[: policy.max_chars - 3] + "..."


def hash_trace(trace: str, hash_chars: int = 10) -> str:
    """FNV-1a (32-bit) of ``trace`` as unpadded hex, cut to ``hash_chars``."""

    h = FNV_OFFSET_BASIS
    for ch in safe_str(trace, 2000):
        h ^= ord(ch)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return format(h, "x")[:hash_chars]


def telemetry_fields(cog: Cognition) -> Tuple[Tuple[str, Any], ...]:
    return (
        ("mode", cog.mode.value),
        ("intent", cog.intent.value),
        ("dominance", cog.dominance.value),
        ("budget", cog.budget.value),
        ("stalled", cog.stalled),
        ("actionable", cog.actionable),
        ("groundingMaxLines", cog.grounding_max_lines),
        ("latentDesire", cog.latent_desire.value),
        ("confidenceUser", cog.confidence.user),
        ("confidenceNyx", cog.confidence.nyx),
        ("velvet", cog.velvet),
        ("velvetReason", cog.velvet_reason),
        ("noveltyScore", cog.novelty_score),
        ("noveltyReasons", cog.novelty_reasons),
        ("discoveryHint", cog.discovery_hint.enabled),
        ("marionState", cog.marion_state.value),
        ("lane", cog.lane),
        ("laneAction", cog.lane_action),
        ("bridgeKind", cog.bridge.kind),
        ("riskTier", cog.risk_tier.value),
        ("lawTags", cog.law_tags),
        ("ethicsTags", cog.ethics_tags),
        ("velvetAllowed", cog.velvet_allowed),
        ("preferredMove", cog.move_policy.preferred.value),
        ("moveReason", cog.move_policy.reason),
        ("lanesUsed", cog.lanes_used),
        ("crossLaneAllowed", cog.cross_lane_allowed),
    )


def build_telemetry(
    cog: Cognition,
    policy: MediationPolicy,
    now_ms: int,
    *,
    overrides: Sequence[str] = (),
    error_code: Optional[str] = None,
) -> Telemetry:
    return Telemetry(
        event=policy.trace.event_name,
        version=policy.trace.event_version,
        timestamp_ms=int(now_ms),
        policy_fingerprint=policy_fingerprint(policy),
        trace_hash=cog.trace_hash,
        fields=telemetry_fields(cog),
        overrides=tuple(overrides),
        error_code=error_code,
    )


def _needles(text: str) -> List[str]:
    t = safe_str(text, 2000).strip()
    if not t:
        return []
    candidates = [t[:18], t[:24], t[-18:]]
    return [n for n in dict.fromkeys(candidates) if len(n) >= 10]


def trace_policy_check(cog: Cognition, text: str) -> Tuple[str, ...]:
    """Report which serialized output fields contain a fragment of ``text``."""

    needles = _needles(text)
    if not needles:
        return ()
    payload: Dict[str, Any] = cog.to_dict()
    issues: List[str] = []
    for key in _POLICY_CHECK_FIELDS:
        value = payload.get(key)
        if value in (None, "", [], {}):
            continue
        serialized = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, sort_keys=True)
        if any(needle in serialized for needle in needles):
            issues.append(f"trace_policy_violation:{key}")
    return tuple(issues[:6])


__all__ = [
    "FAIL_OPEN_TRACE",
    "build_trace",
    "hash_trace",
    "telemetry_fields",
    "build_telemetry",
    "trace_policy_check",
]
