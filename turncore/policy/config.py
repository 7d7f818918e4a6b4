# -*- coding: utf-8 -*-
"""Loaders for the mediation weight policy."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import asdict, dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

_BASE_DIR = Path(__file__).resolve().parent
DEFAULT_POLICY_PATH = _BASE_DIR / "mediation_policy_v0.yaml"
POLICY_ENV_VAR = "TURNCORE_MEDIATION_POLICY"
SCHEMA_VERSION = "mediation_policy_v0"


@dataclass(frozen=True)
class ModeWeights:
    directive: int = 3
    constraint: int = 3
    enumeration: int = 2
    technical: int = 2
    uncertainty: int = 3
    emotion: int = 2
    transitional_bonus: int = 3
    transitional_threshold: int = 3
    margin: int = 2
    hold_confidence: float = 0.7


@dataclass(frozen=True)
class StallPolicy:
    max_turns_since_advance: int = 2
    max_idle_ms: int = 90_000


@dataclass(frozen=True)
class ConfidenceWeights:
    user_base: float = 0.5
    user_actionable: float = 0.15
    user_silent_payload: float = 0.05
    user_uncertainty: float = -0.25
    user_doubt: float = -0.10
    nyx_base: float = 0.55
    nyx_advance: float = 0.15
    nyx_stabilize: float = -0.25
    nyx_repeat: float = 0.10
    nyx_directive_mode: float = 0.05
    nyx_user_mode: float = -0.05


@dataclass(frozen=True)
class VelvetPolicy:
    eligible_lanes: Tuple[str, ...] = ("music",)
    depth_actions: Tuple[str, ...] = ("story_moment", "micro_moment", "custom_story")
    entry_votes: int = 2
    nyx_confidence_min: float = 0.6


@dataclass(frozen=True)
class DesirePolicy:
    authority_actions: Tuple[str, ...] = ("top10", "yearend_hot100")
    comfort_actions: Tuple[str, ...] = ("story_moment", "micro_moment", "custom_story", "counsel_intro")


@dataclass(frozen=True)
class NoveltyWeights:
    short_text: float = 0.18
    short_text_max_words: int = 3
    mixed_domain: float = 0.22
    ambiguous_ref: float = 0.18
    silent_payload: float = 0.25
    no_anchor: float = 0.25
    stall_pressure: float = 0.15
    architect_gap: float = 0.10
    max_reasons: int = 6
    discovery_threshold: float = 0.45


@dataclass(frozen=True)
class TracePolicy:
    max_chars: int = 160
    hash_chars: int = 10
    event_name: str = "turncore.mediation"
    event_version: str = "v1"


@dataclass(frozen=True)
class RouterWeights:
    lane_bonus: Tuple[Tuple[str, str, float], ...] = (
        ("law", "law", 2.2),
        ("finance", "fin", 2.2),
        ("fin", "fin", 2.2),
        ("cyber", "cyber", 2.2),
        ("psychology", "psychology", 2.2),
        ("psy", "psychology", 2.2),
        ("english", "english", 2.2),
        ("writing", "english", 2.2),
        ("strategy", "strategy", 2.0),
        ("ai", "ai", 2.4),
        ("artificial_intelligence", "ai", 2.4),
        ("music", "music", 2.2),
        ("marketing", "marketing", 2.0),
    )
    action_bonus: Tuple[Tuple[str, float], ...] = (
        ("law", 1.4),
        ("fin", 1.4),
        ("cyber", 1.4),
        ("english", 1.2),
        ("strategy", 1.1),
        ("ai", 1.6),
        ("music", 1.4),
    )
    keyword_hit: float = 2.0
    coupling: float = 0.8
    stabilize_bias: Tuple[Tuple[str, float], ...] = (
        ("psychology", 1.4),
        ("english", 0.8),
        ("core", 0.6),
        ("ai", -0.4),
        ("cyber", -0.4),
    )
    directive_mode_strategy: float = 0.8
    user_mode_english: float = 0.6
    lane_stickiness: float = 0.2
    high_risk_bias: Tuple[Tuple[str, float], ...] = (
        ("psychology", 1.2),
        ("english", 0.8),
        ("core", 0.8),
        ("cyber", -1.2),
        ("fin", -0.8),
        ("law", -0.8),
        ("ai", -0.6),
    )
    high_risk_ceiling_ratio: float = 0.9
    medium_risk_bias: Tuple[Tuple[str, float], ...] = (
        ("english", 0.3),
        ("core", 0.2),
        ("cyber", -0.4),
    )
    zero_epsilon: float = 0.001
    max_secondary: int = 2
    min_secondary_score: float = 1.6
    max_signals: int = 10


@dataclass(frozen=True)
class MediationPolicy:
    schema_version: str = SCHEMA_VERSION
    policy_version: str = SCHEMA_VERSION
    policy_source: str = "builtin"
    mode: ModeWeights = field(default_factory=ModeWeights)
    stall: StallPolicy = field(default_factory=StallPolicy)
    confidence: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    velvet: VelvetPolicy = field(default_factory=VelvetPolicy)
    desire: DesirePolicy = field(default_factory=DesirePolicy)
    novelty: NoveltyWeights = field(default_factory=NoveltyWeights)
    trace: TracePolicy = field(default_factory=TracePolicy)
    router: RouterWeights = field(default_factory=RouterWeights)

    @property
    def fingerprint(self) -> str:
        return policy_fingerprint(self)


_SECTIONS = {
    "mode": ModeWeights,
    "stall": StallPolicy,
    "confidence": ConfidenceWeights,
    "velvet": VelvetPolicy,
    "desire": DesirePolicy,
    "novelty": NoveltyWeights,
    "trace": TracePolicy,
    "router": RouterWeights,
}


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _build_section(name: str, cls: Any, payload: Any) -> Any:
    if payload is None:
        return cls()
    if not isinstance(payload, Mapping):
        raise ValueError(f"policy section {name!r} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(str(key) for key in payload if key not in known)
    if unknown:
        raise ValueError(f"unknown keys in policy section {name!r}: {', '.join(unknown)}")
    return cls(**{str(key): _freeze(value) for key, value in payload.items()})


def policy_from_mapping(raw: Mapping[str, Any], *, source: str = "inline") -> MediationPolicy:
    if str(raw.get("schema_version") or "") != SCHEMA_VERSION:
        raise ValueError(f"mediation policy schema_version must be {SCHEMA_VERSION}")
    unknown = sorted(str(k) for k in raw if k not in _SECTIONS and k not in {"schema_version", "policy_version"})
    if unknown:
        raise ValueError(f"unknown policy sections: {', '.join(unknown)}")
    sections = {name: _build_section(name, cls, raw.get(name)) for name, cls in _SECTIONS.items()}
    return MediationPolicy(
        schema_version=SCHEMA_VERSION,
        policy_version=str(raw.get("policy_version") or SCHEMA_VERSION),
        policy_source=source,
        **sections,
    )


@lru_cache(maxsize=8)
def _load_cached(resolved: str) -> MediationPolicy:
    path = Path(resolved)
    if not path.exists():
        return MediationPolicy()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("mediation policy must be a mapping")
    return policy_from_mapping(data, source=path.as_posix())


def load_mediation_policy(path: str | Path | None = None) -> MediationPolicy:
    """Load the weight policy from ``path``, ``$TURNCORE_MEDIATION_POLICY`` or the packaged default."""

    if path is None:
        path = os.environ.get(POLICY_ENV_VAR) or DEFAULT_POLICY_PATH
    return _load_cached(str(Path(path).resolve()))


def default_policy() -> MediationPolicy:
    return load_mediation_policy()


@lru_cache(maxsize=16)
def policy_fingerprint(policy: MediationPolicy) -> str:
    payload: Dict[str, Any] = asdict(policy)
    payload.pop("policy_source", None)
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def policy_meta(policy: Optional[MediationPolicy]) -> Dict[str, str]:
    active = policy if policy is not None else MediationPolicy()
    return {
        "policy_version": active.policy_version,
        "policy_source": active.policy_source,
        "policy_fingerprint": policy_fingerprint(active),
    }


__all__ = [
    "DEFAULT_POLICY_PATH",
    "POLICY_ENV_VAR",
    "SCHEMA_VERSION",
    "ModeWeights",
    "StallPolicy",
    "ConfidenceWeights",
    "VelvetPolicy",
    "DesirePolicy",
    "NoveltyWeights",
    "TracePolicy",
    "RouterWeights",
    "MediationPolicy",
    "policy_from_mapping",
    "load_mediation_policy",
    "default_policy",
    "policy_fingerprint",
    "policy_meta",
]
