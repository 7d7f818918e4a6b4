from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from turncore.runtime.coerce import (
    as_mapping,
    lower_token,
    non_negative_int,
    norm_year,
    pick,
    safe_str,
    truthy,
)

MEDIATOR_VERSION = "turncore.mediator v1"
ROUTER_VERSION = "turncore.domain_router v1"


class MacMode(str, Enum):
    ARCHITECT = "architect"
    USER = "user"
    TRANSITIONAL = "transitional"


class Intent(str, Enum):
    ADVANCE = "ADVANCE"
    CLARIFY = "CLARIFY"
    STABILIZE = "STABILIZE"


class Dominance(str, Enum):
    FIRM = "firm"
    NEUTRAL = "neutral"
    SOFT = "soft"


class Budget(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"


class LatentDesire(str, Enum):
    AUTHORITY = "authority"
    COMFORT = "comfort"
    CURIOSITY = "curiosity"
    VALIDATION = "validation"
    MASTERY = "mastery"


class MarionState(str, Enum):
    SEEK = "SEEK"
    DELIVER = "DELIVER"
    STABILIZE = "STABILIZE"
    BRIDGE = "BRIDGE"


class RiskTier(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CognitiveLoad(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Regulation(str, Enum):
    REGULATED = "regulated"
    STRAINED = "strained"
    DYSREGULATED = "dysregulated"


class Agency(str, Enum):
    GUIDED = "guided"
    AUTONOMOUS = "autonomous"


class SocialPressure(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Domain(str, Enum):
    """Knowledge domains; declaration order is the routing tie-break order."""

    AI = "ai"
    FIN = "fin"
    LAW = "law"
    CYBER = "cyber"
    PSYCHOLOGY = "psychology"
    STRATEGY = "strategy"
    ENGLISH = "english"
    CORE = "core"
    MUSIC = "music"
    MARKETING = "marketing"


DOMAIN_ORDER: Tuple[Domain, ...] = tuple(Domain)

_MODE_ALIASES = {
    "architect": MacMode.ARCHITECT,
    "builder": MacMode.ARCHITECT,
    "dev": MacMode.ARCHITECT,
    "user": MacMode.USER,
    "viewer": MacMode.USER,
    "consumer": MacMode.USER,
    "transitional": MacMode.TRANSITIONAL,
    "mixed": MacMode.TRANSITIONAL,
    "both": MacMode.TRANSITIONAL,
}


def parse_mac_mode(value: Any) -> Optional[MacMode]:
    return _MODE_ALIASES.get(lower_token(value, 60))


def parse_enum(enum_cls: Any, value: Any) -> Any:
    """Return the ``enum_cls`` member whose value equals ``value`` exactly, else ``None``."""

    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    for member in enum_cls:
        if member.value == value:
            return member
    return None


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass
class TurnSignals:
    has_payload: bool = False
    text_empty: bool = False
    payload_actionable: bool = False
    payload_action: str = ""
    payload_year: Optional[int] = None
    payload_lane: str = ""
    payload_intent: str = ""
    payload_label: str = ""
    mac_mode_override: str = ""

    @classmethod
    def from_value(cls, value: Any) -> "TurnSignals":
        if isinstance(value, TurnSignals):
            return value
        raw = as_mapping(value)
        return cls(
            has_payload=truthy(pick(raw, "hasPayload", "has_payload")),
            text_empty=truthy(pick(raw, "textEmpty", "text_empty")),
            payload_actionable=truthy(pick(raw, "payloadActionable", "payload_actionable")),
            payload_action=safe_str(pick(raw, "payloadAction", "payload_action"), 60).strip(),
            payload_year=norm_year(pick(raw, "payloadYear", "payload_year")),
            payload_lane=safe_str(pick(raw, "payloadLane", "payload_lane"), 40).strip(),
            payload_intent=lower_token(pick(raw, "payloadIntent", "payload_intent")),
            payload_label=lower_token(pick(raw, "payloadLabel", "payload_label", "payloadChip")),
            mac_mode_override=safe_str(pick(raw, "macModeOverride", "mac_mode_override"), 60),
        )


@dataclass
class NormalizedTurn:
    text: str = ""
    action: str = ""
    lane: str = ""
    year: Optional[int] = None
    turn_signals: TurnSignals = field(default_factory=TurnSignals)
    mac_mode_override: str = ""

    @classmethod
    def from_value(cls, value: Any) -> "NormalizedTurn":
        if isinstance(value, NormalizedTurn):
            return value
        raw = as_mapping(value)
        return cls(
            text=safe_str(raw.get("text"), 1400),
            action=safe_str(raw.get("action"), 80).strip(),
            lane=safe_str(raw.get("lane"), 40).strip(),
            year=norm_year(raw.get("year")),
            turn_signals=TurnSignals.from_value(pick(raw, "turnSignals", "turn_signals")),
            mac_mode_override=safe_str(pick(raw, "macModeOverride", "mac_mode_override", "macMode"), 60),
        )


@dataclass
class SessionSnapshot:
    mac_mode: str = ""
    lane: str = ""
    last_action: str = ""
    last_year: Optional[int] = None
    turn_count: int = 0
    turns_since_advance: int = 0
    last_advance_at: int = 0
    velvet_mode: bool = False
    velvet_since: int = 0

    @classmethod
    def from_value(cls, value: Any) -> "SessionSnapshot":
        if isinstance(value, SessionSnapshot):
            return value
        raw = as_mapping(value)
        return cls(
            mac_mode=safe_str(pick(raw, "macMode", "mac_mode"), 60),
            lane=safe_str(raw.get("lane"), 40).strip(),
            last_action=safe_str(pick(raw, "lastAction", "last_action"), 80).strip(),
            last_year=norm_year(pick(raw, "lastYear", "last_year")),
            turn_count=non_negative_int(pick(raw, "turnCount", "turn_count")),
            turns_since_advance=non_negative_int(pick(raw, "turnsSinceAdvance", "turns_since_advance")),
            last_advance_at=non_negative_int(pick(raw, "lastAdvanceAt", "last_advance_at")),
            velvet_mode=truthy(pick(raw, "velvetMode", "velvet_mode")),
            velvet_since=non_negative_int(pick(raw, "velvetSince", "velvet_since")),
        )


Clock = Callable[[], Any]


def system_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MediationOptions:
    now_ms: Union[int, Clock, None] = None
    force_budget: Optional[Budget] = None
    force_dominance: Optional[Dominance] = None
    force_intent: Optional[Intent] = None
    force_velvet: Optional[bool] = None
    hold_mode: bool = False
    dev_trace_policy_check: bool = False

    @classmethod
    def from_value(cls, value: Any) -> "MediationOptions":
        if isinstance(value, MediationOptions):
            return cls(
                now_ms=value.now_ms,
                force_budget=parse_enum(Budget, value.force_budget),
                force_dominance=parse_enum(Dominance, value.force_dominance),
                force_intent=parse_enum(Intent, value.force_intent),
                force_velvet=value.force_velvet if isinstance(value.force_velvet, bool) else None,
                hold_mode=value.hold_mode is True,
                dev_trace_policy_check=value.dev_trace_policy_check is True,
            )
        raw = as_mapping(value)
        force_velvet = pick(raw, "forceVelvet", "force_velvet")
        return cls(
            now_ms=pick(raw, "nowMs", "now_ms"),
            force_budget=parse_enum(Budget, pick(raw, "forceBudget", "force_budget")),
            force_dominance=parse_enum(Dominance, pick(raw, "forceDominance", "force_dominance")),
            force_intent=parse_enum(Intent, pick(raw, "forceIntent", "force_intent")),
            force_velvet=force_velvet if isinstance(force_velvet, bool) else None,
            hold_mode=truthy(pick(raw, "holdMode", "hold_mode")),
            dev_trace_policy_check=truthy(pick(raw, "devTracePolicyCheck", "dev_trace_policy_check")),
        )

    def resolve_now(self) -> int:
        source = self.now_ms
        if callable(source):
            source = source()
        now = non_negative_int(source)
        return now or system_clock_ms()


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Confidence:
    user: float = 0.5
    nyx: float = 0.55

    def to_dict(self) -> Dict[str, float]:
        return {"user": self.user, "nyx": self.nyx}


@dataclass(frozen=True)
class DiscoveryHint:
    enabled: bool = False
    style: str = "none"
    reason_codes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "style": self.style, "reasonCodes": list(self.reason_codes)}


@dataclass(frozen=True)
class Bridge:
    enabled: bool = False
    kind: str = ""
    lane_from: str = ""
    lane_to: str = ""
    reason: str = "none"
    chip_label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"enabled": False, "reason": self.reason}
        return {
            "enabled": True,
            "kind": self.kind,
            "laneFrom": self.lane_from,
            "laneTo": self.lane_to,
            "reason": self.reason,
            "chipLabel": self.chip_label,
        }


@dataclass(frozen=True)
class PsychologyState:
    cognitive_load: CognitiveLoad = CognitiveLoad.LOW
    regulation: Regulation = Regulation.REGULATED
    agency: Agency = Agency.GUIDED
    social_pressure: SocialPressure = SocialPressure.LOW
    motivation: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "cognitiveLoad": self.cognitive_load.value,
            "regulationState": self.regulation.value,
            "agencyPreference": self.agency.value,
            "socialPressure": self.social_pressure.value,
            "motivation": self.motivation,
        }


@dataclass(frozen=True)
class MovePolicy:
    """The move the reply should lead with, and whether it may be overridden."""

    preferred: Intent = Intent.CLARIFY
    hard_override: bool = False
    reason: str = "intent"

    def to_dict(self) -> Dict[str, Any]:
        return {"preferredMove": self.preferred.value, "hardOverride": self.hard_override, "reason": self.reason}


@dataclass(frozen=True)
class SessionPatch:
    """Values the host should persist once the turn has been answered."""

    mac_mode: str = MacMode.ARCHITECT.value
    mac_mode_stability: str = "steady"
    mac_mode_confidence: float = 0.55
    lane: str = "general"
    last_action: str = ""
    last_year: Optional[int] = None
    turn_count: int = 0
    turns_since_advance: int = 0
    last_advance_at: int = 0
    velvet_mode: bool = False
    velvet_since: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "macMode": self.mac_mode,
            "macModeStability": self.mac_mode_stability,
            "macModeConfidence": self.mac_mode_confidence,
            "lane": self.lane,
            "lastAction": self.last_action,
            "lastYear": self.last_year,
            "turnCount": self.turn_count,
            "turnsSinceAdvance": self.turns_since_advance,
            "lastAdvanceAt": self.last_advance_at,
            "velvetMode": self.velvet_mode,
            "velvetSince": self.velvet_since,
        }


@dataclass(frozen=True)
class Telemetry:
    event: str
    version: str
    timestamp_ms: int
    policy_fingerprint: str
    trace_hash: str
    fields: Tuple[Tuple[str, Any], ...] = ()
    overrides: Tuple[str, ...] = ()
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "event": self.event,
            "version": self.version,
            "timestampMs": self.timestamp_ms,
            "policyFingerprint": self.policy_fingerprint,
            "traceHash": self.trace_hash,
            "overrides": list(self.overrides),
        }
        for key, value in self.fields:
            out[key] = list(value) if isinstance(value, tuple) else value
        if self.error_code:
            out["errorCode"] = self.error_code
        return out


@dataclass(frozen=True)
class Cognition:
    mode: MacMode = MacMode.ARCHITECT
    intent: Intent = Intent.CLARIFY
    dominance: Dominance = Dominance.NEUTRAL
    budget: Budget = Budget.SHORT
    stalled: bool = False
    actionable: bool = False
    text_empty: bool = False
    grounding_max_lines: int = 0
    latent_desire: LatentDesire = LatentDesire.CURIOSITY
    confidence: Confidence = field(default_factory=Confidence)
    velvet: bool = False
    velvet_since: int = 0
    velvet_reason: str = ""
    novelty_score: float = 0.0
    novelty_reasons: Tuple[str, ...] = ()
    discovery_hint: DiscoveryHint = field(default_factory=DiscoveryHint)
    marion_state: MarionState = MarionState.SEEK
    marion_reason: str = "default"
    lane: str = "general"
    lane_reason: str = "default"
    lane_action: str = ""
    bridge: Bridge = field(default_factory=Bridge)
    risk_tier: RiskTier = RiskTier.NONE
    risk_domains: Tuple[str, ...] = ()
    risk_signals: Tuple[str, ...] = ()
    law_tags: Tuple[str, ...] = ()
    ethics_tags: Tuple[str, ...] = ()
    ethics_signals: Tuple[str, ...] = ()
    velvet_allowed: bool = True
    move_policy: MovePolicy = field(default_factory=MovePolicy)
    lanes_used: Tuple[str, ...] = ()
    cross_lane_allowed: bool = True
    psychology: PsychologyState = field(default_factory=PsychologyState)
    mode_reasons: Tuple[str, ...] = ()
    trace: str = ""
    trace_hash: str = ""
    telemetry: Optional[Telemetry] = None
    session_patch: Optional[SessionPatch] = None
    trace_policy_issues: Tuple[str, ...] = ()
    error_code: Optional[str] = None
    version: str = MEDIATOR_VERSION

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "mode": self.mode.value,
            "intent": self.intent.value,
            "dominance": self.dominance.value,
            "budget": self.budget.value,
            "stalled": self.stalled,
            "actionable": self.actionable,
            "textEmpty": self.text_empty,
            "groundingMaxLines": self.grounding_max_lines,
            "latentDesire": self.latent_desire.value,
            "confidence": self.confidence.to_dict(),
            "velvet": self.velvet,
            "velvetSince": self.velvet_since,
            "velvetReason": self.velvet_reason,
            "noveltyScore": self.novelty_score,
            "noveltyReasons": list(self.novelty_reasons),
            "discoveryHint": self.discovery_hint.to_dict(),
            "marionState": self.marion_state.value,
            "marionReason": self.marion_reason,
            "lane": self.lane,
            "laneReason": self.lane_reason,
            "laneAction": self.lane_action,
            "bridge": self.bridge.to_dict(),
            "riskTier": self.risk_tier.value,
            "riskDomains": list(self.risk_domains),
            "riskSignals": list(self.risk_signals),
            "lawTags": list(self.law_tags),
            "ethicsTags": list(self.ethics_tags),
            "ethicsSignals": list(self.ethics_signals),
            "velvetAllowed": self.velvet_allowed,
            "movePolicy": self.move_policy.to_dict(),
            "lanesUsed": list(self.lanes_used),
            "crossLaneAllowed": self.cross_lane_allowed,
            "psychology": self.psychology.to_dict(),
            "macModeWhy": list(self.mode_reasons),
            "trace": self.trace,
            "traceHash": self.trace_hash,
            "telemetry": self.telemetry.to_dict() if self.telemetry else None,
            "sessionPatch": self.session_patch.to_dict() if self.session_patch else None,
        }
        if self.trace_policy_issues:
            out["tracePolicyIssues"] = list(self.trace_policy_issues)
        if self.error_code:
            out["errorCode"] = self.error_code
        return out


@dataclass(frozen=True)
class RoutingReason:
    confidence: float = 0.0
    signals: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"confidence": self.confidence, "signals": list(self.signals)}


@dataclass(frozen=True)
class DomainRouting:
    primary: Domain = Domain.CORE
    secondary: Tuple[Domain, ...] = ()
    reason: RoutingReason = field(default_factory=RoutingReason)
    scores: Tuple[Tuple[str, float], ...] = ()
    router_version: str = ROUTER_VERSION

    def score_map(self) -> Dict[str, float]:
        return dict(self.scores)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routerVersion": self.router_version,
            "primary": self.primary.value,
            "secondary": [d.value for d in self.secondary],
            "reason": self.reason.to_dict(),
            "scores": self.score_map(),
        }


def cognition_view(value: Any) -> Mapping[str, Any]:
    """Flatten a ``Cognition`` (or a host mapping of one) into the keys the router reads."""

    if isinstance(value, Cognition):
        return {
            "intent": value.intent.value,
            "mode": value.mode.value,
            "riskTier": value.risk_tier.value,
            "lane": value.lane,
        }
    raw = as_mapping(value)
    return {
        "intent": safe_str(raw.get("intent"), 12).strip().upper(),
        "mode": lower_token(pick(raw, "mode", "macMode", "mac_mode"), 16),
        "riskTier": lower_token(pick(raw, "riskTier", "risk_tier"), 10),
        "lane": lower_token(raw.get("lane"), 40),
    }


__all__ = [
    "MEDIATOR_VERSION",
    "ROUTER_VERSION",
    "MacMode",
    "Intent",
    "Dominance",
    "Budget",
    "LatentDesire",
    "MarionState",
    "RiskTier",
    "CognitiveLoad",
    "Regulation",
    "Agency",
    "SocialPressure",
    "Domain",
    "DOMAIN_ORDER",
    "parse_mac_mode",
    "parse_enum",
    "TurnSignals",
    "NormalizedTurn",
    "SessionSnapshot",
    "MediationOptions",
    "system_clock_ms",
    "Confidence",
    "DiscoveryHint",
    "Bridge",
    "PsychologyState",
    "MovePolicy",
    "SessionPatch",
    "Telemetry",
    "Cognition",
    "RoutingReason",
    "DomainRouting",
    "cognition_view",
]
