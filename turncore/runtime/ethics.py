"""Ethics tags and reply signals.

Tags describe the stance every reply keeps (``ethics:*``); signals are hints
for the renderer about how to phrase this particular reply. Self-harm language
additionally raises a safety redirect, which lifts the risk tier to high.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Tuple

from turncore.contracts import Agency, PsychologyState, Regulation, RiskTier
from turncore.runtime.coerce import uniq_bounded
from turncore.runtime.risk import MAX_RISK_TAGS, RiskAssessment

TAG_NON_DECEPTIVE = "ethics:non_deceptive"
TAG_AGENCY_RESPECT = "ethics:agency_respect"
TAG_HARM_AVOIDANCE = "ethics:harm_avoidance"
TAG_PRIVACY_MIN = "ethics:privacy_min"
TAG_SAFETY_REDIRECT = "ethics:safety_redirect"

SIGNAL_MINIMIZE_RISKY_DETAIL = "minimize_risky_detail"
SIGNAL_USE_NEUTRAL_TONE = "use_neutral_tone"
SIGNAL_OFFER_OPTIONS = "offer_options_not_orders"
SIGNAL_ENCOURAGE_HELP_SEEKING = "encourage_help_seeking"

RISK_SIGNAL_SAFETY_REDIRECT = "ethics_safety_redirect"
SELF_HARM_DOMAIN = "self_harm"

MAX_ETHICS_TAGS = 8
MAX_ETHICS_SIGNALS = 6


@dataclass(frozen=True)
class EthicsLayer:
    tags: Tuple[str, ...] = ()
    signals: Tuple[str, ...] = ()
    safety_redirect: bool = False


def compute_ethics(risk: RiskAssessment, psychology: PsychologyState, *, actionable: bool) -> EthicsLayer:
    tags: List[str] = [TAG_NON_DECEPTIVE, TAG_PRIVACY_MIN]
    signals: List[str] = []

    redirect = SELF_HARM_DOMAIN in risk.domains
    if redirect:
        tags += [TAG_HARM_AVOIDANCE, TAG_SAFETY_REDIRECT]
        signals += [SIGNAL_MINIMIZE_RISKY_DETAIL, SIGNAL_ENCOURAGE_HELP_SEEKING]
    elif psychology.regulation is Regulation.DYSREGULATED:
        tags.append(TAG_HARM_AVOIDANCE)
        signals += [SIGNAL_USE_NEUTRAL_TONE, SIGNAL_MINIMIZE_RISKY_DETAIL]

    tags.append(TAG_AGENCY_RESPECT)
    if psychology.agency is Agency.AUTONOMOUS and not actionable:
        signals.append(SIGNAL_OFFER_OPTIONS)

    return EthicsLayer(
        tags=tuple(uniq_bounded(tags, MAX_ETHICS_TAGS, 32)),
        signals=tuple(uniq_bounded(signals, MAX_ETHICS_SIGNALS, 40)),
        safety_redirect=redirect,
    )


def apply_safety_redirect(risk: RiskAssessment, ethics: EthicsLayer) -> RiskAssessment:
    """Lift a safety redirect into the risk assessment: tier high plus a signal."""

    if not ethics.safety_redirect:
        return risk
    signals = risk.signals
    if RISK_SIGNAL_SAFETY_REDIRECT not in signals:
        signals = (*signals, RISK_SIGNAL_SAFETY_REDIRECT)
    return replace(risk, tier=RiskTier.HIGH, signals=signals[:MAX_RISK_TAGS])


__all__ = [
    "TAG_NON_DECEPTIVE",
    "TAG_AGENCY_RESPECT",
    "TAG_HARM_AVOIDANCE",
    "TAG_PRIVACY_MIN",
    "TAG_SAFETY_REDIRECT",
    "SIGNAL_MINIMIZE_RISKY_DETAIL",
    "SIGNAL_USE_NEUTRAL_TONE",
    "SIGNAL_OFFER_OPTIONS",
    "SIGNAL_ENCOURAGE_HELP_SEEKING",
    "RISK_SIGNAL_SAFETY_REDIRECT",
    "SELF_HARM_DOMAIN",
    "EthicsLayer",
    "compute_ethics",
    "apply_safety_redirect",
]
