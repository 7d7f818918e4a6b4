# -*- coding: utf-8 -*-
"""Deterministic turn mediation and knowledge-domain routing."""

from .contracts import (
    Cognition,
    Domain,
    DomainRouting,
    MediationOptions,
    NormalizedTurn,
    SessionPatch,
    SessionSnapshot,
)
from .policy.config import MediationPolicy, load_mediation_policy
from .routing.domain_router import route_domain, score_domains
from .runtime.mediator import fail_open_cognition, mediate

__all__ = [
    "Cognition",
    "Domain",
    "DomainRouting",
    "MediationOptions",
    "NormalizedTurn",
    "SessionPatch",
    "SessionSnapshot",
    "MediationPolicy",
    "load_mediation_policy",
    "route_domain",
    "score_domains",
    "fail_open_cognition",
    "mediate",
]
