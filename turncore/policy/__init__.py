# -*- coding: utf-8 -*-
"""Weight policy and regex lexicons for the mediation core."""

from .config import MediationPolicy, load_mediation_policy, policy_fingerprint, policy_from_mapping
from .lexicon import DEFAULT_LEXICON, Lexicon

__all__ = [
    "MediationPolicy",
    "load_mediation_policy",
    "policy_fingerprint",
    "policy_from_mapping",
    "DEFAULT_LEXICON",
    "Lexicon",
]
