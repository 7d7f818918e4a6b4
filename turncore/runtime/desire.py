from __future__ import annotations

from turncore.contracts import LatentDesire, MacMode, NormalizedTurn, SessionSnapshot
from turncore.policy.config import DesirePolicy
from turncore.policy.lexicon import DesireLexicon
from turncore.runtime.coerce import safe_str


def infer_latent_desire(
    turn: NormalizedTurn,
    session: SessionSnapshot,
    mode: MacMode,
    policy: DesirePolicy,
    lexicon: DesireLexicon,
) -> LatentDesire:
    """Guess what the user is after beneath the literal request.

    Text cues are checked first, then the action, then the mode, then whether
    the session is already immersed.
    """

    text = safe_str(turn.text, 1400).lower()
    action = safe_str(turn.action, 80).lower()

    if lexicon.mastery.search(text):
        return LatentDesire.MASTERY
    if lexicon.validation.search(text):
        return LatentDesire.VALIDATION
    if lexicon.curiosity.search(text):
        return LatentDesire.CURIOSITY
    if lexicon.comfort.search(text):
        return LatentDesire.COMFORT

    if action in policy.authority_actions:
        return LatentDesire.AUTHORITY
    if action in policy.comfort_actions:
        return LatentDesire.COMFORT

    if mode is MacMode.ARCHITECT:
        if lexicon.build_verbs.search(text):
            return LatentDesire.MASTERY
        return LatentDesire.AUTHORITY

    if session.velvet_mode:
        return LatentDesire.COMFORT
    return LatentDesire.CURIOSITY


__all__ = ["infer_latent_desire"]
