from __future__ import annotations

import random

from turncore.contracts import (
    Intent,
    LatentDesire,
    MacMode,
    MarionState,
    NormalizedTurn,
    SessionSnapshot,
)
from turncore.policy.config import ConfidenceWeights, DesirePolicy
from turncore.policy.lexicon import DEFAULT_LEXICON
from turncore.runtime.confidence import score_confidence
from turncore.runtime.desire import infer_latent_desire
from turncore.runtime.mediator import mediate

_WORDS = [
    "let's",
    "design",
    "the",
    "pipeline",
    "I'm",
    "not",
    "sure",
    "why",
    "overwhelmed",
    "contract",
    "pricing",
    "and",
    "it?",
    "panic",
    "demo",
    "step 1",
    "suicide",
    "really",
    "json",
    "chart",
]
_ACTIONS = ["", "", "top10", "story_moment", "switch_lane", "yearend_hot100"]
_LANES = ["", "music", "law", "cyber", "Not A Token!", None]


def _desire(text: str, mode: MacMode = MacMode.USER, **turn) -> LatentDesire:
    return infer_latent_desire(
        NormalizedTurn.from_value({"text": text, **turn}),
        SessionSnapshot(),
        mode,
        DesirePolicy(),
        DEFAULT_LEXICON.desire,
    )


def test_confidence_and_trace_stay_bounded_for_random_turns() -> None:
    rng = random.Random(7)
    session: dict = {}
    for step in range(60):
        text = " ".join(rng.choice(_WORDS) for _ in range(rng.randint(0, 12)))
        turn = {
            "text": text,
            "action": rng.choice(_ACTIONS),
            "lane": rng.choice(_LANES),
            "year": rng.choice([None, 1988, 1850, "1999", "abc"]),
        }
        cog = mediate(turn, session, {"nowMs": 1_000 + step * 7_000})
        assert cog.error_code is None
        assert 0.0 <= cog.confidence.user <= 1.0
        assert 0.0 <= cog.confidence.nyx <= 1.0
        assert 0.0 <= cog.novelty_score <= 1.0
        assert len(cog.trace) <= 160
        assert len(cog.law_tags) <= 8
        assert cog.law_tags[-1] == "coherence" or len(cog.law_tags) == 8
        session.update(cog.session_patch.to_dict())


def test_doubt_and_uncertainty_lower_user_confidence() -> None:
    conf = score_confidence(
        NormalizedTurn.from_value({"text": "are you sure? I'm not sure"}),
        SessionSnapshot(),
        MacMode.USER,
        Intent.CLARIFY,
        ConfidenceWeights(),
        DEFAULT_LEXICON.intent,
    )
    assert conf.user == 0.15
    assert conf.nyx == 0.5


def test_repeated_action_raises_nyx_confidence() -> None:
    conf = score_confidence(
        NormalizedTurn.from_value({"action": "top10", "year": 1988}),
        SessionSnapshot(last_action="top10", last_year=1988),
        MacMode.ARCHITECT,
        Intent.ADVANCE,
        ConfidenceWeights(),
        DEFAULT_LEXICON.intent,
    )
    assert conf.user == 0.65
    assert conf.nyx == 0.85


def test_chart_request_reads_as_authority_and_delivers() -> None:
    cog = mediate({"text": "", "action": "top10", "year": 1988, "lane": "music"}, {}, {"nowMs": 1_000})
    assert cog.actionable is True
    assert cog.intent is Intent.ADVANCE
    assert cog.latent_desire is LatentDesire.AUTHORITY
    assert cog.marion_state is MarionState.DELIVER
    assert cog.psychology.motivation == "authority"


def test_distress_reads_as_comfort_and_stabilizes() -> None:
    cog = mediate({"text": "I'm so overwhelmed and stuck"}, {}, {"nowMs": 1_000})
    assert cog.intent is Intent.STABILIZE
    assert cog.mode is MacMode.USER
    assert cog.latent_desire is LatentDesire.COMFORT
    assert cog.marion_state is MarionState.STABILIZE
    assert "velvet_guard" in cog.law_tags


def test_text_cues_take_precedence_over_action() -> None:
    assert _desire("can we refactor the architecture", action="top10") is LatentDesire.MASTERY
    assert _desire("do you think this works") is LatentDesire.VALIDATION
    assert _desire("what's the meaning of that") is LatentDesire.CURIOSITY


def test_mode_and_immersion_fallbacks() -> None:
    assert _desire("sounds good", mode=MacMode.ARCHITECT) is LatentDesire.AUTHORITY
    assert _desire("let's design it", mode=MacMode.ARCHITECT) is LatentDesire.MASTERY
    assert _desire("", action="story_moment") is LatentDesire.COMFORT
    immersed = infer_latent_desire(
        NormalizedTurn.from_value({"text": "ok"}),
        SessionSnapshot(velvet_mode=True),
        MacMode.USER,
        DesirePolicy(),
        DEFAULT_LEXICON.desire,
    )
    assert immersed is LatentDesire.COMFORT
    assert _desire("ok") is LatentDesire.CURIOSITY
