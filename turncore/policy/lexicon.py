"""Immutable regex lexicons used by the mediation heuristics and the domain router.

Every pattern is compiled once at import time and matched against lower-cased
turn text. Components receive a :class:`Lexicon` as a parameter so tests can
swap in a narrower vocabulary without patching module globals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Pattern, Tuple

from turncore.contracts import Domain


def _re(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _res(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(_re(p) for p in patterns)


@dataclass(frozen=True)
class ModeLexicon:
    directive: Pattern[str]
    constraint: Pattern[str]
    enumeration: Tuple[Pattern[str], ...]
    technical: Pattern[str]
    uncertainty: Pattern[str]
    emotion: Pattern[str]


@dataclass(frozen=True)
class IntentLexicon:
    stabilize: Pattern[str]
    clarify: Pattern[str]
    uncertainty: Pattern[str]
    doubt: Pattern[str]


@dataclass(frozen=True)
class DesireLexicon:
    mastery: Pattern[str]
    validation: Pattern[str]
    curiosity: Pattern[str]
    comfort: Pattern[str]
    build_verbs: Pattern[str]
    depth: Pattern[str]


@dataclass(frozen=True)
class PsychologyLexicon:
    enumeration: Tuple[Pattern[str], ...]
    technical: Pattern[str]
    urgency: Pattern[str]
    dysregulated: Pattern[str]
    strained: Pattern[str]
    guided: Pattern[str]
    autonomous: Pattern[str]
    pressure_high: Pattern[str]
    pressure_medium: Pattern[str]


@dataclass(frozen=True)
class RiskRule:
    """One risk family: ``domain`` tag, the tier it raises to, and an optional signal tag."""

    domain: str
    tier: str
    pattern: Pattern[str]
    signal: str = ""


@dataclass(frozen=True)
class NoveltyLexicon:
    conjunction: Pattern[str]
    ambiguous_pronoun: Pattern[str]


@dataclass(frozen=True)
class RouterLexicon:
    keywords: Mapping[Domain, Tuple[Pattern[str], ...]]
    action_cues: Mapping[Domain, Pattern[str]]
    coupling: Tuple[Tuple[Pattern[str], Domain, Domain], ...]


@dataclass(frozen=True)
class Lexicon:
    mode: ModeLexicon
    intent: IntentLexicon
    desire: DesireLexicon
    psychology: PsychologyLexicon
    risk: Tuple[RiskRule, ...]
    novelty: NoveltyLexicon
    router: RouterLexicon


_ENUMERATION = _res(r"\b(step\s*\d+|1\s*,\s*2\s*,\s*3|1\s*2\s*3)\b", r"\b\d+\)\s")

MODE_LEXICON = ModeLexicon(
    directive=_re(r"\b(let's|lets)\s+(define|design|lock|implement|encode|ship|wire)\b"),
    constraint=_re(
        r"\b(non[-\s]?negotiable|must|hard rule|lock this in|constitution|mediator|pipeline|governor|decision table)\b"
    ),
    enumeration=_ENUMERATION,
    technical=_re(
        r"\b(index\.js|chatengine\.js|statespine\.js|render|cors|session|payload|json|endpoint|route|resolver|pack|tests?)\b"
    ),
    uncertainty=_re(
        r"\b(i('?m)?\s+not\s+sure|help\s+me\s+understand|does\s+this\s+make\s+sense|where\s+do\s+i|get\s+the\s+url)\b"
    ),
    emotion=_re(r"\b(confused|stuck|frustrated|overwhelmed|worried)\b"),
)

INTENT_LEXICON = IntentLexicon(
    stabilize=_re(
        r"\b(i('?m)?\s+stuck|i('?m)?\s+worried|overwhelmed|frustrated|anxious|panic|stress(ed)?|reassure|calm)\b"
    ),
    clarify=_re(r"\b(explain|how do i|how to|what is|walk me through|where do i|get|why|help me)\b"),
    uncertainty=_re(r"\b(i('?m)?\s+not\s+sure|confused|stuck|overwhelmed)\b"),
    doubt=_re(r"\b(are you sure|really)\b"),
)

DESIRE_LEXICON = DesireLexicon(
    mastery=_re(
        r"\b(optimi[sz]e|systems?|framework|architecture|hard(en)?|constraints?|regression tests?|unit tests?"
        r"|audit|refactor|contract|deterministic)\b"
    ),
    validation=_re(r"\b(am i right|do i make sense|how am i perceived|handsome|attractive|validation|do you think)\b"),
    curiosity=_re(r"\b(why|meaning|connect|pattern|link|what connects|deeper|layer)\b"),
    comfort=_re(r"\b(worried|overwhelmed|stuck|anxious|stress|reassure|calm)\b"),
    build_verbs=_re(r"\b(design|implement|encode|ship|lock|wire|merge|pin|canonical)\b"),
    depth=_re(r"\b(why|meaning|connect|deeper|layer)\b"),
)

PSYCHOLOGY_LEXICON = PsychologyLexicon(
    enumeration=_ENUMERATION,
    technical=_re(
        r"\b(index\.js|chatengine\.js|statespine\.js|cors|session|payload|endpoint|route|resolver|deterministic"
        r"|contract|telemetry|policy|json|tests?)\b"
    ),
    urgency=_re(r"\b(asap|urgent|right now|immediately|quick|fast)\b"),
    dysregulated=_re(r"\b(panic|i can'?t breathe|i'?m freaking out|meltdown|spiral|breakdown|i can'?t do this)\b"),
    strained=_re(r"\b(overwhelmed|stuck|frustrated|anxious|stress(ed)?|worried|i'?m not sure|confused)\b"),
    guided=_re(r"\b(give me a plan|tell me what to do|decide for me|just pick|do it)\b"),
    autonomous=_re(r"\b(options|ideas|what are my choices|pick from|menu)\b"),
    pressure_high=_re(r"\b(demo|client|stakeholder|investor|sponsor|launch|press|deadline|meeting)\b"),
    pressure_medium=_re(r"\b(team|we need|today|this week|timeline)\b"),
)

RISK_RULES: Tuple[RiskRule, ...] = (
    RiskRule(
        "self_harm",
        "high",
        _re(r"\b(suicid(e|al)|kill myself|end it all|self[-\s]?harm|cutting|i don't want to live)\b"),
        "containment_required",
    ),
    RiskRule(
        "violence",
        "medium",
        _re(r"\b(kill|murder|shoot|stab|bomb|attack|hurt (them|him|her)|beat (them|him|her)|make a weapon)\b"),
        "violence_related",
    ),
    RiskRule(
        "illegal",
        "high",
        _re(r"\b(how to (steal|fraud)|bypass (the )?law|evade (the )?law|counterfeit|forg(e|ery)|identity theft)\b"),
        "illegal_intent_detected",
    ),
    RiskRule(
        "privacy",
        "medium",
        _re(
            r"\b(doxx|dox|ip address|track (a|an|the) (person|user)|stalk|find (their|his|her) address"
            r"|social security|sin number|credit card number)\b"
        ),
        "privacy_sensitive",
    ),
    RiskRule(
        "sexual",
        "medium",
        _re(r"\b(nudes?|porn|explicit|sexual|sex tape|onlyfans|hook up|fetish|bdsm)\b"),
        "sexual_content",
    ),
    RiskRule(
        "hate",
        "medium",
        _re(
            r"\b(nazi|white power|genocide|ethnic cleansing|kill (all|the) (jews|muslims|christians|blacks|whites)"
            r"|racial superiority)\b"
        ),
        "hate_related",
    ),
    RiskRule("medical", "medium", _re(r"\b(diagnose|medical advice|prescription|dose)\b")),
    RiskRule("legal", "medium", _re(r"\b(legal advice|lawsuit|sue|liability|contract dispute)\b")),
    RiskRule("financial", "medium", _re(r"\b(financial advice|invest|portfolio|trading|crypto|tax)\b")),
    RiskRule("cyber", "medium", _re(r"\b(cyber|security|infosec|phish|malware|exploit|breach|hack)\b")),
)

NOVELTY_LEXICON = NoveltyLexicon(
    conjunction=_re(r"\b(and|or|but|also|plus|versus|vs)\b"),
    ambiguous_pronoun=_re(r"\b(it|this|that|they|them|those|these|one)\b"),
)

ROUTER_LEXICON = RouterLexicon(
    keywords=MappingProxyType(
        {
            Domain.AI: _res(
                r"\b(artificial intelligence|machine learning|deep learning|neural|transformer|llm|prompt|rag"
                r"|embedding|vector|fine[-\s]?tune|agent(s)?|tool use|reasoning|inference|model eval|alignment"
                r"|rlhf|policy)\b",
                r"\b(pytorch|tensorflow|keras|hugging ?face|onnx|openai|anthropic|gemini|llama|mistral)\b",
            ),
            Domain.FIN: _res(
                r"\b(finance|economics|pricing|revenue|profit|margin|cash ?flow|forecast|budget|breakeven|roi|npv"
                r"|irr|capm|wacc|beta|discount rate)\b",
                r"\b(ltv|cac|unit economics|cohort|churn|arpu|mrr|arr|gross margin)\b",
                r"\b(bonds?|equities|stocks?|capital markets|yield curve|rates?|inflation|gdp|fiscal|monetary)\b",
            ),
            Domain.LAW: _res(
                r"\b(law|legal|contract|nda|terms|liability|compliance|copyright|trademark|privacy law|gdpr|pipeda"
                r"|caselaw|jurisdiction)\b",
                r"\b(ethics|ethical|duty of care|fiduciary|negligence|damages)\b",
            ),
            Domain.CYBER: _res(
                r"\b(cyber|security|infosec|phish|malware|ransom(ware)?|breach|exploit|vulnerability|patch"
                r"|zero[-\s]?day|ddos|xss|sql injection|auth|mfa)\b",
            ),
            Domain.PSYCHOLOGY: _res(
                r"\b(psychology|cognitive|behavior|bias(es)?|therapy|trauma|attachment|emotion regulation"
                r"|mental health|clinical)\b",
            ),
            Domain.ENGLISH: _res(
                r"\b(rewrite|revise|edit|proofread|grammar|spelling|tone|summarize|simplify|translate|clarity"
                r"|structure)\b",
                r"\b(email|letter|proposal|pitch|copy|caption|script)\b",
            ),
            Domain.STRATEGY: _res(
                r"\b(strategy|roadmap|milestone|priority|trade[-\s]?off|decision|constraint|kpi|metric|execution"
                r"|risk management)\b",
            ),
            Domain.MUSIC: _res(
                r"\b(song|album|artist|billboard|hot 100|chart|single|band|lyrics?)\b",
            ),
            Domain.MARKETING: _res(
                r"\b(marketing|ads|seo|copywriting|campaign|conversion|funnel|brand|audience)\b",
            ),
        }
    ),
    action_cues=MappingProxyType(
        {
            Domain.LAW: _re(r"contract|nda|terms|policy"),
            Domain.FIN: _re(r"budget|pricing|unit|invoice|forecast|finance"),
            Domain.CYBER: _re(r"phish|breach|malware|security"),
            Domain.ENGLISH: _re(r"rewrite|edit|proof|summarize"),
            Domain.STRATEGY: _re(r"strategy|roadmap|milestone|kpi"),
            Domain.AI: _re(r"(?:^|[_-])(?:ai|agents?|rag|llm|models?|prompts?)(?:$|[_-])"),
            Domain.MUSIC: _re(r"top10|hot100|yearend|story_moment|micro_moment|custom_story|chart"),
        }
    ),
    coupling=(
        (_re(r"\b(ai and law|ai\b.*\blaw|law\b.*\bai)\b"), Domain.AI, Domain.LAW),
        (_re(r"\b(ai and cyber|ai\b.*\bcyber|cyber.*\bai)\b"), Domain.AI, Domain.CYBER),
        (_re(r"\b(ai and psychology|ai\b.*\bpsychology|psychology\b.*\bai)\b"), Domain.AI, Domain.PSYCHOLOGY),
        (_re(r"\b(ai and finance|ai\b.*\bfinance|finance\b.*\bai|ai and economics)\b"), Domain.AI, Domain.FIN),
    ),
)

DEFAULT_LEXICON = Lexicon(
    mode=MODE_LEXICON,
    intent=INTENT_LEXICON,
    desire=DESIRE_LEXICON,
    psychology=PSYCHOLOGY_LEXICON,
    risk=RISK_RULES,
    novelty=NOVELTY_LEXICON,
    router=ROUTER_LEXICON,
)


__all__ = [
    "ModeLexicon",
    "IntentLexicon",
    "DesireLexicon",
    "PsychologyLexicon",
    "RiskRule",
    "NoveltyLexicon",
    "RouterLexicon",
    "Lexicon",
    "DEFAULT_LEXICON",
]
