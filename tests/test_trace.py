from __future__ import annotations

import json
from dataclasses import replace

from turncore.contracts import NormalizedTurn
from turncore.policy.config import MediationPolicy, TracePolicy
from turncore.runtime.mediator import mediate
from turncore.telemetry.trace import build_telemetry, build_trace, hash_trace, trace_policy_check

SECRET_TEXT = "my locker code is pineapple-cathedral-42, can you explain the pipeline setup"


def test_hash_trace_matches_fnv1a_vectors() -> None:
    assert hash_trace("") == "811c9dc5"
    assert hash_trace("a") == "e40c292c"
    assert hash_trace("a", 4) == "e40c"


def test_hash_is_stable_for_identical_inputs() -> None:
    first = mediate({"text": "explain the chart", "lane": "music"}, {}, {"nowMs": 1_000})
    second = mediate({"text": "explain the chart", "lane": "music"}, {}, {"nowMs": 9_000})
    assert first.trace == second.trace
    assert first.trace_hash == second.trace_hash


def test_trace_layout_is_fixed_order() -> None:
    cog = mediate({"action": "top10", "year": 1988, "lane": "music"}, {}, {"nowMs": 1_000})
    assert cog.trace.startswith("m=architect|i=ADVANCE|d=firm|b=short|ln=music|la=-|a=top10|y=1988|p=1|")
    keys = [part.split("=", 1)[0] for part in cog.trace.split("|")]
    assert keys[:8] == ["m", "i", "d", "b", "ln", "la", "a", "y"]
    assert len(cog.trace) <= 160


def test_trace_is_truncated_with_marker() -> None:
    cog = mediate({"action": "top10", "year": 1988}, {}, {"nowMs": 1_000})
    short = build_trace(cog, NormalizedTurn.from_value({"action": "top10"}), TracePolicy(max_chars=40))
    assert len(short) == 40
    assert short.endswith("...")


def test_outputs_never_echo_user_text() -> None:
    cog = mediate({"text": SECRET_TEXT}, {}, {"nowMs": 1_000, "devTracePolicyCheck": True})
    serialized = json.dumps(cog.to_dict(), ensure_ascii=False)
    assert "pineapple" not in serialized
    assert "locker" not in serialized
    assert cog.trace_policy_issues == ()
    assert trace_policy_check(cog, SECRET_TEXT) == ()


def test_trace_policy_check_flags_leaked_text() -> None:
    cog = mediate({"text": SECRET_TEXT}, {}, {"nowMs": 1_000})
    leaked = replace(cog, trace=f"{cog.trace}|{SECRET_TEXT[:30]}")
    assert trace_policy_check(leaked, SECRET_TEXT) == ("trace_policy_violation:trace",)


def test_trace_policy_check_ignores_short_text() -> None:
    cog = mediate({"text": "hi"}, {}, {"nowMs": 1_000})
    assert trace_policy_check(cog, "hi") == ()


def test_telemetry_carries_fingerprint_and_fields(builtin_policy: MediationPolicy) -> None:
    policy = builtin_policy
    cog = mediate({"text": "explain the chart"}, {}, {"nowMs": 1_234}, policy=policy)
    event = cog.telemetry.to_dict()
    assert event["event"] == "turncore.mediation"
    assert event["version"] == "v1"
    assert event["timestampMs"] == 1_234
    assert event["policyFingerprint"] == policy.fingerprint
    assert event["traceHash"] == cog.trace_hash
    assert event["intent"] == "CLARIFY"
    assert isinstance(event["lawTags"], list)
    assert "errorCode" not in event

    flagged = build_telemetry(cog, policy, 1_234, error_code="Boom").to_dict()
    assert flagged["errorCode"] == "Boom"


def test_trace_carries_move_and_expert_summary() -> None:
    cog = mediate({"text": "our ransomware breach hit revenue"}, {}, {"nowMs": 1_000})
    fields = dict(part.split("=", 1) for part in cog.trace.split("|") if "=" in part)
    assert fields["mv"] == "CLARIFY"
    assert fields["xc"] == "1"
    assert fields["xl"] == "english,cyber,finance"

    locked = mediate({"action": "top10", "lane": "music"}, {}, {"nowMs": 1_000})
    assert "|xc=0|xl=music|" in locked.trace
    event = locked.telemetry.to_dict()
    assert event["lanesUsed"] == ["music"]
    assert event["crossLaneAllowed"] is False
    assert event["preferredMove"] == "ADVANCE"
