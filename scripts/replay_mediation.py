#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Replay a JSONL transcript through the mediation core.

Each input line is either a bare turn mapping or ``{"turn": ..., "options": ...}``.
The session starts empty (or from ``--session``) and every turn's session patch
is merged back in, the same way a host would persist it.

Example:
    python scripts/replay_mediation.py \
        --transcript data/transcript.jsonl \
        --out telemetry/mediation-replay.jsonl \
        --now-ms 1700000000000 --step-ms 15000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from turncore.policy.config import load_mediation_policy, policy_meta
from turncore.routing.domain_router import route_domain
from turncore.runtime.mediator import mediate
from turncore.telemetry.trace_writer import append_routing_event, write_telemetry_jsonl

LOGGER = logging.getLogger("replay_mediation")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Replay a transcript through turncore.mediate and route_domain.")
    ap.add_argument("--transcript", required=True, help="JSONL file with one turn per line.")
    ap.add_argument("--out", default="telemetry/mediation-replay.jsonl", help="Telemetry JSONL output path.")
    ap.add_argument("--session", default=None, help="Optional JSON file with the starting session snapshot.")
    ap.add_argument("--policy", default=None, help="Optional mediation policy YAML.")
    ap.add_argument("--session-id", default="replay", help="Session id stamped onto telemetry lines.")
    ap.add_argument("--now-ms", type=int, default=0, help="Clock for the first turn (0 = wall clock).")
    ap.add_argument("--step-ms", type=int, default=10_000, help="Clock advance between turns.")
    ap.add_argument("--no-routing", action="store_true", help="Skip domain routing records.")
    ap.add_argument("--hold-mode", action="store_true", help="Enable mode hysteresis.")
    ap.add_argument("--verbose", action="store_true", help="Log per-turn summaries.")
    return ap.parse_args(list(argv) if argv is not None else None)


def iter_transcript(path: Path) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """Yield ``(turn, options)`` pairs; blank and malformed lines are skipped."""

    with path.open("r", encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                LOGGER.warning("skipping malformed line %d", lineno)
                continue
            if not isinstance(row, dict):
                continue
            if isinstance(row.get("turn"), dict):
                options = row.get("options") if isinstance(row.get("options"), dict) else {}
                yield row["turn"], dict(options)
            else:
                yield row, {}


def merge_patch(session: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(session)
    merged.update(patch)
    return merged


def replay(
    transcript: Path,
    out_path: Path,
    *,
    session: Mapping[str, Any] | None = None,
    policy_path: str | None = None,
    session_id: str = "replay",
    now_ms: int = 0,
    step_ms: int = 10_000,
    with_routing: bool = True,
    hold_mode: bool = False,
) -> Dict[str, Any]:
    policy = load_mediation_policy(policy_path)
    provenance = policy_meta(policy)
    state: Dict[str, Any] = dict(session or {})
    intents: Counter[str] = Counter()
    primaries: Counter[str] = Counter()
    failures = 0
    turns = 0

    for index, (turn, options) in enumerate(iter_transcript(transcript)):
        opts = dict(options)
        if now_ms > 0:
            opts.setdefault("nowMs", now_ms + index * step_ms)
        if hold_mode:
            opts.setdefault("holdMode", True)
        cog = mediate(turn, state, opts, policy=policy)
        turns += 1
        intents[cog.intent.value] += 1
        if cog.error_code:
            failures += 1

        meta = {"source": "replay", "session_id": session_id, "turn_index": index, **provenance}
        write_telemetry_jsonl(out_path, cog, meta)
        if with_routing:
            routing = route_domain(turn, state, cog, weights=policy.router)
            primaries[routing.primary.value] += 1
            append_routing_event(out_path, routing, meta)
        if cog.session_patch is not None:
            state = merge_patch(state, cog.session_patch.to_dict())
        LOGGER.debug("turn=%d intent=%s trace_hash=%s", index, cog.intent.value, cog.trace_hash)

    return {
        "turns": turns,
        "fail_open": failures,
        "intents": dict(intents),
        "primaries": dict(primaries),
        "session": state,
    }


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    transcript = Path(args.transcript)
    if not transcript.exists():
        print(f"[replay] transcript not found: {transcript}")
        return 1

    session: Dict[str, Any] = {}
    if args.session:
        session_path = Path(args.session)
        if not session_path.exists():
            print(f"[replay] session not found: {session_path}")
            return 1
        loaded = json.loads(session_path.read_text(encoding="utf-8"))
        session = loaded if isinstance(loaded, dict) else {}

    try:
        summary = replay(
            transcript,
            Path(args.out),
            session=session,
            policy_path=args.policy,
            session_id=args.session_id,
            now_ms=int(args.now_ms),
            step_ms=int(args.step_ms),
            with_routing=not args.no_routing,
            hold_mode=bool(args.hold_mode),
        )
    except ValueError as exc:
        print(f"[replay] invalid policy: {exc}")
        return 2

    print(
        f"[replay] turns={summary['turns']} fail_open={summary['fail_open']} "
        f"intents={json.dumps(summary['intents'], sort_keys=True)} out={args.out}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
