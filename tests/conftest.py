from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _find_repo_root(start: Path) -> Path:
    cur = start.resolve()
    for candidate in [cur, *cur.parents]:
        if (candidate / "turncore").is_dir() and (candidate / "scripts").is_dir():
            return candidate
    return cur


# ``from scripts import replay_mediation`` needs the checkout root importable.
repo_root = _find_repo_root(Path(__file__).parent)
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from turncore.policy.config import POLICY_ENV_VAR, MediationPolicy  # noqa: E402


@pytest.fixture(autouse=True)
def _packaged_policy_only(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a host-level policy override from leaking into the defaults under test."""

    monkeypatch.delenv(POLICY_ENV_VAR, raising=False)


@pytest.fixture()
def builtin_policy() -> MediationPolicy:
    return MediationPolicy()
