"""pytest configuration — add src/ to sys.path and share fixtures."""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent / "src"))

from securegen.backends import MemoryBackend  # noqa: E402
from securegen.generator import SeededRandomSource  # noqa: E402
from securegen.models import CredentialRecord  # noqa: E402

# Account hashing at full strength makes every login take ~0.5s.
FAST_KDF = 1_000


@pytest.fixture
def rng():
    return SeededRandomSource(1234)


@pytest.fixture
def backend():
    return MemoryBackend(kdf_iterations=FAST_KDF)


@pytest.fixture
def records():
    """Five records spread over three groups and three days (UTC noon)."""

    def rec(rid, username, day, group=None, remark=None):
        return CredentialRecord(
            id=rid,
            username=username,
            password=f"pw-{rid}",
            created_at=datetime(2026, 10, day, 12, 0, tzinfo=timezone.utc),
            group=group,
            remark=remark,
        )

    return [
        rec("a1", "charlie", 16, group="Work", remark="vpn, office"),
        rec("b2", "alice", 17, group="Personal"),
        rec("c3", "bob", 18),
        rec("d4", "dave", 18, group="Work", remark="jira"),
        rec("e5", "erin", 17, remark='say "hi"'),
    ]
