from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import pytest

from order_ledger.repository import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    InMemoryRepository,
    RecordNotFoundError,
)


@dataclass
class Record:
    name: str
    tags: List[str] = field(default_factory=list)
    version: int = 0


@pytest.fixture()
def repo() -> InMemoryRepository[Record]:
    return InMemoryRepository()


def test_add_assigns_first_version(repo):
    record = Record("a")
    repo.add("a", record)

    assert record.version == 1
    assert repo.get("a").version == 1
    assert "a" in repo
    assert len(repo) == 1


def test_duplicate_add_is_rejected(repo):
    repo.add("a", Record("a"))

    with pytest.raises(DuplicateRecordError):
        repo.add("a", Record("other"))


def test_reads_return_independent_snapshots(repo):
    repo.add("a", Record("a"))

    snapshot = repo.get("a")
    snapshot.tags.append("changed")

    assert repo.get("a").tags == []
    assert repo.list()[0].tags == []


def test_replace_bumps_version(repo):
    repo.add("a", Record("a"))
    snapshot = repo.get("a")
    snapshot.tags.append("x")

    repo.replace("a", snapshot, expected_version=1)

    stored = repo.get("a")
    assert stored.version == 2
    assert stored.tags == ["x"]


def test_replace_with_stale_snapshot_is_rejected(repo):
    repo.add("a", Record("a"))
    first = repo.get("a")
    second = repo.get("a")
    first.tags.append("first")
    repo.replace("a", first, expected_version=first.version)

    second.tags.append("second")
    with pytest.raises(ConcurrencyConflictError) as excinfo:
        repo.replace("a", second, expected_version=second.version)

    assert excinfo.value.expected_version == 1
    assert excinfo.value.actual_version == 2
    assert repo.get("a").tags == ["first"]


def test_missing_records_raise(repo):
    with pytest.raises(RecordNotFoundError):
        repo.get("missing")
    with pytest.raises(RecordNotFoundError):
        repo.replace("missing", Record("missing"), expected_version=1)
