"""Fixtures for gcp_utils unit tests.

Level: In-memory fake stores driving the resilience engines
"""

from typing import Any, List, Optional

import pytest

from gcp_utils.configuration import get_settings
from gcp_utils.operations.result import RowError, WriteOutcome


class ScriptedWriteAction:
    """Write action returning (or raising) scripted results in order.

    The last result repeats once the script runs out.
    """

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls = 0

    def __call__(self) -> Optional[WriteOutcome]:
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        if isinstance(result, BaseException):
            raise result
        return result


class SequenceStore:
    """Ordered store answering fetch(cursor, limit) strictly after cursor."""

    def __init__(self, items: List[Any]) -> None:
        self.items = list(items)
        self.fetches: List[tuple] = []

    def fetch(self, cursor: Optional[Any], limit: int) -> List[Any]:
        start = 0 if cursor is None else self.items.index(cursor) + 1
        page = self.items[start : start + limit]
        self.fetches.append((cursor, limit, len(page)))
        return page


class BatchStore:
    """Records every committed batch."""

    def __init__(self) -> None:
        self.commits: List[List[Any]] = []

    def commit_batch(self, batch) -> None:
        self.commits.append(list(batch))

    @property
    def commit_sizes(self) -> List[int]:
        return [len(batch) for batch in self.commits]


class FakeSnapshot:
    def __init__(self, doc_id: str) -> None:
        self.id = doc_id
        self.reference = f"documents/{doc_id}"

    def __repr__(self) -> str:
        return f"FakeSnapshot({self.id})"


class FakeQuery:
    """Minimal Firestore query supporting start_after().limit().get()."""

    def __init__(self, docs: List[Any], start: int = 0, limit: Optional[int] = None):
        self.docs = docs
        self.start = start
        self._limit = limit

    def start_after(self, snapshot: Any) -> "FakeQuery":
        return FakeQuery(self.docs, self.docs.index(snapshot) + 1, self._limit)

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self.docs, self.start, count)

    def get(self) -> List[Any]:
        end = None if self._limit is None else self.start + self._limit
        return self.docs[self.start : end]


def row_errors(mapping) -> dict:
    """Build row errors from {index: [reason, ...]}."""
    return {
        index: [RowError(index=index, reason=reason) for reason in reasons]
        for index, reasons in mapping.items()
    }


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Ensure every test reads settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sequence_store():
    return SequenceStore(list(range(2500)))


@pytest.fixture
def batch_store():
    return BatchStore()


@pytest.fixture
def snapshots():
    return [FakeSnapshot(f"doc-{i:04d}") for i in range(7)]


@pytest.fixture
def fake_query(snapshots):
    return FakeQuery(snapshots)


@pytest.fixture
def make_row_errors():
    return row_errors


@pytest.fixture
def scripted_action():
    return ScriptedWriteAction


@pytest.fixture
def make_query():
    return FakeQuery
