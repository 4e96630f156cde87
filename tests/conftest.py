from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from item_loans.record_store import RecordStore, RecordStoreError
from item_loans.schemas import CandidateItem, LoanRecord


def _matches(value: Any, expected: Any) -> bool:
    if isinstance(expected, (list, tuple, set)):
        return value in expected
    return value == expected


class FakeRecordStore(RecordStore):
    """In-memory record store that records every call."""

    def __init__(
        self,
        tables: Optional[Dict[str, List[dict]]] = None,
        principal: Optional[str] = "user-1",
        query_error: Optional[RecordStoreError] = None,
        insert_error: Optional[RecordStoreError] = None,
    ) -> None:
        self.tables = {name: list(rows) for name, rows in (tables or {}).items()}
        self.principal = principal
        self.query_error = query_error
        self.insert_error = insert_error
        self.queries: List[tuple] = []
        self.inserts: List[tuple] = []

    def query(self, table, filters, limit=None):
        self.queries.append((table, dict(filters)))
        if self.query_error is not None:
            raise self.query_error
        rows = [
            row
            for row in self.tables.get(table, [])
            if all(_matches(row.get(column), value) for column, value in filters.items())
        ]
        return rows[:limit] if limit is not None else rows

    def insert_many(self, table, rows):
        self.inserts.append((table, list(rows)))
        if self.insert_error is not None:
            raise self.insert_error
        self.tables.setdefault(table, []).extend(rows)

    def current_principal_id(self):
        return self.principal


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


def candidate(item_id="12345678", name="Widget", genre="G1", manager="M1", image=None):
    return CandidateItem(item_id=item_id, name=name, genre=genre, manager=manager, image=image)


def loan(item_id, start, end=None, record_id=None, event_id="E1"):
    return LoanRecord(
        result_id=record_id,
        event_id=event_id,
        item_id=item_id,
        start_datetime=start,
        end_datetime=end,
    )


def at(hour, minute=0, second=0, day=1):
    return datetime(2025, 3, day, hour, minute, second)
