from __future__ import annotations

from datetime import datetime, timezone

import pytest

pytest.importorskip("psycopg")

from app.infrastructure.storage.pg_table_store import HEADER_TABLE, PostgresTable, PostgresTableStorage
from app.infrastructure.storage.sync_stats_repository import PostgresSyncStatsRepository
from app.infrastructure.storage.upsert import UpsertResult
from app.shared.exceptions.sync import ConfigurationError


class _DummyCursor:
    def __init__(self, header=None, records=None, one=None) -> None:
        self.header = header or []
        self.records = records or []
        self.one = one
        self.executed: list[tuple] = []
        self.executemany_calls: list[tuple] = []
        self._last_sql = ""

    def execute(self, sql: str, params=None) -> None:
        self._last_sql = sql
        self.executed.append((sql, params))

    def executemany(self, sql: str, values) -> None:
        self.executemany_calls.append((sql, list(values)))

    def fetchall(self):
        if HEADER_TABLE in self._last_sql:
            return [{"field_name": name} for name in self.header]
        return list(self.records)

    def fetchone(self):
        return self.one

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _DummyConn:
    def __init__(self, cursor: _DummyCursor) -> None:
        self._cursor = cursor

    def cursor(self):
        return self._cursor

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _storage(cursor: _DummyCursor) -> PostgresTableStorage:
    storage = PostgresTableStorage("postgresql://dummy", schema="sync")
    storage.connect = lambda: _DummyConn(cursor)
    return storage


def test_invalid_identifiers_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        PostgresTableStorage("postgresql://dummy", schema='sync"; DROP SCHEMA public; --')

    storage = _storage(_DummyCursor())
    with pytest.raises(ConfigurationError):
        storage.get_or_create_table("bad-name")
    with pytest.raises(ConfigurationError):
        storage.get_or_create_table(HEADER_TABLE)


def test_get_or_create_table_creates_schema_metadata_and_table() -> None:
    cursor = _DummyCursor()
    table = _storage(cursor).get_or_create_table("sessions")

    sql = "\n".join(s for s, _ in cursor.executed)
    assert 'CREATE SCHEMA IF NOT EXISTS "sync"' in sql
    assert f'"sync"."{HEADER_TABLE}"' in sql
    assert 'CREATE TABLE IF NOT EXISTS "sync"."sessions"' in sql
    assert table.name == "sessions"


def test_append_columns_adds_positional_columns_and_header_entries() -> None:
    cursor = _DummyCursor(header=["id"])
    table = PostgresTable(_storage(cursor), "sessions")

    table.append_columns(["registration.id", "session.title"])

    alters = [s for s, _ in cursor.executed if s.startswith("ALTER TABLE")]
    assert alters == [
        'ALTER TABLE "sync"."sessions" ADD COLUMN IF NOT EXISTS "c2" TEXT',
        'ALTER TABLE "sync"."sessions" ADD COLUMN IF NOT EXISTS "c3" TEXT',
    ]
    header_inserts = [p for s, p in cursor.executed if s.startswith("INSERT INTO")]
    assert header_inserts == [("sessions", 1, "registration.id"), ("sessions", 2, "session.title")]


def test_append_rows_stores_text_cells() -> None:
    cursor = _DummyCursor(header=["id", "active", "note"])
    table = PostgresTable(_storage(cursor), "sessions")

    table.append_rows([["1", True, None], [2, False]])

    sql, values = cursor.executemany_calls[0]
    assert sql == 'INSERT INTO "sync"."sessions" ("c1", "c2", "c3") VALUES (%s, %s, %s)'
    assert values == [("1", "true", ""), ("2", "false", "")]


def test_read_rows_and_update_rows_map_positions_to_row_ids() -> None:
    cursor = _DummyCursor(
        header=["id", "v"],
        records=[{"_row": 10, "c1": "1", "c2": "a"}, {"_row": 11, "c1": "2", "c2": None}],
    )
    table = PostgresTable(_storage(cursor), "sessions")

    assert table.read_rows() == [["1", "a"], ["2", ""]]

    table.update_rows({1: ["2", "b"]})

    sql, values = cursor.executemany_calls[0]
    assert sql == 'UPDATE "sync"."sessions" SET "c1" = %s, "c2" = %s WHERE _row = %s'
    assert values == [("2", "b", 11)]


def test_stats_record_increments_with_on_conflict() -> None:
    at = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    cursor = _DummyCursor(
        one={"category": "webhook", "created_count": 3, "updated_count": 1, "last_event_at": at}
    )
    repo = PostgresSyncStatsRepository(_storage(cursor))

    stats = repo.record("webhook", UpsertResult(created=1), at=at)

    assert stats.created == 3
    assert stats.updated == 1
    assert stats.last_event_at == at
    insert_sql, params = cursor.executed[-1]
    assert "ON CONFLICT (category)" in insert_sql
    assert "created_count + EXCLUDED.created_count" in insert_sql
    assert params == ("webhook", 1, 0, at)
