"""
Estadísticas de sync por categoría ("sessions", "attendees", "webhook").

Acumulan creados/actualizados y la hora del último evento. Las actualiza el
caller después de cada lote; el motor de UPSERT no las conoce.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from app.infrastructure.external.sessions_api.types import ensure_utc, utc_now

from .pg_table_store import PostgresTableStorage
from .upsert import UpsertResult


@dataclass(frozen=True)
class SyncStats:
    category: str
    created: int = 0
    updated: int = 0
    last_event_at: Optional[datetime] = None


class SyncStatsRepository(Protocol):
    def record(self, category: str, result: UpsertResult, at: Optional[datetime] = None) -> SyncStats:
        ...

    def get(self, category: str) -> SyncStats:
        ...

    def all(self) -> list[SyncStats]:
        ...


class InMemorySyncStatsRepository:
    def __init__(self) -> None:
        self._stats: dict[str, SyncStats] = {}

    def record(self, category: str, result: UpsertResult, at: Optional[datetime] = None) -> SyncStats:
        current = self.get(category)
        stats = SyncStats(
            category=category,
            created=current.created + result.created,
            updated=current.updated + result.updated,
            last_event_at=ensure_utc(at) if at else utc_now(),
        )
        self._stats[category] = stats
        return stats

    def get(self, category: str) -> SyncStats:
        return self._stats.get(category) or SyncStats(category=category)

    def all(self) -> list[SyncStats]:
        return [self._stats[k] for k in sorted(self._stats)]


class PostgresSyncStatsRepository:
    """Persistencia en la tabla "sync_stats" del mismo schema que las tablas de datos."""

    def __init__(self, storage: PostgresTableStorage) -> None:
        self._storage = storage
        self._table = f'"{storage.schema}"."sync_stats"'
        self._ready = False

    def _ensure_table(self, conn) -> None:
        if self._ready:
            return
        self._storage.ensure_metadata(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    category       TEXT        PRIMARY KEY,
                    created_count  BIGINT      NOT NULL DEFAULT 0,
                    updated_count  BIGINT      NOT NULL DEFAULT 0,
                    last_event_at  TIMESTAMPTZ NULL
                );
                """
            )
        self._ready = True

    def record(self, category: str, result: UpsertResult, at: Optional[datetime] = None) -> SyncStats:
        event_at = ensure_utc(at) if at else utc_now()
        with self._storage.connect() as conn:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self._table} (category, created_count, updated_count, last_event_at)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (category)
                    DO UPDATE SET
                        created_count = {self._table}.created_count + EXCLUDED.created_count,
                        updated_count = {self._table}.updated_count + EXCLUDED.updated_count,
                        last_event_at = EXCLUDED.last_event_at
                    RETURNING category, created_count, updated_count, last_event_at
                    """,
                    (category, result.created, result.updated, event_at),
                )
                return self._to_stats(cur.fetchone())

    def get(self, category: str) -> SyncStats:
        with self._storage.connect() as conn:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT category, created_count, updated_count, last_event_at FROM {self._table} WHERE category = %s",
                    (category,),
                )
                row = cur.fetchone()
        return self._to_stats(row) if row else SyncStats(category=category)

    def all(self) -> list[SyncStats]:
        with self._storage.connect() as conn:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT category, created_count, updated_count, last_event_at FROM {self._table} ORDER BY category"
                )
                return [self._to_stats(r) for r in cur.fetchall()]

    @staticmethod
    def _to_stats(row) -> SyncStats:
        last = row.get("last_event_at")
        return SyncStats(
            category=row["category"],
            created=int(row["created_count"]),
            updated=int(row["updated_count"]),
            last_event_at=ensure_utc(last) if last else None,
        )
