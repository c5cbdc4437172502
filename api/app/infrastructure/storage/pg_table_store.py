"""
Almacenamiento tabular sobre PostgreSQL (psycopg v3).

Cada tabla lógica es una tabla Postgres con:
- "_row": identidad que fija el orden de las filas
- "c1".."cN": columnas TEXT posicionales

Los nombres de campo (rutas con puntos, sin límite de largo) viven en la
tabla de metadatos "sheet_header". Así el encabezado crece sin depender de
los límites de identificadores de Postgres.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from app.shared.exceptions.sync import ConfigurationError

from .table_store import Row

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

HEADER_TABLE = "sheet_header"


def _validate_identifier(value: str, what: str) -> str:
    if not _IDENTIFIER_RE.match(value or ""):
        raise ConfigurationError(f"Nombre de {what} inválido para Postgres: '{value}'")
    return value


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _column(position: int) -> str:
    """Columna física de la posición 0-based del encabezado."""
    return f"c{position + 1}"


class PostgresTableStorage:
    def __init__(self, dsn: str, *, schema: str = "sync") -> None:
        self._dsn = dsn
        self._schema = _validate_identifier(schema, "schema")
        self._metadata_ready = False

    @property
    def schema(self) -> str:
        return self._schema

    def connect(self) -> psycopg.Connection:
        """
        Abre conexión. El context manager de psycopg hace commit al salir sin error.
        """
        try:
            return psycopg.connect(self._dsn, row_factory=dict_row)
        except psycopg.OperationalError as e:
            raise psycopg.OperationalError(
                f"{e}\n"
                f"Sugerencia: verifica que DATABASE_URL sea accesible desde donde ejecutas el proceso."
            ) from e

    def ensure_metadata(self, conn: psycopg.Connection) -> None:
        if self._metadata_ready:
            return
        with conn.cursor() as cur:
            cur.execute(f'CREATE SCHEMA IF NOT EXISTS "{self._schema}";')
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS "{self._schema}"."{HEADER_TABLE}" (
                    table_name  TEXT    NOT NULL,
                    position    INTEGER NOT NULL,
                    field_name  TEXT    NOT NULL,
                    PRIMARY KEY (table_name, position),
                    UNIQUE (table_name, field_name)
                );
                """
            )
        self._metadata_ready = True

    def get_or_create_table(self, name: str) -> "PostgresTable":
        _validate_identifier(name, "tabla")
        if name == HEADER_TABLE:
            raise ConfigurationError(f"'{HEADER_TABLE}' es una tabla reservada")
        with self.connect() as conn:
            self.ensure_metadata(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS "{self._schema}"."{name}" (
                        _row BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY
                    );
                    """
                )
        return PostgresTable(self, name)


class PostgresTable:
    """
    Implementación de Table sobre Postgres.

    Las posiciones de fila se traducen a "_row" con el último read_rows().
    """

    def __init__(self, storage: PostgresTableStorage, name: str) -> None:
        self._storage = storage
        self.name = name
        self._row_ids: Optional[list[int]] = None

    @property
    def _qualified(self) -> str:
        return f'"{self._storage.schema}"."{self.name}"'

    @property
    def _header_table(self) -> str:
        return f'"{self._storage.schema}"."{HEADER_TABLE}"'

    def read_header(self) -> list[str]:
        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT field_name FROM {self._header_table} WHERE table_name = %s ORDER BY position",
                    (self.name,),
                )
                return [r["field_name"] for r in cur.fetchall()]

    def read_rows(self) -> list[Row]:
        width = len(self.read_header())
        columns = ", ".join(['"_row"'] + [f'"{_column(i)}"' for i in range(width)])
        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {columns} FROM {self._qualified} ORDER BY _row")
                records = cur.fetchall()

        self._row_ids = [r["_row"] for r in records]
        return [
            [r.get(_column(i)) or "" for i in range(width)]
            for r in records
        ]

    def append_columns(self, names: Sequence[str]) -> None:
        if not names:
            return
        start = len(self.read_header())
        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                for offset, name in enumerate(names):
                    position = start + offset
                    cur.execute(
                        f'ALTER TABLE {self._qualified} ADD COLUMN IF NOT EXISTS "{_column(position)}" TEXT'
                    )
                    cur.execute(
                        f"INSERT INTO {self._header_table} (table_name, position, field_name) VALUES (%s, %s, %s)",
                        (self.name, position, name),
                    )

    def update_rows(self, updates: dict[int, Row]) -> None:
        if not updates:
            return
        if self._row_ids is None:
            self.read_rows()
        row_ids = self._row_ids or []
        width = len(self.read_header())
        set_sql = ", ".join(f'"{_column(i)}" = %s' for i in range(width))
        sql = f"UPDATE {self._qualified} SET {set_sql} WHERE _row = %s"

        values = []
        for position, row in sorted(updates.items()):
            if not 0 <= position < len(row_ids):
                raise IndexError(f"Fila {position} fuera de rango en '{self.name}'")
            cells = [_to_text(v) for v in list(row)[:width]]
            cells.extend([""] * (width - len(cells)))
            values.append(tuple(cells) + (row_ids[position],))

        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                cur.executemany(sql, values)

    def append_rows(self, rows: Sequence[Row]) -> None:
        if not rows:
            return
        width = len(self.read_header())
        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                self._insert(cur, rows, width)
        self._row_ids = None

    def replace_rows(self, rows: Sequence[Row]) -> None:
        width = len(self.read_header())
        with self._storage.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {self._qualified}")
                if rows:
                    self._insert(cur, rows, width)
        self._row_ids = None

    def _insert(self, cur, rows: Sequence[Row], width: int) -> None:
        if width == 0:
            for _ in rows:
                cur.execute(f"INSERT INTO {self._qualified} DEFAULT VALUES")
            return
        columns = ", ".join(f'"{_column(i)}"' for i in range(width))
        placeholders = ", ".join(["%s"] * width)
        sql = f"INSERT INTO {self._qualified} ({columns}) VALUES ({placeholders})"
        values = []
        for row in rows:
            cells = [_to_text(v) for v in list(row)[:width]]
            cells.extend([""] * (width - len(cells)))
            values.append(tuple(cells))
        cur.executemany(sql, values)
