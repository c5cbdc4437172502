"""
Contrato de almacenamiento tabular.

Una tabla es un encabezado ordenado (nombres de campo únicos) más un cuerpo de
filas posicionales. El motor de UPSERT solo conoce este contrato, así se puede
testear contra la implementación en memoria.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

Row = list[Any]


class Table(Protocol):
    """
    Tabla con columnas que crecen de forma monótona.

    Las posiciones de fila son índices 0-based según el orden de lectura.
    """

    name: str

    def read_header(self) -> list[str]:
        ...

    def read_rows(self) -> list[Row]:
        """Filas en orden, cada una rellenada al largo del encabezado."""
        ...

    def append_columns(self, names: Sequence[str]) -> None:
        ...

    def update_rows(self, updates: dict[int, Row]) -> None:
        """Reemplaza filas completas por posición."""
        ...

    def append_rows(self, rows: Sequence[Row]) -> None:
        ...

    def replace_rows(self, rows: Sequence[Row]) -> None:
        """Reescribe el cuerpo completo (el encabezado no cambia)."""
        ...


class TableStorage(Protocol):
    def get_or_create_table(self, name: str) -> Table:
        ...


def _pad(row: Sequence[Any], width: int) -> Row:
    values = list(row[:width])
    if len(values) < width:
        values.extend([""] * (width - len(values)))
    return values


class InMemoryTable:
    """Tabla en memoria. Útil para tests y para TABLE_BACKEND=memory."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._header: list[str] = []
        self._rows: list[Row] = []

    def read_header(self) -> list[str]:
        return list(self._header)

    def read_rows(self) -> list[Row]:
        width = len(self._header)
        return [_pad(r, width) for r in self._rows]

    def append_columns(self, names: Sequence[str]) -> None:
        for name in names:
            if name in self._header:
                raise ValueError(f"La columna '{name}' ya existe en '{self.name}'")
            self._header.append(name)

    def update_rows(self, updates: dict[int, Row]) -> None:
        width = len(self._header)
        for position, row in updates.items():
            if not 0 <= position < len(self._rows):
                raise IndexError(f"Fila {position} fuera de rango en '{self.name}'")
            self._rows[position] = _pad(row, width)

    def append_rows(self, rows: Sequence[Row]) -> None:
        width = len(self._header)
        self._rows.extend(_pad(r, width) for r in rows)

    def replace_rows(self, rows: Sequence[Row]) -> None:
        width = len(self._header)
        self._rows = [_pad(r, width) for r in rows]

    def as_dicts(self) -> list[dict[str, Any]]:
        header = self._header
        return [dict(zip(header, row)) for row in self.read_rows()]


class InMemoryTableStorage:
    def __init__(self) -> None:
        self._tables: dict[str, InMemoryTable] = {}

    def get_or_create_table(self, name: str) -> InMemoryTable:
        table = self._tables.get(name)
        if table is None:
            table = InMemoryTable(name)
            self._tables[name] = table
        return table

    def table_names(self) -> list[str]:
        return sorted(self._tables)
