"""
Motor de UPSERT sobre el contrato Table.

Reglas:
- Encabezado: los campos no vistos se agregan al final (ordenados); nunca se
  quitan ni se reordenan columnas existentes.
- Índice clave -> posición: se arma una vez por lote (O(filas)), no por registro.
- Update = reemplazo de fila completa (campos ausentes quedan vacíos).
- Inserts: se agregan contiguos después de la última fila.

Invariante: tras un UPSERT no quedan dos filas con la misma clave (salvo
duplicados previos que entraron por otro camino; para eso existe `dedup`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from loguru import logger

from app.shared.exceptions.sync import ConfigurationError

from .table_store import Row, Table


@dataclass(frozen=True)
class UpsertResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
        )


def key_text(value: Any) -> str:
    """Las claves se comparan como texto (así vienen del storage)."""
    if value is None:
        return ""
    return str(value)


def _cell(value: Any) -> Any:
    return "" if value is None else value


def reconcile_header(table: Table, records: Iterable[Mapping[str, Any]]) -> list[str]:
    """Agrega al final las columnas que faltan y retorna el encabezado resultante."""
    header = table.read_header()
    known = set(header)
    incoming: set[str] = set()
    for record in records:
        incoming.update(record.keys())

    new_columns = sorted(incoming - known)
    if new_columns:
        table.append_columns(new_columns)
        logger.debug(f"Tabla '{table.name}': {len(new_columns)} columna(s) nueva(s): {new_columns}")
        header = header + new_columns
    return header


def build_key_index(rows: Sequence[Row], key_position: int) -> dict[str, int]:
    """Valor de clave (texto) -> posición de la primera fila que lo tiene."""
    index: dict[str, int] = {}
    for position, row in enumerate(rows):
        key = key_text(row[key_position]) if key_position < len(row) else ""
        if key:
            index.setdefault(key, position)
    return index


def batch_upsert(
    records: Iterable[Mapping[str, Any]],
    key_field: str,
    table: Table,
) -> UpsertResult:
    """
    Inserta o actualiza cada registro por igualdad de clave.

    Una clave repetida dentro del mismo lote actualiza la fila pendiente
    (cuenta como update). Registros sin valor de clave se omiten.
    """
    records = list(records)
    if not records:
        return UpsertResult()

    header = reconcile_header(table, records)
    if key_field not in header:
        raise ConfigurationError(
            f"El campo clave '{key_field}' no existe en la tabla '{table.name}'",
            details={"table": table.name, "key_field": key_field},
        )
    key_position = header.index(key_field)

    existing = table.read_rows()
    index = build_key_index(existing, key_position)

    updates: dict[int, Row] = {}
    inserts: list[Row] = []
    created = updated = skipped = 0

    for record in records:
        key = key_text(record.get(key_field))
        if not key:
            skipped += 1
            continue

        values = [_cell(record.get(column)) for column in header]
        position = index.get(key)
        if position is None:
            index[key] = len(existing) + len(inserts)
            inserts.append(values)
            created += 1
        elif position >= len(existing):
            inserts[position - len(existing)] = values
            updated += 1
        else:
            updates[position] = values
            updated += 1

    if updates:
        table.update_rows(updates)
    if inserts:
        table.append_rows(inserts)

    if skipped:
        logger.warning(f"Tabla '{table.name}': {skipped} registro(s) sin '{key_field}' omitidos")

    result = UpsertResult(created=created, updated=updated, skipped=skipped)
    logger.info(f"UPSERT '{table.name}' por '{key_field}': creados={created}, actualizados={updated}")
    return result


def upsert(record: Mapping[str, Any], key_field: str, table: Table) -> UpsertResult:
    """UPSERT de un solo registro (webhooks)."""
    return batch_upsert([record], key_field, table)


def dedup(table: Table, key_field: str) -> int:
    """
    Herramienta de reparación: conserva la primera fila por valor de clave y
    elimina las siguientes. Filas con clave vacía se conservan.

    Idempotente. Retorna la cantidad de filas eliminadas.
    """
    header = table.read_header()
    if key_field not in header:
        raise ConfigurationError(
            f"El campo clave '{key_field}' no existe en la tabla '{table.name}'",
            details={"table": table.name, "key_field": key_field},
        )
    key_position = header.index(key_field)

    rows = table.read_rows()
    seen: set[str] = set()
    kept: list[Row] = []
    for row in rows:
        key = key_text(row[key_position])
        if key:
            if key in seen:
                continue
            seen.add(key)
        kept.append(row)

    removed = len(rows) - len(kept)
    if removed:
        table.replace_rows(kept)
    logger.info(f"Dedup '{table.name}' por '{key_field}': {removed} fila(s) eliminada(s)")
    return removed
