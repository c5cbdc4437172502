"""
Aplanado de JSON anidado a filas de una sola dimensión.

    flatten({"a": {"b": 1}, "tags": ["x", "y"]})
    -> {"a.b": 1, "tags": "x, y"}

Los arreglos nunca se expanden en varias filas: eso es trabajo del combinador.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any, Mapping

from .types import FlatRow

ARRAY_SEPARATOR = ", "

# Valores que se tratan como hoja aunque sean objetos
_DATE_LIKE = (datetime, date, time)


def _join_path(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def _array_element_to_text(element: Any) -> str:
    if element is None:
        return ""
    if isinstance(element, _DATE_LIKE):
        return element.isoformat()
    if isinstance(element, (dict, list)):
        return json.dumps(element, ensure_ascii=False, sort_keys=True, default=str)
    if isinstance(element, bool):
        return "true" if element else "false"
    return str(element)


def join_array(values: list | tuple) -> str:
    return ARRAY_SEPARATOR.join(_array_element_to_text(v) for v in values)


def flatten(value: Any, prefix: str = "") -> FlatRow:
    """
    Convierte un registro anidado en un dict plano con rutas unidas por puntos.

    - dict: recursión con prefix + "." + key
    - list/tuple: string unido con ", "
    - fechas y escalares: se asignan tal cual

    Un valor raíz que no es dict queda bajo la clave `prefix` (o "value").
    """
    if not isinstance(value, Mapping):
        key = prefix or "value"
        if isinstance(value, (list, tuple)):
            return {key: join_array(value)}
        return {key: value}

    out: FlatRow = {}
    for key in sorted(value.keys(), key=str):
        child = value[key]
        path = _join_path(prefix, key)
        if isinstance(child, Mapping):
            out.update(flatten(child, path))
        elif isinstance(child, (list, tuple)):
            out[path] = join_array(child)
        else:
            out[path] = child
    return out
