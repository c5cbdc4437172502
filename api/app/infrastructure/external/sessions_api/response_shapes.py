"""
Detección de la forma de una respuesta de listado.

Las APIs devuelven el arreglo de resultados "desnudo" o envuelto bajo una
clave convencional. En lugar de adivinar con if/else, se evalúa una lista
ordenada (y acotada) de reglas; la primera que aplica gana.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

WRAPPER_KEYS: tuple[str, ...] = (
    "data",
    "items",
    "results",
    "content",
    "records",
    "rows",
    "hydra:member",
)

NEXT_LINK_PATHS: tuple[tuple[str, ...], ...] = (
    ("next",),
    ("next_page_url",),
    ("nextPageUrl",),
    ("links", "next"),
    ("_links", "next"),
    ("hydra:view", "hydra:next"),
)

HAS_MORE_PATHS: tuple[tuple[str, ...], ...] = (
    ("has_more",),
    ("hasMore",),
    ("meta", "has_more"),
    ("meta", "hasMore"),
    ("meta", "hasNextPage"),
    ("pagination", "has_more"),
)


@dataclass(frozen=True)
class ShapeRule:
    """Par predicado + extractor."""

    name: str
    matches: Callable[[Any], bool]
    extract: Callable[[Any], list]


def _wrapper_rule(key: str) -> ShapeRule:
    return ShapeRule(
        name=f"wrapper:{key}",
        matches=lambda payload: isinstance(payload, dict) and isinstance(payload.get(key), list),
        extract=lambda payload: payload[key],
    )


def _first_array_property(payload: Any) -> Optional[list]:
    if not isinstance(payload, dict):
        return None
    for value in payload.values():
        if isinstance(value, list):
            return value
    return None


SHAPE_RULES: tuple[ShapeRule, ...] = (
    ShapeRule(
        name="bare_array",
        matches=lambda payload: isinstance(payload, list),
        extract=lambda payload: payload,
    ),
    *(_wrapper_rule(key) for key in WRAPPER_KEYS),
    ShapeRule(
        name="first_array_property",
        matches=lambda payload: _first_array_property(payload) is not None,
        extract=lambda payload: _first_array_property(payload) or [],
    ),
)


def match_rule(payload: Any) -> Optional[ShapeRule]:
    for rule in SHAPE_RULES:
        if rule.matches(payload):
            return rule
    return None


def extract_items(payload: Any) -> list:
    """Retorna la lista de items de una página; [] si ninguna regla aplica."""
    rule = match_rule(payload)
    if rule is None:
        return []
    return list(rule.extract(payload))


def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _next_link_present(payload: Any) -> bool:
    for path in NEXT_LINK_PATHS:
        value = _dig(payload, path)
        # {"next": {"href": "..."}} (HAL) cuenta si trae href
        if isinstance(value, dict):
            value = value.get("href")
        if value:
            return True
    return False


def _has_more_flag(payload: Any) -> bool:
    return any(_dig(payload, path) is True for path in HAS_MORE_PATHS)


def has_more_pages(payload: Any, item_count: int, page_size: int) -> bool:
    """
    Decide si vale la pena pedir la siguiente página.

    Página llena => se asume que puede haber más (puede costar un request
    final vacío, que es inofensivo).
    """
    if item_count == 0:
        return False
    if _next_link_present(payload) or _has_more_flag(payload):
        return True
    return item_count == page_size
