"""
Combinador sesión x inscripciones.

Por cada sesión:
- 0 inscripciones (o sin link)  -> 1 fila solo con campos session.*
- N inscripciones               -> N filas: session.* + registration.*
- fetch de inscripciones falla  -> 1 fila session.* + registration_fetch_error

Una sesión que falla nunca aborta el lote.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional
from urllib.parse import urljoin

from loguru import logger

from app.application.interfaces.sync_observer import SyncObserver, notify_error
from app.shared.exceptions.sync import ConfigurationError, PartialBatchError

from .flattener import flatten
from .paginator import Paginator
from .types import Deadline, FlatRow, PaginationConfig

SESSION_PREFIX = "session"
REGISTRATION_PREFIX = "registration"
ERROR_FIELD = "registration_fetch_error"

LINK_CONTAINER_KEYS = ("links", "_links", "hyperlinks")


def _href_of(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        href = value.get("href") or value.get("url")
        return str(href) if href else None
    if isinstance(value, list) and value:
        return _href_of(value[0])
    return None


def resolve_link(session: dict[str, Any], rel: str) -> Optional[str]:
    """
    Busca el link `rel` en el bloque de hyperlinks de la sesión.

    Formas soportadas:
    - [{"rel": "registrations", "href": "..."}]  (también "name" / "url")
    - {"registrations": "..."} o {"registrations": {"href": "..."}}  (HAL)
    """
    for container_key in LINK_CONTAINER_KEYS:
        links = session.get(container_key)
        if isinstance(links, dict):
            href = _href_of(links.get(rel))
            if href:
                return href
        elif isinstance(links, list):
            for link in links:
                if not isinstance(link, dict):
                    continue
                if rel in (link.get("rel"), link.get("name")):
                    href = _href_of(link)
                    if href:
                        return href
    return None


class SessionRegistrationCombiner:
    """
    Produce el set de filas desnormalizadas a partir de las sesiones crudas.
    """

    def __init__(
        self,
        paginator: Paginator,
        *,
        base_url: str,
        registrations_rel: str = "registrations",
        registrations_config: Optional[PaginationConfig] = None,
        pause_every: int = 10,
        pause_ms: int = 1000,
        observer: Optional[SyncObserver] = None,
    ) -> None:
        self._paginator = paginator
        self._base_url = base_url.rstrip("/") + "/"
        self._rel = registrations_rel
        self._registrations_config = registrations_config or PaginationConfig()
        self._pause_every = pause_every
        self._pause_ms = pause_ms
        self._observer = observer

    def combine(
        self,
        sessions: Iterable[dict[str, Any]],
        *,
        deadline: Optional[Deadline] = None,
    ) -> list[FlatRow]:
        sessions = list(sessions)
        rows: list[FlatRow] = []

        for processed, session in enumerate(sessions, start=1):
            rows.extend(self.rows_for_session(session, deadline=deadline))

            if processed == len(sessions):
                break
            if deadline is not None and deadline.expired():
                logger.warning(
                    f"Tiempo de corrida agotado: se omiten {len(sessions) - processed} sesión(es) restantes"
                )
                break
            if self._pause_every > 0 and processed % self._pause_every == 0 and self._pause_ms > 0:
                time.sleep(self._pause_ms / 1000.0)

        logger.info(f"Combinador: {len(sessions)} sesión(es) -> {len(rows)} fila(s)")
        return rows

    def rows_for_session(
        self,
        session: dict[str, Any],
        *,
        deadline: Optional[Deadline] = None,
    ) -> list[FlatRow]:
        session_row = flatten(session, SESSION_PREFIX)
        link = resolve_link(session, self._rel)
        if not link:
            return [dict(session_row)]

        url = urljoin(self._base_url, link)
        try:
            result = self._paginator.paginate(url, self._registrations_config, deadline=deadline)
        except ConfigurationError:
            raise
        except Exception as e:
            # Falla inesperada fuera de la política del paginador
            result = None
            failure = PartialBatchError(session_row.get(f"{SESSION_PREFIX}.id"), e)
        else:
            failure = result.error

        registrations = result.items if result is not None else []
        if failure is not None:
            logger.warning(
                f"Inscripciones de la sesión {session_row.get(f'{SESSION_PREFIX}.id')} "
                f"con error ({len(registrations)} recuperada(s)): {failure}"
            )
            notify_error(self._observer, "sessions", failure)

        if not registrations:
            row = dict(session_row)
            if failure is not None:
                row[ERROR_FIELD] = str(getattr(failure, "cause", failure))
            return [row]

        rows: list[FlatRow] = []
        for registration in registrations:
            registration_row = flatten(registration, REGISTRATION_PREFIX)
            rows.append({**session_row, **registration_row})
        return rows
