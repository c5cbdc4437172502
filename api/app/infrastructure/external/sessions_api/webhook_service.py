"""
Ingesta de eventos webhook -> tabla de webhooks (UPSERT por "id").

Flujo:
1. Verifica el secreto compartido (header, query param o campo del body)
2. Desenvuelve el payload de "object" / "data" si corresponde
3. Aplana, resuelve el ID, agrega event_type y received_at
4. UPSERT por "id" y actualiza estadísticas

La respuesta al emisor es un token literal: OK, Unauthorized o ERR.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from loguru import logger

from app.infrastructure.storage.sync_stats_repository import SyncStatsRepository
from app.infrastructure.storage.table_store import TableStorage
from app.infrastructure.storage.upsert import UpsertResult, upsert
from app.shared.exceptions.auth import UnauthorizedException
from app.shared.exceptions.sync import MalformedResponseError, MissingIdentifierError

from .flattener import flatten
from .types import FlatRow, utc_now

SECRET_HEADER = "x-webhook-secret"
SECRET_FIELD = "secret"

WRAPPER_KEYS = ("object", "data")

ID_CANDIDATES = (
    "id",
    "attendeeId",
    "attendee_id",
    "uuid",
    "reference",
    "externalId",
    "external_id",
)

EVENT_TYPE_KEYS = ("type", "event", "eventType", "event_type")

WEBHOOK_CATEGORY = "webhook"

STATUS_OK = "OK"
STATUS_UNAUTHORIZED = "Unauthorized"
STATUS_ERROR = "ERR"


@dataclass(frozen=True)
class WebhookOutcome:
    status: str
    record_id: Optional[str] = None
    result: Optional[UpsertResult] = None


def extract_secret(
    body: Any,
    headers: Optional[Mapping[str, str]] = None,
    query: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Busca el secreto en header, luego query param, luego body."""
    for key, value in (headers or {}).items():
        if key.lower() == SECRET_HEADER and value:
            return value
    if query and query.get(SECRET_FIELD):
        return query[SECRET_FIELD]
    if isinstance(body, dict) and body.get(SECRET_FIELD):
        return str(body[SECRET_FIELD])
    return None


def unwrap_payload(body: dict[str, Any]) -> dict[str, Any]:
    for key in WRAPPER_KEYS:
        inner = body.get(key)
        if isinstance(inner, dict):
            return inner
    return body


def resolve_identifier(payload: Mapping[str, Any], flat: FlatRow) -> str:
    for key in ID_CANDIDATES:
        value = payload.get(key)
        if value not in (None, "") and not isinstance(value, (dict, list)):
            return str(value)
    if flat.get("id") not in (None, ""):
        return str(flat["id"])
    # Un "id" anidado (p.ej. training.id) no identifica al evento
    raise MissingIdentifierError()


def resolve_event_type(body: Mapping[str, Any], payload: Mapping[str, Any]) -> str:
    for source in (body, payload):
        for key in EVENT_TYPE_KEYS:
            value = source.get(key)
            if isinstance(value, str) and value:
                return value
    return "unknown"


class WebhookIngestionService:
    def __init__(
        self,
        *,
        secret: str,
        storage: TableStorage,
        stats: SyncStatsRepository,
        table_name: str = "webhook_data",
    ) -> None:
        self._secret = secret or ""
        self._storage = storage
        self._stats = stats
        self._table_name = table_name

    def is_authorized(self, provided: Optional[str]) -> bool:
        if not self._secret or not provided:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), self._secret.encode("utf-8"))

    def build_row(self, body: dict[str, Any], received_at: Optional[datetime] = None) -> FlatRow:
        payload = unwrap_payload(body)
        payload = {k: v for k, v in payload.items() if k != SECRET_FIELD}
        flat = flatten(payload)
        record_id = resolve_identifier(payload, flat)
        flat["id"] = record_id
        flat["event_type"] = resolve_event_type(body, payload)
        flat["received_at"] = (received_at or utc_now()).isoformat()
        return flat

    def handle(
        self,
        body: Any,
        *,
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, str]] = None,
    ) -> WebhookOutcome:
        """
        Procesa un evento. Lanza UnauthorizedException si el secreto no coincide
        (sin escribir nada), MalformedResponseError si el body no es un objeto
        JSON y MissingIdentifierError si no hay ID.
        """
        if not self.is_authorized(extract_secret(body, headers, query)):
            logger.warning("Webhook rechazado: secreto ausente o inválido")
            raise UnauthorizedException()

        if not isinstance(body, dict):
            raise MalformedResponseError("El body del webhook no es un objeto JSON")

        row = self.build_row(body)
        table = self._storage.get_or_create_table(self._table_name)
        result = upsert(row, "id", table)
        self._stats.record(WEBHOOK_CATEGORY, result)
        logger.info(f"Webhook {row['event_type']} id={row['id']} guardado en '{self._table_name}'")
        return WebhookOutcome(status=STATUS_OK, record_id=row["id"], result=result)
