"""
Casos de uso de sincronizacion: sync de sesiones, ingesta de webhooks,
dedup de tablas y estadisticas.
"""
from typing import Any, Mapping, Optional, Tuple

from loguru import logger

from app.application.dto.sync_dto import (
    DedupResultDTO,
    SessionSyncResultDTO,
    SyncStatsDTO,
    SyncStatsListDTO,
    UpsertCountsDTO,
)
from app.application.interfaces.sync_observer import SyncObserver
from app.core.config import Settings
from app.infrastructure.external.sessions_api.sync_service import build_from_settings
from app.infrastructure.external.sessions_api.webhook_service import (
    STATUS_ERROR,
    STATUS_UNAUTHORIZED,
    WebhookIngestionService,
)
from app.infrastructure.storage.sync_stats_repository import SyncStatsRepository
from app.infrastructure.storage.table_locks import TableLockManager
from app.infrastructure.storage.table_store import TableStorage
from app.infrastructure.storage.upsert import dedup
from app.shared.exceptions.auth import UnauthorizedException
from app.shared.exceptions.sync import MalformedResponseError, MissingIdentifierError


class SyncUseCases:
    """
    Punto de entrada de la capa de aplicacion hacia el motor de sync.

    El storage y las estadisticas se comparten entre sync y webhook.
    """

    def __init__(
        self,
        settings: Settings,
        storage: TableStorage,
        stats: SyncStatsRepository,
        observer: Optional[SyncObserver] = None,
    ):
        self.settings = settings
        self.storage = storage
        self.stats = stats
        self.observer = observer
        self.webhooks = WebhookIngestionService(
            secret=settings.WEBHOOK_SECRET,
            storage=storage,
            stats=stats,
            table_name=settings.WEBHOOK_TABLE,
        )

    def _hold(self, *table_names: str):
        return TableLockManager.hold(*table_names, timeout=self.settings.TABLE_LOCK_TIMEOUT_S)

    def run_sessions_sync(self) -> SessionSyncResultDTO:
        """
        Ejecuta una corrida completa de sesiones -> tablas.
        Es sincrona: desde un endpoint se debe correr en un thread aparte.
        Retiene las tablas de sesiones y asistentes durante toda la corrida.
        """
        service = build_from_settings(
            self.settings,
            storage=self.storage,
            stats=self.stats,
            observer=self.observer,
        )
        try:
            with self._hold(self.settings.SESSIONS_TABLE, self.settings.ATTENDEES_TABLE):
                result = service.run_once()
        finally:
            service.close()

        changed = result.sessions_table.created + result.sessions_table.updated
        message = (
            f"Sincronizacion completada: {changed} fila(s) escritas"
            if changed > 0
            else "Sin sesiones para sincronizar"
        )
        if result.partial:
            message += " (parcial)"

        return SessionSyncResultDTO(
            success=True,
            message=message,
            sessions_fetched=result.sessions_fetched,
            rows=result.rows,
            sessions_table=UpsertCountsDTO.model_validate(result.sessions_table),
            attendees_table=UpsertCountsDTO.model_validate(result.attendees_table),
            partial=result.partial,
        )

    def dedup_table(self, table_name: str, key_field: str) -> DedupResultDTO:
        """Repara duplicados: conserva la primera fila por clave."""
        with self._hold(table_name):
            table = self.storage.get_or_create_table(table_name)
            removed = dedup(table, key_field)
        return DedupResultDTO(table=table_name, key_field=key_field, removed=removed)

    def get_stats(self) -> SyncStatsListDTO:
        return SyncStatsListDTO(
            stats=[SyncStatsDTO.model_validate(s) for s in self.stats.all()]
        )

    def handle_webhook(
        self,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, str]] = None,
    ) -> Tuple[str, int]:
        """
        Procesa un webhook y retorna (token de respuesta, status HTTP).

        Tokens: OK / Unauthorized / ERR.
        """
        try:
            with self._hold(self.settings.WEBHOOK_TABLE):
                outcome = self.webhooks.handle(body, headers=headers, query=query)
            return outcome.status, 200
        except UnauthorizedException:
            return STATUS_UNAUTHORIZED, 401
        except (MissingIdentifierError, MalformedResponseError) as e:
            logger.warning(f"Webhook rechazado: {e.message}")
            return STATUS_ERROR, 400
        except Exception as e:
            logger.exception(f"Error procesando webhook: {e}")
            return STATUS_ERROR, 500
