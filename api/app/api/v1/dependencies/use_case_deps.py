"""
Dependencias para inyeccion de casos de uso.
"""
from functools import lru_cache

from app.application.interfaces.sync_observer import LoggingSyncObserver
from app.application.use_cases.sync_use_cases import SyncUseCases
from app.core.config import settings
from app.infrastructure.external.sessions_api.sync_service import build_storage_from_settings


@lru_cache(maxsize=1)
def get_sync_use_cases() -> SyncUseCases:
    """
    Dependencia para obtener los casos de uso de sincronizacion.

    Se construye una sola vez por proceso: el storage (y las tablas en memoria,
    si TABLE_BACKEND=memory) se comparte entre requests.

    Returns:
        SyncUseCases: Instancia compartida
    """
    storage, stats = build_storage_from_settings(settings)
    return SyncUseCases(settings, storage, stats, observer=LoggingSyncObserver())
