"""
Endpoints para sincronizacion de sesiones.
Permite disparar el sync, reparar duplicados y consultar estadisticas.
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from app.api.v1.dependencies.use_case_deps import get_sync_use_cases
from app.application.dto.sync_dto import (
    DedupRequestDTO,
    DedupResultDTO,
    SessionSyncResultDTO,
    SyncStatsListDTO,
)
from app.application.use_cases.sync_use_cases import SyncUseCases
from app.shared.exceptions.base import AppException


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/sessions",
    response_model=SessionSyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizar sesiones e inscripciones"
)
async def sync_sessions(
    use_cases: SyncUseCases = Depends(get_sync_use_cases),
) -> SessionSyncResultDTO:
    """
    Ejecuta una corrida completa del sync de sesiones.

    La sincronizacion:
    - Pagina las sesiones (GET, con fallback a POST)
    - Trae las inscripciones de cada sesion
    - Hace UPSERT en las tablas de sesiones y asistentes
    """
    try:
        logger.info("Iniciando sincronizacion de sesiones desde API")

        # Ejecutar sync en thread separado para no bloquear el event loop
        result = await asyncio.to_thread(use_cases.run_sessions_sync)

        logger.info(f"Sync completado: {result.message}")
        return result

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Error en sincronizacion de sesiones: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error al sincronizar: {str(e)}"
        )


@router.post(
    "/dedup",
    response_model=DedupResultDTO,
    summary="Eliminar filas duplicadas de una tabla"
)
async def dedup_table(
    request: DedupRequestDTO,
    use_cases: SyncUseCases = Depends(get_sync_use_cases),
) -> DedupResultDTO:
    """
    Conserva la primera fila por valor de clave y elimina el resto.
    Es idempotente: se puede ejecutar en cualquier momento.
    """
    return await asyncio.to_thread(use_cases.dedup_table, request.table, request.key_field)


@router.get(
    "/stats",
    response_model=SyncStatsListDTO,
    summary="Estadisticas acumuladas por categoria"
)
async def get_stats(
    use_cases: SyncUseCases = Depends(get_sync_use_cases),
) -> SyncStatsListDTO:
    return await asyncio.to_thread(use_cases.get_stats)
