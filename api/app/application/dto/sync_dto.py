"""
DTOs para sincronizacion de sesiones, dedup y estadisticas.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class UpsertCountsDTO(BaseModel):
    """Conteo de un UPSERT por lote."""

    created: int = Field(0, description="Filas nuevas")
    updated: int = Field(0, description="Filas actualizadas en su lugar")
    skipped: int = Field(0, description="Registros omitidos por no traer clave")

    model_config = ConfigDict(from_attributes=True)


class SessionSyncResultDTO(BaseModel):
    """Resultado de una corrida de sincronizacion de sesiones."""

    success: bool
    message: str
    sessions_fetched: int = Field(0, description="Sesiones obtenidas de la API")
    rows: int = Field(0, description="Filas desnormalizadas generadas")
    sessions_table: UpsertCountsDTO
    attendees_table: UpsertCountsDTO
    partial: bool = Field(False, description="True si la corrida se corto antes de terminar")


class DedupRequestDTO(BaseModel):
    """Pedido de reparacion de duplicados."""

    table: str = Field(..., min_length=1, max_length=63, description="Tabla a reparar")
    key_field: str = Field(..., min_length=1, description="Campo clave")


class DedupResultDTO(BaseModel):
    """Resultado de un dedup."""

    table: str
    key_field: str
    removed: int


class SyncStatsDTO(BaseModel):
    """Estadisticas acumuladas de una categoria."""

    category: str
    created: int
    updated: int
    last_event_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SyncStatsListDTO(BaseModel):
    stats: List[SyncStatsDTO]
