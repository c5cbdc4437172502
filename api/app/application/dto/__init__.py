"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import (
    UpsertCountsDTO,
    SessionSyncResultDTO,
    DedupRequestDTO,
    DedupResultDTO,
    SyncStatsDTO,
    SyncStatsListDTO,
)

__all__ = [
    "UpsertCountsDTO",
    "SessionSyncResultDTO",
    "DedupRequestDTO",
    "DedupResultDTO",
    "SyncStatsDTO",
    "SyncStatsListDTO",
]
