"""
Configuración de fixtures para pytest.
"""
from unittest.mock import patch

import pytest

from app.infrastructure.storage.sync_stats_repository import InMemorySyncStatsRepository
from app.infrastructure.storage.table_store import InMemoryTableStorage


@pytest.fixture
def no_sleep():
    """
    Reemplaza time.sleep para que el backoff y las pausas no demoren los tests.
    El mock permite verificar las esperas solicitadas.
    """
    with patch("time.sleep") as sleep:
        yield sleep


@pytest.fixture
def storage() -> InMemoryTableStorage:
    """Storage de tablas en memoria, limpio por test."""
    return InMemoryTableStorage()


@pytest.fixture
def stats() -> InMemorySyncStatsRepository:
    return InMemorySyncStatsRepository()
