"""
Tests unitarios de los endpoints de sync y webhook.

Verifica el contrato HTTP:
- POST /webhook responde OK / Unauthorized / ERR en texto plano.
- POST /sync/sessions delega en el caso de uso y expone errores de configuración.
- POST /sync/dedup y GET /sync/stats operan sobre el storage compartido.
"""
from __future__ import annotations

from unittest.mock import Mock

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.v1.dependencies.use_case_deps import get_sync_use_cases
from app.application.dto.sync_dto import SessionSyncResultDTO, UpsertCountsDTO
from app.application.use_cases.sync_use_cases import SyncUseCases
from app.core.config import Settings
from app.shared.exceptions.sync import ConfigurationError

SECRET = "s3cr3t"


@pytest.fixture
def use_cases(storage, stats) -> SyncUseCases:
    settings = Settings(WEBHOOK_SECRET=SECRET, TABLE_BACKEND="memory", WEBHOOK_TABLE="webhook_data")
    return SyncUseCases(settings, storage, stats)


@pytest.fixture
def app_with_use_cases(use_cases: SyncUseCases):
    """Crea la app FastAPI con los casos de uso inyectados via dependency_overrides."""
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_sync_use_cases] = lambda: use_cases
    yield app
    app.dependency_overrides.clear()


async def _post(app, url: str, **kwargs):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(url, **kwargs)


async def _get(app, url: str):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(url)


@pytest.mark.asyncio
async def test_webhook_ok(app_with_use_cases, storage) -> None:
    response = await _post(
        app_with_use_cases,
        "/api/v1/webhook",
        json={"type": "attendee.created", "object": {"id": "a1", "name": "Ana"}},
        headers={"X-Webhook-Secret": SECRET},
    )

    assert response.status_code == 200
    assert response.text == "OK"
    rows = storage.get_or_create_table("webhook_data").as_dicts()
    assert rows[0]["id"] == "a1"


@pytest.mark.asyncio
async def test_webhook_secret_in_query_param(app_with_use_cases) -> None:
    response = await _post(app_with_use_cases, f"/api/v1/webhook?secret={SECRET}", json={"id": "a2"})
    assert response.text == "OK"


@pytest.mark.asyncio
async def test_webhook_unauthorized_writes_nothing(app_with_use_cases, storage) -> None:
    response = await _post(
        app_with_use_cases,
        "/api/v1/webhook",
        json={"id": "a1", "secret": "wrong"},
    )

    assert response.status_code == 401
    assert response.text == "Unauthorized"
    assert storage.table_names() == []


@pytest.mark.asyncio
async def test_webhook_without_id_returns_err(app_with_use_cases) -> None:
    response = await _post(
        app_with_use_cases,
        "/api/v1/webhook",
        json={"object": {"name": "Ana"}},
        headers={"X-Webhook-Secret": SECRET},
    )

    assert response.status_code == 400
    assert response.text == "ERR"


@pytest.mark.asyncio
async def test_webhook_invalid_json_returns_err(app_with_use_cases) -> None:
    response = await _post(
        app_with_use_cases,
        "/api/v1/webhook",
        content=b"{not json",
        headers={"X-Webhook-Secret": SECRET, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.text == "ERR"


@pytest.mark.asyncio
async def test_sync_sessions_returns_use_case_result() -> None:
    mock_use_cases = Mock()
    mock_use_cases.run_sessions_sync.return_value = SessionSyncResultDTO(
        success=True,
        message="Sincronizacion completada: 3 fila(s) escritas",
        sessions_fetched=2,
        rows=3,
        sessions_table=UpsertCountsDTO(created=3),
        attendees_table=UpsertCountsDTO(created=2),
    )
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_sync_use_cases] = lambda: mock_use_cases

    response = await _post(app, "/api/v1/sync/sessions")

    assert response.status_code == 200
    data = response.json()
    assert data["rows"] == 3
    assert data["sessions_table"]["created"] == 3
    assert data["partial"] is False


@pytest.mark.asyncio
async def test_sync_sessions_configuration_error_is_reported() -> None:
    mock_use_cases = Mock()
    mock_use_cases.run_sessions_sync.side_effect = ConfigurationError("Falta el token de la API (API_TOKEN)")
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_sync_use_cases] = lambda: mock_use_cases

    response = await _post(app, "/api/v1/sync/sessions")

    assert response.status_code == 500
    assert response.json()["error"] == "CONFIGURATION_ERROR"


@pytest.mark.asyncio
async def test_dedup_endpoint_removes_duplicates(app_with_use_cases, storage) -> None:
    table = storage.get_or_create_table("attendees")
    table.append_columns(["registration.id"])
    table.append_rows([["r1"], ["r2"], ["r1"]])

    response = await _post(
        app_with_use_cases,
        "/api/v1/sync/dedup",
        json={"table": "attendees", "key_field": "registration.id"},
    )

    assert response.status_code == 200
    assert response.json() == {"table": "attendees", "key_field": "registration.id", "removed": 1}
    assert table.read_rows() == [["r1"], ["r2"]]


@pytest.mark.asyncio
async def test_stats_endpoint_lists_categories(app_with_use_cases) -> None:
    await _post(
        app_with_use_cases,
        "/api/v1/webhook",
        json={"id": "a1"},
        headers={"X-Webhook-Secret": SECRET},
    )

    response = await _get(app_with_use_cases, "/api/v1/sync/stats")

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert [s["category"] for s in stats] == ["webhook"]
    assert stats[0]["created"] == 1
