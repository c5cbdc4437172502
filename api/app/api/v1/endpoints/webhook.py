"""
Endpoint de ingesta de webhooks.

Responde siempre con un token de texto plano: OK, Unauthorized o ERR.
"""
import asyncio
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from app.api.v1.dependencies.use_case_deps import get_sync_use_cases
from app.application.use_cases.sync_use_cases import SyncUseCases


router = APIRouter(prefix="/webhook", tags=["Webhook"])


@router.post("", response_class=PlainTextResponse, summary="Recibir un evento webhook")
async def receive_webhook(
    request: Request,
    use_cases: SyncUseCases = Depends(get_sync_use_cases),
) -> PlainTextResponse:
    """
    Recibe un evento. El secreto puede venir como header X-Webhook-Secret,
    query param ?secret= o campo "secret" del body.
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        logger.warning("Webhook con body no-JSON")
        body = None

    token, status_code = await asyncio.to_thread(
        use_cases.handle_webhook,
        body,
        dict(request.headers),
        dict(request.query_params),
    )
    return PlainTextResponse(token, status_code=status_code)
