"""
Ciclo de vida de la aplicacion (inicio y cierre).
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from loguru import logger

from app.core.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Manejador de inicio y cierre de la aplicacion.
    
    Args:
        app: Instancia de FastAPI
    """
    try:
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Entorno: {settings.ENVIRONMENT}")
        logger.info(f"Backend de tablas: {settings.TABLE_BACKEND}")
        
        # Validar configuracion critica
        _validate_config()
        
        # Configurar logging adicional
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=settings.LOG_LEVEL
        )
        
        logger.success("Aplicacion iniciada correctamente")
        
    except Exception as e:
        logger.error(f"Error durante startup: {e}")
        logger.exception("Detalle del error:")
        raise

    yield

    logger.info("Cerrando aplicacion...")
    logger.success("Aplicacion cerrada correctamente")


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []
    
    if not settings.API_TOKEN:
        warnings.append("API_TOKEN no configurado - el sync de sesiones fallara")
    
    if not settings.WEBHOOK_SECRET:
        warnings.append("WEBHOOK_SECRET no configurado - todos los webhooks seran rechazados")
    
    if settings.TABLE_BACKEND.lower() == "postgres" and not settings.DATABASE_URL:
        warnings.append("TABLE_BACKEND=postgres sin DATABASE_URL")
    
    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")
