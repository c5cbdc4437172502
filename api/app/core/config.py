"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

La instancia global `settings` solo se lee en los bordes (endpoints, script).
El motor de sync recibe dataclasses explicitas construidas a partir de ella.
"""
import json
from typing import Any, Dict, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field

from app.shared.exceptions.sync import ConfigurationError


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Backend de tablas:
    - TABLE_BACKEND=postgres: tablas en PostgreSQL (requiere DATABASE_URL)
    - TABLE_BACKEND=memory: tablas en memoria (desarrollo / pruebas)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Sessions Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # API externa de sesiones
    API_BASE_URL: str = Field(default="https://api.trainingsessions.io/v1")
    API_TOKEN: str = Field(default="")
    API_KEY_HEADER: str = Field(default="X-API-Key")
    API_TIMEOUT_S: int = Field(default=30)
    SESSIONS_ENDPOINT: str = Field(default="/sessions")
    REGISTRATIONS_LINK_REL: str = Field(default="registrations")

    # Paginacion
    PAGINATION_METHOD: str = Field(default="GET")
    PAGE_PARAM: str = Field(default="page")
    LIMIT_PARAM: str = Field(default="limit")
    PAGE_SIZE: int = Field(default=100)
    START_PAGE: int = Field(default=1)
    MAX_PAGES: int = Field(default=1000)
    # JSON: {"status": "active"}
    STATIC_QUERY_PARAMS: str = Field(default="{}")
    # JSON enviado como body cuando la API exige POST para listar
    POST_BODY_TEMPLATE: str = Field(default="{}")
    # Si True, se intenta GET y luego POST cuando GET no devuelve items
    METHOD_FALLBACK: bool = Field(default=True)

    # Reintentos y rate limiting
    MAX_ATTEMPTS: int = Field(default=5)
    BACKOFF_BASE_MS: int = Field(default=500)
    PAGE_DELAY_MS: int = Field(default=250)
    SESSION_PAUSE_EVERY: int = Field(default=10)
    SESSION_PAUSE_MS: int = Field(default=1000)
    # Techo de ejecucion de una corrida (0 = sin limite)
    MAX_RUNTIME_S: int = Field(default=330)
    # Espera maxima por el lock de una tabla ocupada por otro escritor
    TABLE_LOCK_TIMEOUT_S: int = Field(default=600)

    # Tablas destino
    TABLE_BACKEND: str = Field(default="postgres")
    TABLE_SCHEMA: str = Field(default="sync")
    SESSIONS_TABLE: str = Field(default="sessions")
    SESSIONS_KEY_FIELD: str = Field(default="row_key")
    ATTENDEES_TABLE: str = Field(default="attendees")
    ATTENDEES_KEY_FIELD: str = Field(default="registration.id")
    WEBHOOK_TABLE: str = Field(default="webhook_data")

    # Webhook
    WEBHOOK_SECRET: str = Field(default="")

    # Base de datos
    DATABASE_URL: str = Field(default="")

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignorar campos extra del .env
    )


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


def parse_json_object(raw: str, name: str) -> Dict[str, Any]:
    """
    Parsea una variable de entorno que contiene un objeto JSON.
    Vacio equivale a {}.
    """
    if not raw or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} no es JSON valido: {e}") from e
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} debe ser un objeto JSON")
    return value


# Instancia global de configuración
settings = Settings()
