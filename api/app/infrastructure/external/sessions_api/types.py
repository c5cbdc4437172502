"""
Tipos y utilidades puras para el pipeline de sesiones.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from app.shared.exceptions.sync import ConfigurationError

# Fila plana: ruta con puntos -> valor escalar
FlatRow = dict[str, Any]


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normaliza datetime a UTC (aware)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class ApiCredentials:
    """
    Proveedor de credenciales de la API de sesiones.

    El token se valida al pedirlo, no al construir: así un webhook puede
    funcionar aunque el sync no esté configurado.
    """

    base_url: str
    token: str
    key_header: str = "X-API-Key"

    def get_api_base_url(self) -> str:
        if not self.base_url:
            raise ConfigurationError("Falta la URL base de la API (API_BASE_URL)")
        return self.base_url.rstrip("/")

    def get_api_token(self) -> str:
        if not self.token:
            raise ConfigurationError("Falta el token de la API (API_TOKEN)")
        return self.token


@dataclass(frozen=True)
class RetryPolicy:
    """
    Reintentos de una llamada HTTP.

    Espera entre intentos: base_delay_ms * 2**attempt (attempt desde 0, sin jitter).
    """

    max_attempts: int = 5
    base_delay_ms: int = 500
    timeout_s: int = 30

    def delay_s(self, attempt: int) -> float:
        return (self.base_delay_ms * (2**attempt)) / 1000.0


@dataclass(frozen=True)
class PaginationConfig:
    """
    Config de paginación por número de página.

    - method: "GET" (params en querystring) o "POST" (params en querystring,
      body_template como JSON)
    - static_params: se mezclan en cada request
    """

    method: str = "GET"
    body_template: Optional[dict[str, Any]] = None
    page_param: str = "page"
    size_param: str = "limit"
    page_size: int = 100
    start_page: int = 1
    static_params: dict[str, Any] = field(default_factory=dict)
    page_delay_ms: int = 250
    max_pages: int = 1000

    def with_method(self, method: str) -> "PaginationConfig":
        return PaginationConfig(
            method=method,
            body_template=self.body_template,
            page_param=self.page_param,
            size_param=self.size_param,
            page_size=self.page_size,
            start_page=self.start_page,
            static_params=dict(self.static_params),
            page_delay_ms=self.page_delay_ms,
            max_pages=self.max_pages,
        )


@dataclass(frozen=True)
class SyncTuning:
    """Parámetros del orquestador de sesiones/inscripciones."""

    sessions_endpoint: str = "/sessions"
    registrations_link_rel: str = "registrations"
    session_pause_every: int = 10
    session_pause_ms: int = 1000
    method_fallback: bool = True
    max_runtime_s: int = 0


class Deadline:
    """
    Límite de tiempo de una corrida.

    Se consulta entre páginas y entre sesiones; al vencer, el trabajo se corta
    y se devuelven resultados parciales.
    """

    def __init__(self, seconds: float, clock=time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds if seconds and seconds > 0 else None

    @classmethod
    def none(cls) -> "Deadline":
        return cls(0)

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining_s(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())
