"""
Excepciones del motor de sincronización (API de sesiones -> tablas).

Taxonomía:
- ConfigurationError: credencial o campo clave faltante. Fatal, sin reintento.
- TransientHttpError: 429 / 5xx. Se reintenta con backoff.
- ExhaustedRetriesError: se agotaron los reintentos de un error transitorio.
- TerminalHttpError: resto de 4xx. Falla inmediata.
- MalformedResponseError: respuesta no-JSON o con forma inesperada.
- PartialBatchError: falla de un item dentro de un lote; se absorbe y se loguea.
- TableLockTimeoutError: otro escritor retiene la tabla destino.
"""
from typing import Any, Optional

from app.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base del motor de sincronización."""

    def __init__(
        self,
        message: str,
        error_code: str = "SYNC_ERROR",
        status_code: int = 500,
        details=None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class ConfigurationError(SyncException):
    """Falta una credencial, un campo clave o un valor de configuración."""

    def __init__(self, message: str, details=None):
        super().__init__(message=message, error_code="CONFIGURATION_ERROR", details=details)


class HttpFetchError(SyncException):
    """
    Error de una llamada HTTP a la API externa.

    `http_status` es el status de la respuesta remota (None si fue un error de red).
    """

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        body: str = "",
        error_code: str = "HTTP_FETCH_ERROR",
    ):
        self.http_status = http_status
        self.body = body
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=502,
            details={"http_status": http_status},
        )


class TransientHttpError(HttpFetchError):
    """429 o 5xx (o error de red): se puede reintentar."""

    def __init__(self, message: str, http_status: Optional[int] = None, body: str = ""):
        super().__init__(message, http_status=http_status, body=body, error_code="TRANSIENT_HTTP_ERROR")


class TerminalHttpError(HttpFetchError):
    """4xx distinto de 429: no tiene sentido reintentar."""

    def __init__(self, http_status: int, body: str = ""):
        super().__init__(
            f"La API respondió {http_status}: {body}",
            http_status=http_status,
            body=body,
            error_code="TERMINAL_HTTP_ERROR",
        )


class ExhaustedRetriesError(SyncException):
    """Se agotaron los intentos sin éxito ni error terminal."""

    def __init__(self, attempts: int, last_error: Optional[Exception]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            message=f"Reintentos agotados tras {attempts} intento(s): {last_error}",
            error_code="EXHAUSTED_RETRIES",
            status_code=502,
            details={"attempts": attempts},
        )


class MalformedResponseError(SyncException):
    """La respuesta no es JSON válido o no tiene la forma esperada."""

    def __init__(self, message: str, body: str = ""):
        self.body = body
        super().__init__(message=message, error_code="MALFORMED_RESPONSE", status_code=502)


class PartialBatchError(SyncException):
    """
    Falla de un solo item dentro de un lote (una página, la inscripción de una sesión).

    No se propaga: degrada el aporte de ese item y queda registrada en logs.
    """

    def __init__(self, item: Any, cause: Exception):
        self.item = item
        self.cause = cause
        super().__init__(
            message=f"Falla parcial en '{item}': {cause}",
            error_code="PARTIAL_BATCH_ERROR",
            details={"item": str(item)},
        )


class MissingIdentifierError(SyncException):
    """El payload de un webhook no trae ningún campo de ID reconocible."""

    def __init__(self):
        super().__init__(
            message="missing required ID field",
            error_code="MISSING_ID",
            status_code=400,
        )


class TableLockTimeoutError(SyncException):
    """Otro escritor retuvo la tabla destino mas alla del timeout."""

    def __init__(self, table_name: str, timeout: float):
        self.table_name = table_name
        self.timeout = timeout
        super().__init__(
            message=f"Timeout ({timeout}s) esperando el lock de la tabla '{table_name}'",
            error_code="TABLE_LOCKED",
            status_code=409,
            details={"table": table_name},
        )
