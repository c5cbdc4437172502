"""
Cliente mínimo de la API REST de sesiones (sin SDKs externos).

Requisitos cubiertos:
- requests
- headers por defecto (API key + JSON), sobreescribibles por el caller
- backoff exponencial para 429 / 5xx
- 4xx restantes: error inmediato
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import requests
from loguru import logger

from app.shared.exceptions.sync import (
    ExhaustedRetriesError,
    MalformedResponseError,
    TerminalHttpError,
    TransientHttpError,
)

from .types import ApiCredentials, RetryPolicy


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class ApiClient:
    """
    Cliente HTTP de la API de sesiones. Una llamada = un request en vuelo.

    Importante:
    - No interpreta la forma de la respuesta: eso lo hace el paginador.
    - No muta estado compartido (la sesión de requests solo reutiliza conexiones).
    """

    def __init__(
        self,
        credentials: ApiCredentials,
        *,
        retry: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._creds = credentials
        self._retry = retry or RetryPolicy()
        self._owns_session = session is None
        self._session = session or requests.Session()

    def close(self) -> None:
        """Cierra la sesión HTTP propia; una sesión inyectada la cierra quien la creó."""
        if self._owns_session:
            self._session.close()

    @property
    def base_url(self) -> str:
        return self._creds.get_api_base_url()

    def url_for(self, endpoint: str) -> str:
        """Resuelve un endpoint relativo contra la URL base; las URLs absolutas pasan tal cual."""
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def default_headers(self) -> dict[str, str]:
        return {
            self._creds.key_header: self._creds.get_api_token(),
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def fetch(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        body: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Request HTTP con backoff para 429/5xx.

        Estrategia:
        - 2xx: parsea JSON (JSON inválido = MalformedResponseError, sin reintento)
        - 429 / 5xx / error de red: espera base * 2**attempt y reintenta
        - 4xx (no 429): TerminalHttpError inmediato (config/auth mal)
        - Sin más intentos: ExhaustedRetriesError con el último error
        """
        merged_headers = {**self.default_headers(), **(headers or {})}
        max_attempts = max(1, self._retry.max_attempts)
        last_error: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                resp = self._session.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    headers=merged_headers,
                    data=json.dumps(body) if body is not None else None,
                    timeout=self._retry.timeout_s,
                )
            except requests.RequestException as e:
                last_error = TransientHttpError(f"Error de red en {method} {url}: {e}")
            else:
                if 200 <= resp.status_code < 300:
                    return self._parse_json(resp, url)

                if not _is_retryable_status(resp.status_code):
                    raise TerminalHttpError(resp.status_code, resp.text)

                last_error = TransientHttpError(
                    f"La API respondió {resp.status_code} en {method} {url}",
                    http_status=resp.status_code,
                    body=resp.text,
                )

            if attempt + 1 < max_attempts:
                sleep_s = self._retry.delay_s(attempt)
                logger.warning(
                    f"{last_error} (intento {attempt + 1}/{max_attempts}); "
                    f"reintentando en {sleep_s:.2f}s"
                )
                time.sleep(sleep_s)

        raise ExhaustedRetriesError(max_attempts, last_error)

    @staticmethod
    def _parse_json(resp: requests.Response, url: str) -> Any:
        text = resp.text
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedResponseError(
                f"Respuesta no-JSON desde {url}: {e}", body=text[:500]
            ) from e
