"""
Paginador por número de página sobre ApiClient.

Política de fallos parciales: si una página falla, se loguea y se corta la
paginación en la última página buena. Los items acumulados se devuelven igual.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from loguru import logger

from app.shared.exceptions.sync import ConfigurationError, PartialBatchError

from .api_client import ApiClient
from .response_shapes import extract_items, has_more_pages
from .types import Deadline, PaginationConfig


@dataclass
class PaginationResult:
    items: list[Any] = field(default_factory=list)
    pages_fetched: int = 0
    calls: int = 0
    error: Optional[Exception] = None
    stopped_early: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class Paginator:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    def fetch_all(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> list[Any]:
        """Trae todas las páginas y retorna los items acumulados."""
        return self.paginate(endpoint, config, deadline=deadline).items

    def paginate(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> PaginationResult:
        config = config or PaginationConfig()
        method = config.method.upper()
        url = self._client.url_for(endpoint)
        result = PaginationResult()
        page = config.start_page

        while True:
            params: dict[str, Any] = {
                **config.static_params,
                config.page_param: page,
                config.size_param: config.page_size,
            }
            body = (config.body_template or {}) if method == "POST" else None

            result.calls += 1
            try:
                payload = self._client.fetch(method, url, body=body, params=params)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(
                    f"Página {page} de {url} falló ({method}); se devuelven "
                    f"{len(result.items)} item(s) de {result.pages_fetched} página(s): {e}"
                )
                result.error = PartialBatchError(f"{url}?{config.page_param}={page}", e)
                break

            items = extract_items(payload)
            if not items:
                break

            result.items.extend(items)
            result.pages_fetched += 1

            if not has_more_pages(payload, len(items), config.page_size):
                break

            if result.pages_fetched >= config.max_pages:
                logger.warning(f"Se alcanzó el máximo de {config.max_pages} páginas en {url}; cortando")
                result.stopped_early = True
                break

            if deadline is not None and deadline.expired():
                logger.warning(
                    f"Tiempo de corrida agotado paginando {url}; "
                    f"se devuelven {len(result.items)} item(s) parciales"
                )
                result.stopped_early = True
                break

            page += 1
            if config.page_delay_ms > 0:
                time.sleep(config.page_delay_ms / 1000.0)

        logger.debug(
            f"Paginación {method} {url}: {len(result.items)} item(s), "
            f"{result.pages_fetched} página(s), {result.calls} request(s)"
        )
        return result

    def fetch_all_with_fallback(
        self,
        endpoint: str,
        configs: Sequence[PaginationConfig],
        *,
        deadline: Optional[Deadline] = None,
    ) -> PaginationResult:
        """
        Prueba cada config en orden (típicamente GET y luego POST con body)
        hasta que una devuelva items. Si ninguna lo logra retorna el último resultado.
        """
        result = PaginationResult()
        for i, config in enumerate(configs):
            result = self.paginate(endpoint, config, deadline=deadline)
            if result.items:
                return result
            if i + 1 < len(configs):
                reason = f"error: {result.error}" if result.error else "sin items"
                logger.info(
                    f"{config.method.upper()} {endpoint} no devolvió datos ({reason}); "
                    f"probando {configs[i + 1].method.upper()}"
                )
        return result
