"""
Interfaz de notificaciones del ciclo de vida de un sync.

Este contrato existe para:
- Desacoplar el algoritmo de sync de los canales de aviso (logs, chat, mail).
- Garantizar que un canal que falla nunca afecta la corrección del sync.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from loguru import logger


class SyncObserver(Protocol):
    """
    Recibe eventos en puntos bien definidos: inicio de lote, fin de lote, error.

    Implementaciones:
    - LoggingSyncObserver (loguru).
    - Fakes para tests.
    """

    def on_batch_start(self, category: str) -> None:
        ...

    def on_batch_end(self, category: str, result: Any) -> None:
        ...

    def on_error(self, category: str, error: Exception) -> None:
        ...


class LoggingSyncObserver:
    """Observer por defecto: deja constancia en el log de la aplicación."""

    def on_batch_start(self, category: str) -> None:
        logger.info(f"[{category}] inicio de lote")

    def on_batch_end(self, category: str, result: Any) -> None:
        logger.success(f"[{category}] fin de lote: {result}")

    def on_error(self, category: str, error: Exception) -> None:
        logger.error(f"[{category}] error: {error}")


class CompositeSyncObserver:
    """Reenvía cada evento a varios observers."""

    def __init__(self, observers: Sequence[SyncObserver]) -> None:
        self._observers = list(observers)

    def on_batch_start(self, category: str) -> None:
        for observer in self._observers:
            notify_batch_start(observer, category)

    def on_batch_end(self, category: str, result: Any) -> None:
        for observer in self._observers:
            notify_batch_end(observer, category, result)

    def on_error(self, category: str, error: Exception) -> None:
        for observer in self._observers:
            notify_error(observer, category, error)


# Los helpers absorben fallas del observer: un aviso caído no rompe el sync.

def notify_batch_start(observer: Optional[SyncObserver], category: str) -> None:
    if observer is None:
        return
    try:
        observer.on_batch_start(category)
    except Exception as e:
        logger.warning(f"Observer falló en on_batch_start({category}): {e}")


def notify_batch_end(observer: Optional[SyncObserver], category: str, result: Any) -> None:
    if observer is None:
        return
    try:
        observer.on_batch_end(category, result)
    except Exception as e:
        logger.warning(f"Observer falló en on_batch_end({category}): {e}")


def notify_error(observer: Optional[SyncObserver], category: str, error: Exception) -> None:
    if observer is None:
        return
    try:
        observer.on_error(category, error)
    except Exception as e:
        logger.warning(f"Observer falló en on_error({category}): {e}")
