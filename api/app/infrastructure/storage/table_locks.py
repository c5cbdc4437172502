"""
Lock por tabla destino.

El UPSERT lee encabezado y filas, calcula el indice y recien despues escribe.
Si dos escritores (una corrida de sync y un webhook, o dos webhooks) hacen ese
ciclo a la vez sobre la misma tabla, ambos ven la clave como nueva y la
agregan dos veces. Este modulo serializa a los escritores de cada tabla
dentro del proceso.

Caracteristicas:
- Lock por nombre de tabla
- Varias tablas se adquieren en orden alfabetico para no generar deadlocks
- Timeout configurable
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from loguru import logger

from app.shared.exceptions.sync import TableLockTimeoutError


# Timeout por defecto para adquirir un lock (en segundos)
DEFAULT_LOCK_TIMEOUT = 600.0


class TableLockManager:
    """
    Gestor de locks por nombre de tabla.

    Usa `threading.Lock` porque los escritores son sincronos: el sync corre en
    un thread aparte y los webhooks en el threadpool de FastAPI.
    """

    _locks: Dict[str, threading.Lock] = {}
    _meta_lock = threading.Lock()

    @classmethod
    def _get_or_create_lock(cls, table_name: str) -> threading.Lock:
        """Obtiene o crea el lock de la tabla especificada."""
        with cls._meta_lock:
            lock = cls._locks.get(table_name)
            if lock is None:
                lock = threading.Lock()
                cls._locks[table_name] = lock
            return lock

    @classmethod
    @contextmanager
    def hold(cls, *table_names: str, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
        """
        Adquiere los locks de todas las tablas indicadas mientras dura el bloque.

        Args:
            table_names: Tablas a escribir (se ignoran repetidas y vacias)
            timeout: Espera maxima por cada lock. Si es <= 0 espera indefinidamente.

        Raises:
            TableLockTimeoutError: Si algun lock no se obtiene dentro del timeout.
                Los locks ya adquiridos se liberan antes de propagar.

        Ejemplo:
            with TableLockManager.hold("sessions", "attendees"):
                service.run_once()
        """
        acquired: List[threading.Lock] = []
        try:
            for name in sorted({n for n in table_names if n}):
                lock = cls._get_or_create_lock(name)
                if timeout and timeout > 0:
                    if not lock.acquire(timeout=timeout):
                        logger.warning(f"Timeout adquiriendo lock de la tabla {name} (timeout: {timeout}s)")
                        raise TableLockTimeoutError(name, timeout)
                else:
                    lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    @classmethod
    def is_locked(cls, table_name: str) -> bool:
        """Indica si algun escritor tiene tomada la tabla (para monitoreo)."""
        with cls._meta_lock:
            lock = cls._locks.get(table_name)
        return lock is not None and lock.locked()
