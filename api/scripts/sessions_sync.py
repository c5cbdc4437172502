"""
CLI: API de sesiones -> tablas (sync de una vía).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) cada pocos minutos.
  - MAX_RUNTIME_S acota la corrida para que termine antes del próximo disparo.

Variables de entorno requeridas:
  - API_TOKEN
  - DATABASE_URL (si TABLE_BACKEND=postgres, el default)

Ejecución:
  python scripts/sessions_sync.py
  python scripts/sessions_sync.py --dedup sessions --key row_key
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `app/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env antes de construir Settings.
# - api/.env (recomendado para scripts del backend)
# - repo_root/.env (si centralizas variables del proyecto)
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from app.core.config import Settings
from app.infrastructure.external.sessions_api.sync_service import (
    build_from_settings,
    build_storage_from_settings,
)
from app.infrastructure.storage.upsert import dedup
from app.shared.exceptions.base import AppException


def _run_dedup(settings: Settings, table_name: str, key_field: str) -> int:
    storage, _ = build_storage_from_settings(settings)
    table = storage.get_or_create_table(table_name)
    removed = dedup(table, key_field)
    logger.info(f"Dedup OK: tabla={table_name}, clave={key_field}, eliminadas={removed}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--dedup",
        metavar="TABLE",
        help="No sincroniza: elimina filas duplicadas de TABLE (conserva la primera).",
    )
    parser.add_argument(
        "--key",
        metavar="FIELD",
        help="Campo clave para --dedup.",
    )
    args = parser.parse_args()

    settings = Settings()

    try:
        if args.dedup:
            if not args.key:
                parser.error("--dedup requiere --key")
            return _run_dedup(settings, args.dedup, args.key)

        service = build_from_settings(settings)
        logger.info("Iniciando sync API de sesiones -> tablas...")
        try:
            result = service.run_once()
        finally:
            service.close()
        logger.info(f"Sync OK: {result}")
    except AppException as e:
        logger.error(f"Sync falló: {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
