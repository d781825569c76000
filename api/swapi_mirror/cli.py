"""
CLI: SWAPI -> base de datos local (recarga completa).

Ejecución:
  swapi-sync
  swapi-sync --skip-migrations
  swapi-sync --id-strategy assign --cache-raw-records

Codigo de salida: 0 si la corrida termina bien, 1 si alguna fase falla.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence

from loguru import logger

from swapi_mirror.core.config import settings
from swapi_mirror.core.log_config import setup_logging
from swapi_mirror.infrastructure.external.swapi_sync.sync_service import SyncResult, build_from_settings
from swapi_mirror.shared.exceptions.sync import SyncError


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="swapi-sync",
        description="Importa el catalogo completo de SWAPI a la base de datos local.",
    )
    parser.add_argument(
        "--skip-migrations",
        action="store_true",
        help="No aplica las migraciones de alembic antes de importar.",
    )
    parser.add_argument(
        "--id-strategy",
        choices=("predict", "assign"),
        default=None,
        help=(
            "predict: predice el ID y reconcilia la URL si difiere. "
            "assign: guarda primero y arma la URL con el ID real. "
            "Por defecto SYNC_ID_STRATEGY."
        ),
    )
    parser.add_argument(
        "--cache-raw-records",
        action="store_true",
        help="Reutiliza en la fase de relaciones los registros de la fase base (sin segunda descarga).",
    )
    return parser.parse_args(argv)


async def run_sync(args: argparse.Namespace) -> SyncResult:
    """Construye el pipeline desde settings, ejecuta una corrida y libera recursos."""
    service, engine, client = build_from_settings(
        settings,
        id_strategy=args.id_strategy,
        cache_raw_records=True if args.cache_raw_records else None,
        run_migrations=False if args.skip_migrations else None,
    )
    try:
        return await service.run_once()
    finally:
        await client.aclose()
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE or None)

    logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}: SWAPI -> base de datos sync...")
    try:
        result = asyncio.run(run_sync(args))
    except SyncError as e:
        logger.error(f"Sync fallido [{e.error_code}]: {e.message}")
        return 1

    logger.info(
        f"Sync OK: creados={result.created_rows}, omitidos={result.skipped_rows}, "
        f"filas_union={result.join_rows}, fks={result.foreign_keys_set}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
