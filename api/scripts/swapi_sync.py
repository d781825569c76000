"""
CLI: SWAPI -> base de datos local (one-way, recarga completa).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) o a mano tras un deploy.
  - No se integra al request/response del API para evitar timeouts y bloquear workers.

Variables de entorno (ver swapi_mirror/core/config.py):
  - DATABASE_URL o DATABASE_HOST/PORT/USER/PASSWORD/NAME
  - SWAPI_BASE_URL, LOCAL_BASE_URL (o HOST/PORT)
  - SYNC_ID_STRATEGY, SYNC_CACHE_RAW_RECORDS, SYNC_RUN_MIGRATIONS

Ejecución:
  python scripts/swapi_sync.py
  python scripts/swapi_sync.py --skip-migrations
  python scripts/swapi_sync.py --id-strategy assign --cache-raw-records
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `swapi_mirror/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (antes de importar settings).
# Soportamos dos ubicaciones típicas:
# - api/.env (recomendado para scripts del backend)
# - repo_root/.env (si centralizas variables del proyecto)
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from swapi_mirror.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
