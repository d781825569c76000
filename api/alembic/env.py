"""
Configuracion de Alembic para migraciones de base de datos.

Este archivo configura Alembic para:
- Usar la URL recibida por el runner programatico o, si no hay, la de settings
- Importar todos los modelos para autogenerate
- Usar drivers sincronos (asyncpg -> psycopg, aiosqlite -> sqlite)
"""
import sys
from pathlib import Path
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# Agregar el directorio raiz al path para imports
API_DIR = Path(__file__).resolve().parent.parent
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Importar configuracion y modelos
from swapi_mirror.core.config import settings
from swapi_mirror.infrastructure.database.session import Base
from swapi_mirror.infrastructure.database.migrations import to_sync_database_url

# Importar todos los modelos para que Alembic los detecte
from swapi_mirror.infrastructure.database.models import ENTITY_MODELS, JOIN_TABLES  # noqa: F401

# Alembic Config object
config = context.config

# La URL la fija run_migrations(); desde la linea de comandos se toma de settings
if not config.get_main_option("sqlalchemy.url"):
    db_url = to_sync_database_url(settings.effective_database_url)
    config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))

# Configurar logging desde alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Metadata de los modelos para autogenerate
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    Ejecuta migraciones en modo 'offline'.

    Genera SQL sin conectarse a la base de datos.
    Util para revisar migraciones antes de ejecutarlas.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Conecta a la base de datos y ejecuta las migraciones directamente.
    """
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # Comparar tipos de columnas para detectar cambios
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
