"""
Servicio de sincronización SWAPI -> base de datos local.

Diseño (resumen):
- Aplica las migraciones pendientes (alembic upgrade head)
- Fase base: importa las filas de cada tipo de entidad (una transaccion)
- Fase de relaciones: tablas de union y FKs (otra transaccion)
- Cada fase abre su propia sesion, hace commit o rollback y la cierra

Estrategia de atomicidad:
- Un fallo en la fase base revierte todas las filas base.
- Un fallo en la fase de relaciones revierte solo las relaciones; las
  filas base ya confirmadas se conservan.
- Cada corrida es una recarga completa (sin cursor incremental).
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from swapi_mirror.infrastructure.database.migrations import run_migrations
from swapi_mirror.infrastructure.database.models import ENTITY_MODELS
from swapi_mirror.infrastructure.database.session import create_engine, create_session_factory
from swapi_mirror.infrastructure.repositories.entity_repository import RepositoryRegistry
from swapi_mirror.shared.exceptions.sync import SyncConfigError, SyncPhaseError

from .base_importer import ID_STRATEGIES, BaseImporter
from .entity_registry import ENTITY_TYPES, EntityTypeConfig, fill_entity_types
from .references import ReferenceTranslator
from .relation_resolver import RelationResolver
from .swapi_client import SwapiClient
from .types import EntityImportStats, RawRecord


Migrator = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class SyncConfig:
    """
    Configuracion explicita de una corrida.

    Solo el punto de entrada lee variables de entorno; el pipeline
    recibe este valor ya armado.
    """

    remote_base_url: str = "https://swapi.dev/api"
    local_base_url: str = "http://localhost:8000/api"
    database_url: str = ""
    timeout_s: float = 30.0
    id_strategy: str = "predict"
    cache_raw_records: bool = False
    run_migrations: bool = True

    def __post_init__(self) -> None:
        if self.id_strategy not in ID_STRATEGIES:
            raise SyncConfigError(
                f"SYNC_ID_STRATEGY invalida: '{self.id_strategy}' (opciones: {', '.join(ID_STRATEGIES)})"
            )
        if self.timeout_s <= 0:
            raise SyncConfigError(f"SWAPI_TIMEOUT_S debe ser positivo: {self.timeout_s}")

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "SyncConfig":
        """
        Construye la config desde Settings. Los overrides con valor None se ignoran.
        """
        values = {
            "remote_base_url": settings.SWAPI_BASE_URL,
            "local_base_url": settings.effective_local_base_url,
            "database_url": settings.effective_database_url,
            "timeout_s": settings.SWAPI_TIMEOUT_S,
            "id_strategy": settings.SYNC_ID_STRATEGY,
            "cache_raw_records": settings.SYNC_CACHE_RAW_RECORDS,
            "run_migrations": settings.SYNC_RUN_MIGRATIONS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class PipelineState(str, Enum):
    IDLE = "idle"
    MIGRATIONS_APPLIED = "migrations_applied"
    MIGRATIONS_FAILED = "migrations_failed"
    BASE_PHASE_RUNNING = "base_phase_running"
    BASE_PHASE_COMMITTED = "base_phase_committed"
    BASE_PHASE_ROLLED_BACK = "base_phase_rolled_back"
    RELATION_PHASE_RUNNING = "relation_phase_running"
    RELATION_PHASE_COMMITTED = "relation_phase_committed"
    RELATION_PHASE_ROLLED_BACK = "relation_phase_rolled_back"


@dataclass
class SyncResult:
    state: PipelineState = PipelineState.IDLE
    base: dict[str, EntityImportStats] = field(default_factory=dict)
    relations: dict[str, EntityImportStats] = field(default_factory=dict)

    @property
    def created_rows(self) -> int:
        return sum(s.created for s in self.base.values())

    @property
    def skipped_rows(self) -> int:
        return sum(s.skipped for s in self.base.values())

    @property
    def reconciled_rows(self) -> int:
        return sum(s.reconciled for s in self.base.values())

    @property
    def join_rows(self) -> int:
        return sum(s.join_rows for s in self.relations.values())

    @property
    def foreign_keys_set(self) -> int:
        return sum(s.foreign_keys_set for s in self.relations.values())

    @property
    def unresolved_references(self) -> int:
        return sum(s.unresolved for s in self.relations.values())


class SwapiToDatabaseSync:
    """
    Orquestador del pipeline completo (migraciones + dos fases).
    """

    def __init__(
        self,
        *,
        config: SyncConfig,
        session_factory: async_sessionmaker[AsyncSession],
        client: SwapiClient,
        migrator: Optional[Migrator] = None,
        entity_configs: tuple[EntityTypeConfig, ...] = ENTITY_TYPES,
        models: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._client = client
        self._migrator = migrator
        self._entity_configs = entity_configs
        self._models = ENTITY_MODELS if models is None else models

        # Relaciones hacia tipos sin repositorio fallan aqui, antes de tocar la base
        RepositoryRegistry.check_relations(self._entity_configs, self._models)

        self.state = PipelineState.IDLE
        self.state_history: list[PipelineState] = [self.state]
        self.translator = ReferenceTranslator(config.remote_base_url, config.local_base_url)

    def _set_state(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline: {self.state.value} -> {state.value}")
        self.state = state
        self.state_history.append(state)

    async def run_once(self) -> SyncResult:
        """
        Ejecuta una corrida completa.

        Raises:
            SyncPhaseError: Si una fase falla (con la causa encadenada)
        """
        result = SyncResult()
        fill_configs = fill_entity_types(self._entity_configs)
        self.state = PipelineState.IDLE
        self.state_history = [self.state]
        self.translator = ReferenceTranslator(self._config.remote_base_url, self._config.local_base_url)

        await self._apply_migrations()
        result.state = self.state

        raw_records = await self._run_base_phase(fill_configs, result)
        result.state = self.state

        await self._run_relation_phase(fill_configs, raw_records, result)
        result.state = self.state

        logger.info(
            f"Sync completado. creados={result.created_rows}, omitidos={result.skipped_rows}, "
            f"reconciliados={result.reconciled_rows}, filas_union={result.join_rows}, "
            f"fks={result.foreign_keys_set}, sin_resolver={result.unresolved_references}"
        )
        return result

    async def _apply_migrations(self) -> None:
        if self._config.run_migrations and self._migrator is not None:
            try:
                await self._migrator()
            except Exception as e:
                self._set_state(PipelineState.MIGRATIONS_FAILED)
                logger.error(f"Error aplicando migraciones: {e}")
                raise SyncPhaseError("migrations", e) from e
        else:
            logger.info("Migraciones omitidas")
        self._set_state(PipelineState.MIGRATIONS_APPLIED)

    async def _run_base_phase(
        self,
        fill_configs: list[EntityTypeConfig],
        result: SyncResult,
    ) -> Optional[dict[str, list[RawRecord]]]:
        self._set_state(PipelineState.BASE_PHASE_RUNNING)
        logger.info("Fase base: iniciando...")

        async with self._session_factory() as db:
            try:
                registry = RepositoryRegistry(db, self._entity_configs, self._models)
                importer = BaseImporter(
                    registry=registry,
                    client=self._client,
                    translator=self.translator,
                    id_strategy=self._config.id_strategy,
                    cache_raw_records=self._config.cache_raw_records,
                )
                result.base = await importer.run(fill_configs)
                await db.commit()
            except Exception as e:
                await db.rollback()
                self._set_state(PipelineState.BASE_PHASE_ROLLED_BACK)
                logger.error(f"Fase base revertida: {e}")
                raise SyncPhaseError("base", e) from e

        self._set_state(PipelineState.BASE_PHASE_COMMITTED)
        for stats in result.base.values():
            logger.info(f"Fase base - {stats.summary()}")
        logger.info(f"Fase base: {len(self.translator)} URLs remotas con fila local")
        return importer.raw_records if self._config.cache_raw_records else None

    async def _run_relation_phase(
        self,
        fill_configs: list[EntityTypeConfig],
        raw_records: Optional[dict[str, list[RawRecord]]],
        result: SyncResult,
    ) -> None:
        self._set_state(PipelineState.RELATION_PHASE_RUNNING)
        logger.info("Fase de relaciones: iniciando...")

        async with self._session_factory() as db:
            try:
                registry = RepositoryRegistry(db, self._entity_configs, self._models)
                resolver = RelationResolver(
                    registry=registry,
                    translator=self.translator,
                    client=self._client,
                    raw_records=raw_records,
                )
                result.relations = await resolver.run(fill_configs)
                await db.commit()
            except Exception as e:
                await db.rollback()
                self._set_state(PipelineState.RELATION_PHASE_ROLLED_BACK)
                logger.error(f"Fase de relaciones revertida (las filas base se conservan): {e}")
                raise SyncPhaseError("relations", e) from e

        self._set_state(PipelineState.RELATION_PHASE_COMMITTED)


def build_from_settings(
    settings: Any,
    **overrides: Any,
) -> tuple[SwapiToDatabaseSync, AsyncEngine, SwapiClient]:
    """
    Constructor “oficial” del pipeline a partir de Settings.

    El caller es dueño del engine y del cliente: debe cerrarlos
    (engine.dispose(), client.aclose()) al terminar.
    """
    config = SyncConfig.from_settings(settings, **overrides)
    engine = create_engine(
        config.database_url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )
    client = SwapiClient(config.remote_base_url, timeout_s=config.timeout_s)
    service = SwapiToDatabaseSync(
        config=config,
        session_factory=create_session_factory(engine),
        client=client,
        migrator=functools.partial(run_migrations, config.database_url),
    )
    return service, engine, client
