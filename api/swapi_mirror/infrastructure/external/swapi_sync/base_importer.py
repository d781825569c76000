"""
Fase 1 del pipeline: importacion de filas base.

Para cada tipo de entidad (en orden de importacion) y cada registro remoto:
- si ya existe una fila con la misma clave natural, se omite (no es error)
- se construye la URL de referencia local a partir del ID
- se copian los campos escalares (las relaciones se difieren a la fase 2)
- se guarda y se registra URL remota -> URL local en el traductor

Estrategias de ID:
- "predict": se predice max(id) + 1 antes de guardar; si el ID real
  difiere, se reescribe la URL guardada (reconciliacion, no es fatal).
- "assign": se guarda primero y la URL se arma con el ID real.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from loguru import logger

from swapi_mirror.infrastructure.repositories.entity_repository import (
    EntityRepository,
    RepositoryRegistry,
)
from swapi_mirror.shared.exceptions.sync import MalformedRecordError, SyncConfigError

from .entity_registry import EntityTypeConfig
from .references import ReferenceTranslator
from .swapi_client import SwapiClient
from .types import EntityImportStats, RawRecord


ID_STRATEGIES = ("predict", "assign")

# Columnas que nunca se copian desde el registro remoto
_RESERVED_FIELDS = frozenset({"id", "url"})


def build_base_values(
    config: EntityTypeConfig,
    record: RawRecord,
    column_names: Iterable[str],
) -> dict[str, Any]:
    """
    Mapea un registro remoto a un dict listo para insertar.

    Reglas:
    - Se descartan 'url', 'id' y los campos declarados como relacion
    - Solo se conservan las columnas que la tabla realmente tiene
    - Cada campo con transform se convierte antes de persistir
    - Timestamps ausentes o no parseables quedan al default de la tabla
    """
    columns = set(column_names)
    values: dict[str, Any] = {}

    for key, raw in record.items():
        if key in _RESERVED_FIELDS or key in config.relation_names:
            continue
        if key not in columns:
            continue

        transform = config.field_transforms.get(key)
        try:
            value = transform(raw) if transform else raw
        except (TypeError, ValueError) as e:
            raise MalformedRecordError(
                config.entity_type, f"campo '{key}' no convertible: {raw!r}"
            ) from e

        if value is None and key in ("created", "edited"):
            continue
        values[key] = value

    return values


class BaseImporter:
    """
    Importa las filas base de cada tipo de entidad dentro de la sesion
    de la fase (el commit/rollback lo decide el coordinador).
    """

    def __init__(
        self,
        *,
        registry: RepositoryRegistry,
        client: SwapiClient,
        translator: ReferenceTranslator,
        id_strategy: str = "predict",
        cache_raw_records: bool = False,
    ) -> None:
        if id_strategy not in ID_STRATEGIES:
            raise SyncConfigError(
                f"Estrategia de ID desconocida: '{id_strategy}' (opciones: {', '.join(ID_STRATEGIES)})"
            )
        self._registry = registry
        self._client = client
        self._translator = translator
        self._id_strategy = id_strategy
        self._cache_raw_records = cache_raw_records
        self.raw_records: dict[str, list[RawRecord]] = {}
        self.stats: dict[str, EntityImportStats] = {}

    async def run(self, configs: Iterable[EntityTypeConfig]) -> dict[str, EntityImportStats]:
        """Importa todos los tipos indicados, en el orden recibido."""
        for config in configs:
            await self.import_entity_type(config)
        return self.stats

    async def import_entity_type(self, config: EntityTypeConfig) -> EntityImportStats:
        entity_type = config.entity_type
        repo = self._registry.for_type(entity_type)
        stats = self.stats.setdefault(entity_type, EntityImportStats(entity_type))
        cache: Optional[list[RawRecord]] = None
        if self._cache_raw_records:
            cache = self.raw_records.setdefault(entity_type, [])

        logger.info(f"Importando filas base de '{entity_type}'...")
        async for record in self._client.iter_records(entity_type):
            stats.fetched += 1
            if cache is not None:
                cache.append(record)
            await self.import_record(config, repo, record, stats)

        logger.info(
            f"'{entity_type}' importado: creados={stats.created}, "
            f"omitidos={stats.skipped}, reconciliados={stats.reconciled}"
        )
        return stats

    async def import_record(
        self,
        config: EntityTypeConfig,
        repo: EntityRepository,
        record: RawRecord,
        stats: EntityImportStats,
    ):
        """
        Importa un registro. Retorna la fila creada o la existente.

        Raises:
            MalformedRecordError: Si falta 'url' o la clave natural
            StoreError: Si falla la persistencia
        """
        entity_type = config.entity_type
        remote_url = record.get("url")
        if not isinstance(remote_url, str) or not remote_url:
            raise MalformedRecordError(entity_type, "falta el campo 'url'")

        values = build_base_values(config, record, repo.column_names)
        natural_value = values.get(config.natural_key)
        if natural_value is None:
            raise MalformedRecordError(
                entity_type, f"falta la clave natural '{config.natural_key}' ({remote_url})"
            )

        existing = await repo.find_by_natural_key(natural_value, config.natural_key)
        if existing is not None:
            logger.info(
                f"'{entity_type}' con {config.natural_key}='{natural_value}' ya existe "
                f"(id={existing.id}), se omite"
            )
            self._translator.register(remote_url, existing.url)
            stats.skipped += 1
            return existing

        if self._id_strategy == "predict":
            row = await self._save_with_predicted_id(entity_type, repo, values, stats)
        else:
            row = await self._save_with_assigned_id(entity_type, repo, values, remote_url)

        self._translator.register(remote_url, row.url)
        stats.created += 1
        return row

    async def _save_with_predicted_id(
        self,
        entity_type: str,
        repo: EntityRepository,
        values: dict[str, Any],
        stats: EntityImportStats,
    ):
        predicted_id = await repo.predict_next_id()
        values["url"] = self._translator.local_reference_url(entity_type, predicted_id)
        row = await repo.save(values)

        if row.id != predicted_id:
            actual_url = self._translator.local_reference_url(entity_type, row.id)
            logger.warning(
                f"'{entity_type}': ID predicho {predicted_id} != ID asignado {row.id}, "
                f"se reescribe la URL a {actual_url}"
            )
            await repo.update_reference_url(row, actual_url)
            stats.reconciled += 1
        return row

    async def _save_with_assigned_id(
        self,
        entity_type: str,
        repo: EntityRepository,
        values: dict[str, Any],
        remote_url: str,
    ):
        # URL provisoria hasta conocer el ID real
        values["url"] = self._translator.rewrite_base(remote_url)
        row = await repo.save(values)
        actual_url = self._translator.local_reference_url(entity_type, row.id)
        if row.url != actual_url:
            await repo.update_reference_url(row, actual_url)
        return row
