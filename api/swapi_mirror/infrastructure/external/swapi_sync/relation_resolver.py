"""
Fase 2 del pipeline: resolucion de relaciones.

Se ejecuta despues de confirmar la fase base. Para cada registro remoto
(re-descargado o tomado del cache de la fase 1) y cada relacion declarada
con valor no vacio:
- se ubica la fila duena por su URL local
- se traducen las referencias y se resuelven con una sola consulta
- many_to_many: filas en la tabla de union (idempotente)
- one_to_many: FK en las filas relacionadas
- many_to_one: FK en la fila duena

Referencias sin fila local y duenos inexistentes se registran en el log
y se omiten; no abortan la fase.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, Optional

from loguru import logger

from swapi_mirror.infrastructure.database.models import relation_column
from swapi_mirror.infrastructure.repositories.entity_repository import (
    EntityRepository,
    RepositoryRegistry,
)
from swapi_mirror.shared.exceptions.sync import MalformedRecordError

from .entity_registry import EntityTypeConfig, RelationKind, RelationSpec
from .references import ReferenceTranslator, entity_type_from_url, extract_id
from .swapi_client import SwapiClient
from .types import EntityImportStats, RawRecord


class RelationResolver:
    """
    Resuelve las relaciones de cada tipo de entidad dentro de la sesion
    de la fase (el commit/rollback lo decide el coordinador).
    """

    def __init__(
        self,
        *,
        registry: RepositoryRegistry,
        translator: ReferenceTranslator,
        client: Optional[SwapiClient] = None,
        raw_records: Optional[dict[str, list[RawRecord]]] = None,
    ) -> None:
        if client is None and raw_records is None:
            raise ValueError("RelationResolver necesita un cliente o registros en cache")
        self._registry = registry
        self._translator = translator
        self._client = client
        self._raw_records = raw_records
        self.stats: dict[str, EntityImportStats] = {}

    async def run(self, configs: Iterable[EntityTypeConfig]) -> dict[str, EntityImportStats]:
        for config in configs:
            await self.resolve_entity_type(config)
        return self.stats

    async def resolve_entity_type(self, config: EntityTypeConfig) -> EntityImportStats:
        entity_type = config.entity_type
        stats = self.stats.setdefault(entity_type, EntityImportStats(entity_type))
        if not config.relations:
            return stats

        logger.info(f"Resolviendo relaciones de '{entity_type}'...")
        async for record in self._iter_records(entity_type):
            stats.fetched += 1
            await self.resolve_record(config, record, stats)

        logger.info(
            f"Relaciones de '{entity_type}': filas_union={stats.join_rows}, "
            f"fks={stats.foreign_keys_set}, sin_resolver={stats.unresolved}"
        )
        return stats

    async def _iter_records(self, entity_type: str) -> AsyncIterator[RawRecord]:
        if self._raw_records is not None and entity_type in self._raw_records:
            for record in self._raw_records[entity_type]:
                yield record
            return
        if self._client is None:
            logger.warning(f"Sin registros en cache para '{entity_type}' y sin cliente, se omite")
            return
        async for record in self._client.iter_records(entity_type):
            yield record

    async def resolve_record(
        self,
        config: EntityTypeConfig,
        record: RawRecord,
        stats: EntityImportStats,
    ) -> None:
        entity_type = config.entity_type
        remote_url = record.get("url")
        if not isinstance(remote_url, str) or not remote_url:
            raise MalformedRecordError(entity_type, "falta el campo 'url'")

        owner_repo = self._registry.for_type(entity_type)
        owner_url = self._translator.to_local(remote_url)
        owner = await owner_repo.find_by_reference_url(owner_url) if owner_url else None
        if owner is None:
            logger.warning(f"'{entity_type}': no hay fila local para {remote_url}, se omite")
            stats.missing_owners += 1
            return

        for relation in config.relations:
            value = record.get(relation.name)
            if not value:
                continue

            target_repo = self._registry.for_relation(entity_type, relation.name)
            if relation.singular:
                if not isinstance(value, str):
                    raise MalformedRecordError(
                        entity_type,
                        f"'{relation.name}' deberia ser una URL, se recibio {type(value).__name__}",
                    )
                await self._resolve_singular(entity_type, owner, owner_repo, target_repo, relation, value, stats)
            else:
                if not isinstance(value, list):
                    raise MalformedRecordError(
                        entity_type,
                        f"'{relation.name}' deberia ser una lista, se recibio {type(value).__name__}",
                    )
                await self._resolve_plural(entity_type, owner, owner_repo, target_repo, relation, value, stats)

    def _translate(self, owner_type: str, relation: RelationSpec, url: Any) -> Optional[str]:
        # Valida el formato (MalformedReferenceError es fatal)
        extract_id(url)
        referenced_type = entity_type_from_url(url)
        if referenced_type != relation.target_type:
            logger.warning(
                f"'{owner_type}.{relation.name}' referencia '{referenced_type}', "
                f"se esperaba '{relation.target_type}': {url}"
            )
        return self._translator.to_local(url)

    async def _resolve_singular(
        self,
        owner_type: str,
        owner,
        owner_repo: EntityRepository,
        target_repo: EntityRepository,
        relation: RelationSpec,
        url: str,
        stats: EntityImportStats,
    ) -> None:
        local_url = self._translate(owner_type, relation, url)
        target = await target_repo.find_by_reference_url(local_url) if local_url else None
        target_id = target.id if target is not None else None

        if target_id is None:
            logger.warning(
                f"'{owner_type}' id={owner.id}: '{relation.name}' sin fila local ({url}), queda en NULL"
            )
            stats.unresolved += 1

        await owner_repo.set_foreign_key(owner.id, relation.fk_column, target_id)
        if target_id is not None:
            stats.foreign_keys_set += 1

    async def _resolve_plural(
        self,
        owner_type: str,
        owner,
        owner_repo: EntityRepository,
        target_repo: EntityRepository,
        relation: RelationSpec,
        urls: list,
        stats: EntityImportStats,
    ) -> None:
        translated = [(u, self._translate(owner_type, relation, u)) for u in urls]
        rows = await target_repo.find_many_by_reference_urls([local for _, local in translated if local])
        by_url = {row.url: row for row in rows}

        resolved_ids = list(dict.fromkeys(by_url[local].id for _, local in translated if local in by_url))
        unresolved = [remote for remote, local in translated if local not in by_url]
        if unresolved:
            logger.warning(
                f"'{owner_type}' id={owner.id}: {len(unresolved)} referencias de "
                f"'{relation.name}' sin fila local: {unresolved}"
            )
            stats.unresolved += len(unresolved)

        if not resolved_ids:
            return

        if relation.kind is RelationKind.MANY_TO_MANY:
            pairs = [(owner.id, related_id) for related_id in resolved_ids]
            stats.join_rows += await owner_repo.bulk_insert_relations(
                relation.join_table(owner_type),
                relation_column(owner_type),
                relation_column(relation.target_type),
                pairs,
            )
        elif relation.kind is RelationKind.ONE_TO_MANY:
            stats.foreign_keys_set += await target_repo.set_foreign_key_many(
                resolved_ids, relation.fk_column, owner.id
            )
