"""
Implementación del repositorio de entidades del catalogo.
Un repositorio por tipo de entidad (una tabla) con las operaciones
que necesitan el importador base y el resolutor de relaciones.
"""
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from loguru import logger
from sqlalchemy import Table, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from swapi_mirror.infrastructure.database.models import ENTITY_MODELS
from swapi_mirror.infrastructure.database.session import Base
from swapi_mirror.infrastructure.database.upsert import insert_ignoring_duplicates
from swapi_mirror.shared.exceptions.sync import StoreError, UnsupportedRelationError


class EntityRepository:
    """Repositorio para gestionar las filas de un tipo de entidad."""

    def __init__(self, db: AsyncSession, model):
        self.db = db
        self.model = model

    @property
    def entity_type(self) -> str:
        return self.model.__tablename__

    @property
    def column_names(self) -> frozenset:
        """Columnas reales de la tabla (los campos remotos desconocidos se descartan)."""
        return frozenset(c.name for c in self.model.__table__.columns)

    async def find_by_reference_url(self, url: str):
        """
        Obtiene la fila cuya URL de referencia es `url`.
        """
        try:
            result = await self.db.execute(
                select(self.model).where(self.model.url == url).order_by(self.model.id)
            )
        except SQLAlchemyError as e:
            raise StoreError("find_by_reference_url", self.entity_type, e) from e
        return result.scalars().first()

    async def find_many_by_reference_urls(self, urls: Sequence[str]) -> List[Any]:
        """
        Obtiene en una sola consulta las filas de varias URLs.

        Las URLs sin fila se omiten; el caller compara contra lo pedido.
        """
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls:
            return []
        try:
            result = await self.db.execute(
                select(self.model).where(self.model.url.in_(unique_urls)).order_by(self.model.id)
            )
        except SQLAlchemyError as e:
            raise StoreError("find_many_by_reference_urls", self.entity_type, e) from e
        return list(result.scalars().all())

    async def find_by_natural_key(self, value: Any, field: str = "name"):
        """
        Obtiene la fila por su clave natural (name, o title para films).
        """
        column = getattr(self.model, field)
        try:
            result = await self.db.execute(
                select(self.model).where(column == value).order_by(self.model.id)
            )
        except SQLAlchemyError as e:
            raise StoreError("find_by_natural_key", self.entity_type, e) from e
        return result.scalars().first()

    async def predict_next_id(self) -> int:
        """
        Estima el ID que el motor asignara al proximo insert (max(id) + 1).

        No es una reserva: otro escritor puede tomar ese ID antes.
        """
        try:
            result = await self.db.execute(select(func.max(self.model.id)))
        except SQLAlchemyError as e:
            raise StoreError("predict_next_id", self.entity_type, e) from e
        current_max = result.scalar()
        return (current_max or 0) + 1

    async def save(self, values: Mapping[str, Any]):
        """
        Inserta una fila y hace flush para que el ID asignado quede disponible.
        """
        row = self.model(**values)
        self.db.add(row)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreError("save", self.entity_type, e) from e
        return row

    async def update_reference_url(self, row, url: str) -> None:
        """Reescribe la URL de referencia de una fila ya guardada."""
        row.url = url
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreError("update_reference_url", self.entity_type, e) from e

    async def set_foreign_key(self, row_id: int, column: str, value: Optional[int]) -> None:
        """
        Actualiza una columna FK de una fila (value=None la deja en NULL).
        """
        await self.set_foreign_key_many([row_id], column, value)

    async def set_foreign_key_many(
        self,
        row_ids: Iterable[int],
        column: str,
        value: Optional[int],
    ) -> int:
        """
        Actualiza la misma columna FK en varias filas con un solo UPDATE.

        Returns:
            Cantidad de filas a las que se aplico el UPDATE
        """
        ids = list(dict.fromkeys(row_ids))
        if not ids:
            return 0
        try:
            await self.db.execute(
                update(self.model)
                .where(self.model.id.in_(ids))
                .values({column: value})
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise StoreError("set_foreign_key", self.entity_type, e) from e
        return len(ids)

    async def bulk_insert_relations(
        self,
        join_table: str,
        owner_column: str,
        related_column: str,
        pairs: Iterable[tuple[int, int]],
    ) -> int:
        """
        Inserta filas (owner_id, related_id) en una tabla de union.

        Los pares ya existentes se ignoran, por lo que reintentar
        la misma relacion no cambia el resultado.
        """
        rows = [
            {owner_column: owner_id, related_column: related_id}
            for owner_id, related_id in pairs
        ]
        if not rows:
            return 0

        table: Optional[Table] = Base.metadata.tables.get(join_table)
        if table is None:
            raise StoreError(
                "bulk_insert_relations",
                join_table,
                KeyError(f"tabla de union no declarada: {join_table}"),
            )
        try:
            return await insert_ignoring_duplicates(self.db, table, rows)
        except SQLAlchemyError as e:
            raise StoreError("bulk_insert_relations", join_table, e) from e


class RepositoryRegistry:
    """
    Mapa explicito tipo de entidad -> repositorio, armado una sola vez.

    Tambien resuelve cada relacion declarada (owner_type, relation_name)
    a su repositorio destino. Una relacion cuyo destino no tiene modelo
    falla al construir el registro, no a mitad de una fase.
    """

    def __init__(self, db: AsyncSession, entity_configs, models: Optional[Mapping[str, Any]] = None):
        models = ENTITY_MODELS if models is None else models
        self.check_relations(entity_configs, models)

        self._repositories: dict[str, EntityRepository] = {
            entity_type: EntityRepository(db, model)
            for entity_type, model in models.items()
        }
        self._relations: dict[tuple[str, str], EntityRepository] = {}
        for config in entity_configs:
            for relation in config.relations:
                self._relations[(config.entity_type, relation.name)] = self._repositories[relation.target_type]

        logger.debug(
            f"Registro de repositorios: {len(self._repositories)} tipos, "
            f"{len(self._relations)} relaciones"
        )

    @staticmethod
    def check_relations(entity_configs, models: Mapping[str, Any]) -> None:
        """
        Verifica que todo tipo y todo destino de relacion tenga modelo.

        Raises:
            UnsupportedRelationError: Si alguna relacion apunta a un tipo sin modelo
        """
        for config in entity_configs:
            if config.entity_type not in models:
                raise UnsupportedRelationError(config.entity_type, "*", config.entity_type)
            for relation in config.relations:
                if relation.target_type not in models:
                    raise UnsupportedRelationError(
                        config.entity_type, relation.name, relation.target_type
                    )

    def for_type(self, entity_type: str) -> EntityRepository:
        try:
            return self._repositories[entity_type]
        except KeyError:
            raise UnsupportedRelationError(entity_type, "*", entity_type) from None

    def for_relation(self, owner_type: str, relation_name: str) -> EntityRepository:
        try:
            return self._relations[(owner_type, relation_name)]
        except KeyError:
            raise UnsupportedRelationError(owner_type, relation_name, "?") from None
