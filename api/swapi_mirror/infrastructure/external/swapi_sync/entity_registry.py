"""
Declaracion de tipos de entidad y relaciones del catalogo SWAPI.

Este módulo no realiza I/O: solo define configuración. Aquí se decide:
- qué tipos de entidad existen y en qué orden se importan
- cuál es la clave natural de cada tipo (para detectar duplicados)
- qué campos del registro remoto son relaciones (se difieren a la fase 2)
- qué transformaciones se aplican a los campos escalares
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from swapi_mirror.infrastructure.database.models import join_table_name, relation_column
from swapi_mirror.shared.utils.datetime_utils import parse_iso_date, parse_iso_datetime


Transform = Callable[[Any], Any]


class RelationKind(str, Enum):
    """Como se materializa una relacion en el esquema local."""

    # Lista de referencias -> filas en una tabla de union
    MANY_TO_MANY = "many_to_many"
    # Lista de referencias -> FK en las filas relacionadas (planets.residents -> people.homeworld_id)
    ONE_TO_MANY = "one_to_many"
    # Referencia unica -> FK en la fila duena (people.homeworld -> people.homeworld_id)
    MANY_TO_ONE = "many_to_one"


@dataclass(frozen=True)
class RelationSpec:
    """
    Relacion declarada de un tipo de entidad.

    - name: nombre del campo en el registro remoto ("pilots", "homeworld")
    - target_type: tipo de entidad referenciado ("people", "planets")
    - kind: como se persiste la relacion
    - fk_column: columna FK para ONE_TO_MANY / MANY_TO_ONE
    """

    name: str
    target_type: str
    kind: RelationKind = RelationKind.MANY_TO_MANY
    fk_column: Optional[str] = None

    @property
    def singular(self) -> bool:
        return self.kind is RelationKind.MANY_TO_ONE

    def join_table(self, owner_type: str) -> str:
        return join_table_name(owner_type, self.target_type)


@dataclass(frozen=True)
class EntityTypeConfig:
    """
    Config de un tipo de entidad remoto -> una tabla local.

    - fill: False para tipos que existen localmente pero no en la API remota
    """

    entity_type: str
    relations: tuple[RelationSpec, ...] = ()
    natural_key: str = "name"
    field_transforms: dict[str, Transform] = field(default_factory=dict)
    fill: bool = True

    @property
    def relation_names(self) -> frozenset[str]:
        return frozenset(r.name for r in self.relations)


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


_TIMESTAMP_TRANSFORMS: dict[str, Transform] = {
    "created": parse_iso_datetime,
    "edited": parse_iso_datetime,
}


def _images(owner_type: str) -> RelationSpec:
    return RelationSpec(
        "images",
        "images",
        RelationKind.ONE_TO_MANY,
        fk_column=relation_column(owner_type),
    )


def _homeworld() -> RelationSpec:
    return RelationSpec("homeworld", "planets", RelationKind.MANY_TO_ONE, fk_column="homeworld_id")


# Orden de importacion: el mismo para ambas fases.
ENTITY_TYPES: tuple[EntityTypeConfig, ...] = (
    EntityTypeConfig(
        entity_type="starships",
        relations=(
            RelationSpec("films", "films"),
            RelationSpec("pilots", "people"),
            _images("starships"),
        ),
        field_transforms=_TIMESTAMP_TRANSFORMS,
    ),
    EntityTypeConfig(
        entity_type="vehicles",
        relations=(
            RelationSpec("pilots", "people"),
            RelationSpec("films", "films"),
            _images("vehicles"),
        ),
        field_transforms=_TIMESTAMP_TRANSFORMS,
    ),
    EntityTypeConfig(
        entity_type="planets",
        relations=(
            RelationSpec("residents", "people", RelationKind.ONE_TO_MANY, fk_column="homeworld_id"),
            RelationSpec("films", "films"),
            _images("planets"),
        ),
        field_transforms=_TIMESTAMP_TRANSFORMS,
    ),
    EntityTypeConfig(
        entity_type="species",
        relations=(
            RelationSpec("people", "people"),
            RelationSpec("films", "films"),
            _homeworld(),
            _images("species"),
        ),
        field_transforms=_TIMESTAMP_TRANSFORMS,
    ),
    EntityTypeConfig(
        entity_type="films",
        natural_key="title",
        relations=(
            RelationSpec("characters", "people"),
            RelationSpec("planets", "planets"),
            RelationSpec("starships", "starships"),
            RelationSpec("vehicles", "vehicles"),
            RelationSpec("species", "species"),
            _images("films"),
        ),
        field_transforms={
            **_TIMESTAMP_TRANSFORMS,
            "episode_id": _to_int,
            "release_date": parse_iso_date,
        },
    ),
    EntityTypeConfig(
        entity_type="people",
        relations=(
            _homeworld(),
            RelationSpec("films", "films"),
            RelationSpec("starships", "starships"),
            RelationSpec("species", "species"),
            RelationSpec("vehicles", "vehicles"),
            _images("people"),
        ),
        field_transforms=_TIMESTAMP_TRANSFORMS,
    ),
    # Las imagenes solo existen en el API local
    EntityTypeConfig(entity_type="images", fill=False),
)


def fill_entity_types(
    configs: tuple[EntityTypeConfig, ...] = ENTITY_TYPES,
) -> list[EntityTypeConfig]:
    """Tipos que se importan desde la API remota, en orden."""
    return [c for c in configs if c.fill]


def get_entity_config(
    entity_type: str,
    configs: tuple[EntityTypeConfig, ...] = ENTITY_TYPES,
) -> EntityTypeConfig:
    for c in configs:
        if c.entity_type == entity_type:
            return c
    raise KeyError(f"Tipo de entidad desconocido: '{entity_type}'")
