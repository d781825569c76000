from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from swapi_mirror.infrastructure.database.models import (
    ENTITY_MODELS,
    JOIN_TABLES,
    MANY_TO_MANY_PAIRS,
    join_table_name,
)
from swapi_mirror.infrastructure.external.swapi_sync.entity_registry import (
    ENTITY_TYPES,
    RelationKind,
    RelationSpec,
    fill_entity_types,
    get_entity_config,
)


def _relation(entity_type: str, name: str) -> RelationSpec:
    return next(r for r in get_entity_config(entity_type).relations if r.name == name)


def test_fill_order_excludes_images() -> None:
    assert [c.entity_type for c in fill_entity_types()] == [
        "starships",
        "vehicles",
        "planets",
        "species",
        "films",
        "people",
    ]
    assert get_entity_config("images").fill is False


def test_natural_key_is_title_for_films_and_name_otherwise() -> None:
    for config in ENTITY_TYPES:
        expected = "title" if config.entity_type == "films" else "name"
        assert config.natural_key == expected


def test_every_entity_type_and_relation_target_has_a_model() -> None:
    for config in ENTITY_TYPES:
        assert config.entity_type in ENTITY_MODELS
        for relation in config.relations:
            assert relation.target_type in ENTITY_MODELS


def test_join_table_name_is_order_independent() -> None:
    assert join_table_name("films", "people") == "people_films"
    assert join_table_name("people", "films") == "people_films"
    assert join_table_name("vehicles", "films") == "films_vehicles"
    assert join_table_name("starships", "people") == "people_starships"


def test_many_to_many_relations_point_to_declared_join_tables() -> None:
    assert set(JOIN_TABLES) == {join_table_name(a, b) for a, b in MANY_TO_MANY_PAIRS}
    for config in ENTITY_TYPES:
        for relation in config.relations:
            if relation.kind is RelationKind.MANY_TO_MANY:
                assert relation.join_table(config.entity_type) in JOIN_TABLES


def test_both_sides_of_a_relation_share_the_join_table() -> None:
    characters = _relation("films", "characters")
    films = _relation("people", "films")
    assert characters.join_table("films") == films.join_table("people") == "people_films"


def test_fk_relations_declare_their_column() -> None:
    residents = _relation("planets", "residents")
    assert residents.kind is RelationKind.ONE_TO_MANY
    assert residents.target_type == "people"
    assert residents.fk_column == "homeworld_id"

    homeworld = _relation("species", "homeworld")
    assert homeworld.singular
    assert homeworld.fk_column == "homeworld_id"

    images = _relation("starships", "images")
    assert images.kind is RelationKind.ONE_TO_MANY
    assert images.fk_column == "starships_id"


def test_field_transforms_convert_film_fields() -> None:
    transforms = get_entity_config("films").field_transforms
    assert transforms["episode_id"]("4") == 4
    assert transforms["release_date"]("1977-05-25") == date(1977, 5, 25)
    assert transforms["created"]("2014-12-10T14:23:31.880000Z") == datetime(
        2014, 12, 10, 14, 23, 31, 880000, tzinfo=timezone.utc
    )


def test_unknown_type_raises_key_error_and_undeclared_relation_is_absent() -> None:
    with pytest.raises(KeyError):
        get_entity_config("droids")
    assert "pilots" not in get_entity_config("people").relation_names
