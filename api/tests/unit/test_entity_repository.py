from __future__ import annotations

import pytest
from sqlalchemy import func, select

from swapi_mirror.infrastructure.database.models import (
    JOIN_TABLES,
    FilmModel,
    PeopleModel,
    PlanetModel,
)
from swapi_mirror.infrastructure.external.swapi_sync.entity_registry import (
    ENTITY_TYPES,
    EntityTypeConfig,
    RelationSpec,
)
from swapi_mirror.infrastructure.repositories.entity_repository import (
    EntityRepository,
    RepositoryRegistry,
)
from swapi_mirror.shared.exceptions.sync import StoreError, UnsupportedRelationError

from swapi_fakes import LOCAL_BASE


async def _count(db, table) -> int:
    result = await db.execute(select(func.count()).select_from(table))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_predict_next_id_on_empty_table_is_one(db_session) -> None:
    repo = EntityRepository(db_session, PlanetModel)
    assert await repo.predict_next_id() == 1


@pytest.mark.asyncio
async def test_save_assigns_id_and_prediction_follows_max(db_session) -> None:
    repo = EntityRepository(db_session, PlanetModel)

    row = await repo.save({"name": "Tatooine", "url": f"{LOCAL_BASE}/planets/1/"})

    assert row.id == 1
    assert row.created is not None
    assert await repo.predict_next_id() == 2


@pytest.mark.asyncio
async def test_find_by_natural_key_and_reference_url(db_session) -> None:
    films = EntityRepository(db_session, FilmModel)
    saved = await films.save({"title": "A New Hope", "episode_id": 4, "url": f"{LOCAL_BASE}/films/1/"})

    assert (await films.find_by_natural_key("A New Hope", "title")).id == saved.id
    assert await films.find_by_natural_key("The Phantom Menace", "title") is None
    assert (await films.find_by_reference_url(f"{LOCAL_BASE}/films/1/")).id == saved.id
    assert await films.find_by_reference_url(f"{LOCAL_BASE}/films/2/") is None


@pytest.mark.asyncio
async def test_find_many_by_reference_urls_omits_missing(db_session) -> None:
    repo = EntityRepository(db_session, PeopleModel)
    await repo.save({"name": "Luke Skywalker", "url": f"{LOCAL_BASE}/people/1/"})
    await repo.save({"name": "Leia Organa", "url": f"{LOCAL_BASE}/people/2/"})

    rows = await repo.find_many_by_reference_urls(
        [f"{LOCAL_BASE}/people/2/", f"{LOCAL_BASE}/people/99/", f"{LOCAL_BASE}/people/1/"]
    )

    assert sorted(r.name for r in rows) == ["Leia Organa", "Luke Skywalker"]
    assert await repo.find_many_by_reference_urls([]) == []


@pytest.mark.asyncio
async def test_update_reference_url_rewrites_stored_url(db_session) -> None:
    repo = EntityRepository(db_session, PlanetModel)
    row = await repo.save({"name": "Hoth", "url": f"{LOCAL_BASE}/planets/99/"})

    await repo.update_reference_url(row, f"{LOCAL_BASE}/planets/{row.id}/")

    found = await repo.find_by_reference_url(f"{LOCAL_BASE}/planets/{row.id}/")
    assert found is not None and found.id == row.id


@pytest.mark.asyncio
async def test_set_foreign_key_many_and_single(db_session) -> None:
    planets = EntityRepository(db_session, PlanetModel)
    people = EntityRepository(db_session, PeopleModel)
    tatooine = await planets.save({"name": "Tatooine", "url": f"{LOCAL_BASE}/planets/1/"})
    luke = await people.save({"name": "Luke Skywalker", "url": f"{LOCAL_BASE}/people/1/"})
    owen = await people.save({"name": "Owen Lars", "url": f"{LOCAL_BASE}/people/2/"})

    updated = await people.set_foreign_key_many([luke.id, owen.id, luke.id], "homeworld_id", tatooine.id)
    assert updated == 2
    assert await people.set_foreign_key_many([], "homeworld_id", tatooine.id) == 0

    await people.set_foreign_key(owen.id, "homeworld_id", None)

    result = await db_session.execute(select(PeopleModel.name, PeopleModel.homeworld_id).order_by(PeopleModel.id))
    assert result.all() == [("Luke Skywalker", tatooine.id), ("Owen Lars", None)]


@pytest.mark.asyncio
async def test_bulk_insert_relations_ignores_duplicates(db_session) -> None:
    people = EntityRepository(db_session, PeopleModel)
    films = EntityRepository(db_session, FilmModel)
    luke = await people.save({"name": "Luke Skywalker", "url": f"{LOCAL_BASE}/people/1/"})
    hope = await films.save({"title": "A New Hope", "url": f"{LOCAL_BASE}/films/1/"})
    empire = await films.save({"title": "The Empire Strikes Back", "url": f"{LOCAL_BASE}/films/2/"})

    pairs = [(luke.id, hope.id), (luke.id, empire.id), (luke.id, hope.id)]
    assert await people.bulk_insert_relations("people_films", "people_id", "films_id", pairs) == 2
    # segunda vez: nada nuevo que insertar
    assert await people.bulk_insert_relations("people_films", "people_id", "films_id", pairs) == 0
    # desde el otro lado de la relacion (films.characters)
    assert await films.bulk_insert_relations("people_films", "films_id", "people_id", [(hope.id, luke.id)]) == 0

    assert await _count(db_session, JOIN_TABLES["people_films"]) == 2
    assert await people.bulk_insert_relations("people_films", "people_id", "films_id", []) == 0


@pytest.mark.asyncio
async def test_bulk_insert_relations_unknown_join_table_raises_store_error(db_session) -> None:
    repo = EntityRepository(db_session, PeopleModel)
    with pytest.raises(StoreError) as exc_info:
        await repo.bulk_insert_relations("people_droids", "people_id", "droids_id", [(1, 1)])
    assert exc_info.value.table == "people_droids"


@pytest.mark.asyncio
async def test_save_failure_is_wrapped_in_store_error(db_session) -> None:
    repo = EntityRepository(db_session, PlanetModel)
    with pytest.raises(StoreError) as exc_info:
        # name es NOT NULL
        await repo.save({"url": f"{LOCAL_BASE}/planets/1/"})
    assert exc_info.value.operation == "save"
    assert exc_info.value.table == "planets"
    await db_session.rollback()


@pytest.mark.asyncio
async def test_repository_registry_maps_types_and_relations(db_session) -> None:
    registry = RepositoryRegistry(db_session, ENTITY_TYPES)

    assert registry.for_type("people").model is PeopleModel
    assert registry.for_relation("films", "characters").entity_type == "people"
    assert registry.for_relation("people", "homeworld").entity_type == "planets"
    with pytest.raises(UnsupportedRelationError):
        registry.for_relation("people", "pilots")


@pytest.mark.asyncio
async def test_repository_registry_rejects_relation_to_unknown_type(db_session) -> None:
    configs = (
        EntityTypeConfig("people", relations=(RelationSpec("droids", "droids"),)),
    )
    with pytest.raises(UnsupportedRelationError) as exc_info:
        RepositoryRegistry(db_session, configs)
    assert exc_info.value.details["target_type"] == "droids"
