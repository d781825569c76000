from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from swapi_mirror.core.config import Settings
from swapi_mirror.infrastructure.database.models import (
    JOIN_TABLES,
    ENTITY_MODELS,
    FilmModel,
    PeopleModel,
    PlanetModel,
    StarshipModel,
)
from swapi_mirror.infrastructure.external.swapi_sync.entity_registry import (
    EntityTypeConfig,
    RelationSpec,
)
from swapi_mirror.infrastructure.external.swapi_sync.sync_service import (
    PipelineState,
    SwapiToDatabaseSync,
    SyncConfig,
)
from swapi_mirror.shared.exceptions.sync import (
    FetchError,
    SyncConfigError,
    SyncPhaseError,
    UnsupportedRelationError,
)

from swapi_fakes import LOCAL_BASE, REMOTE_BASE


def _service(session_factory, fake_swapi, migrator=None, **config_overrides) -> SwapiToDatabaseSync:
    config = SyncConfig(
        remote_base_url=REMOTE_BASE,
        local_base_url=LOCAL_BASE,
        database_url="sqlite+aiosqlite:///:memory:",
        **config_overrides,
    )
    return SwapiToDatabaseSync(
        config=config,
        session_factory=session_factory,
        client=fake_swapi.client(),
        migrator=migrator,
    )


async def _count(session_factory, model_or_table) -> int:
    async with session_factory() as db:
        result = await db.execute(select(func.count()).select_from(model_or_table))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_end_to_end_luke_gets_local_url_homeworld_and_films(session_factory, fake_swapi) -> None:
    migrator = AsyncMock()
    service = _service(session_factory, fake_swapi, migrator=migrator)

    result = await service.run_once()

    migrator.assert_awaited_once()
    assert result.state is PipelineState.RELATION_PHASE_COMMITTED
    assert result.created_rows == 9
    assert result.unresolved_references == 1  # species.homeworld -> planets/9

    async with session_factory() as db:
        luke = (await db.execute(select(PeopleModel).where(PeopleModel.name == "Luke Skywalker"))).scalar_one()
        tatooine = (await db.execute(select(PlanetModel).where(PlanetModel.name == "Tatooine"))).scalar_one()
        hope = (await db.execute(select(FilmModel))).scalar_one()
        links = (await db.execute(select(JOIN_TABLES["people_films"]))).all()

    assert luke.url == f"{LOCAL_BASE}/people/{luke.id}/"
    assert luke.homeworld_id == tatooine.id
    assert hope.episode_id == 4
    assert {tuple(r) for r in links} == {(luke.id, hope.id), (2, hope.id)}


@pytest.mark.asyncio
async def test_state_transitions_on_success(session_factory, fake_swapi) -> None:
    service = _service(session_factory, fake_swapi, migrator=AsyncMock())

    await service.run_once()

    assert service.state_history == [
        PipelineState.IDLE,
        PipelineState.MIGRATIONS_APPLIED,
        PipelineState.BASE_PHASE_RUNNING,
        PipelineState.BASE_PHASE_COMMITTED,
        PipelineState.RELATION_PHASE_RUNNING,
        PipelineState.RELATION_PHASE_COMMITTED,
    ]


@pytest.mark.asyncio
async def test_second_run_skips_existing_rows_and_keeps_relations(session_factory, fake_swapi) -> None:
    await _service(session_factory, fake_swapi).run_once()

    result = await _service(session_factory, fake_swapi).run_once()

    assert result.created_rows == 0
    assert result.skipped_rows == 9
    assert result.join_rows == 0
    assert await _count(session_factory, PeopleModel) == 2
    assert await _count(session_factory, JOIN_TABLES["people_films"]) == 2


@pytest.mark.asyncio
async def test_base_phase_failure_rolls_back_every_row(session_factory, fake_swapi) -> None:
    fake_swapi.fail_on("people", status_code=500)
    service = _service(session_factory, fake_swapi)

    with pytest.raises(SyncPhaseError) as exc_info:
        await service.run_once()

    assert exc_info.value.phase == "base"
    assert isinstance(exc_info.value.__cause__, FetchError)
    assert service.state is PipelineState.BASE_PHASE_ROLLED_BACK
    assert PipelineState.RELATION_PHASE_RUNNING not in service.state_history
    for model in (StarshipModel, PlanetModel, FilmModel, PeopleModel):
        assert await _count(session_factory, model) == 0


@pytest.mark.asyncio
async def test_relation_phase_failure_keeps_base_rows(session_factory, fake_swapi) -> None:
    # la primera descarga de films (fase base) funciona; la segunda falla
    fake_swapi.fail_on("films", visit=2, status_code=502)
    service = _service(session_factory, fake_swapi)

    with pytest.raises(SyncPhaseError) as exc_info:
        await service.run_once()

    assert exc_info.value.phase == "relations"
    assert service.state is PipelineState.RELATION_PHASE_ROLLED_BACK
    assert await _count(session_factory, PeopleModel) == 2
    assert await _count(session_factory, FilmModel) == 1
    # las relaciones de starships/vehicles/planets se revierten junto con la fase
    assert await _count(session_factory, JOIN_TABLES["films_starships"]) == 0
    async with session_factory() as db:
        homeworlds = (await db.execute(select(PeopleModel.homeworld_id))).scalars().all()
    assert homeworlds == [None, None]


@pytest.mark.asyncio
async def test_migration_failure_stops_before_touching_the_database(fake_swapi) -> None:
    session_factory = MagicMock()
    migrator = AsyncMock(side_effect=RuntimeError("alembic boom"))
    service = _service(session_factory, fake_swapi, migrator=migrator)

    with pytest.raises(SyncPhaseError) as exc_info:
        await service.run_once()

    assert exc_info.value.phase == "migrations"
    assert service.state is PipelineState.MIGRATIONS_FAILED
    session_factory.assert_not_called()
    assert fake_swapi.requests == []


@pytest.mark.asyncio
async def test_run_migrations_flag_skips_migrator(session_factory, fake_swapi) -> None:
    migrator = AsyncMock()
    service = _service(session_factory, fake_swapi, migrator=migrator, run_migrations=False)

    await service.run_once()

    migrator.assert_not_awaited()
    assert service.state_history[1] is PipelineState.MIGRATIONS_APPLIED


@pytest.mark.asyncio
async def test_cache_raw_records_fetches_each_listing_once(session_factory, fake_swapi) -> None:
    service = _service(session_factory, fake_swapi, cache_raw_records=True)

    await service.run_once()

    assert set(fake_swapi.first_page_visits.values()) == {1}
    assert await _count(session_factory, JOIN_TABLES["people_films"]) == 2


@pytest.mark.asyncio
async def test_without_cache_each_listing_is_fetched_per_phase(session_factory, fake_swapi) -> None:
    await _service(session_factory, fake_swapi).run_once()

    assert set(fake_swapi.first_page_visits.values()) == {2}


@pytest.mark.asyncio
async def test_assign_strategy_end_to_end(session_factory, fake_swapi) -> None:
    result = await _service(session_factory, fake_swapi, id_strategy="assign").run_once()

    assert result.reconciled_rows == 0
    async with session_factory() as db:
        starships = (await db.execute(select(StarshipModel).order_by(StarshipModel.id))).scalars().all()
    assert [s.url for s in starships] == [f"{LOCAL_BASE}/starships/1/", f"{LOCAL_BASE}/starships/2/"]


def test_unsupported_relation_fails_at_construction() -> None:
    configs = (
        EntityTypeConfig("starships", relations=(RelationSpec("droids", "droids"),)),
    )
    with pytest.raises(UnsupportedRelationError):
        SwapiToDatabaseSync(
            config=SyncConfig(),
            session_factory=MagicMock(),
            client=MagicMock(),
            entity_configs=configs,
            models=ENTITY_MODELS,
        )


def test_sync_config_from_settings_applies_overrides() -> None:
    settings = Settings(
        _env_file=None,
        DATABASE_URL="postgresql+asyncpg://u:p@db:5432/swapi",
        HOST="swapi.local",
        PORT=9000,
        LOCAL_BASE_URL="",
        SYNC_ID_STRATEGY="predict",
    )

    config = SyncConfig.from_settings(settings, id_strategy="assign", cache_raw_records=None)

    assert config.database_url == "postgresql+asyncpg://u:p@db:5432/swapi"
    assert config.local_base_url == "http://swapi.local:9000/api"
    assert config.id_strategy == "assign"
    assert config.cache_raw_records is settings.SYNC_CACHE_RAW_RECORDS


def test_sync_config_rejects_unknown_strategy() -> None:
    with pytest.raises(SyncConfigError):
        SyncConfig(id_strategy="guess")
