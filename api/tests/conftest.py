"""
Configuración de fixtures para pytest.
"""
import copy
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from swapi_mirror.infrastructure.database.session import Base, create_session_factory, init_db

# Registra todos los modelos en Base.metadata
import swapi_mirror.infrastructure.database  # noqa: F401

from swapi_fakes import FakeSwapi, build_swapi_catalog


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def swapi_catalog() -> dict[str, list[dict]]:
    return copy.deepcopy(build_swapi_catalog())


@pytest_asyncio.fixture
async def fake_swapi(swapi_catalog) -> AsyncGenerator[FakeSwapi, None]:
    fake = FakeSwapi(swapi_catalog)
    yield fake
    await fake.aclose()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Engine en memoria compartido por todas las sesiones del test
    (StaticPool: una unica conexion).
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(test_engine)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sesion de base de datos para tests de repositorio."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def log_messages():
    """Captura los mensajes de loguru emitidos durante el test."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, format="{message}", level="DEBUG")
    yield messages
    logger.remove(handler_id)


