"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from swapi_mirror.infrastructure.database.models import (
    ENTITY_MODELS,
    JOIN_TABLES,
    FilmModel,
    ImageModel,
    PeopleModel,
    PlanetModel,
    SpeciesModel,
    StarshipModel,
    VehicleModel,
)
