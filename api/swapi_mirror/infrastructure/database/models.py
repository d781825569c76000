"""
Modelos de base de datos (ORM) del catalogo SWAPI.

Una tabla por tipo de entidad (columnas escalares + id + url + timestamps)
y una tabla de union por cada par de tipos con relacion muchos-a-muchos.
"""
from sqlalchemy import Column, String, Integer, DateTime, Date, Text, ForeignKey, Table

from swapi_mirror.infrastructure.database.session import Base
from swapi_mirror.shared.utils.datetime_utils import utc_now


# Orden que define el nombre de las tablas de union: "{primero}_{segundo}".
JOIN_TABLE_PRECEDENCE = ("people", "films", "planets", "species", "starships", "vehicles")

# Pares de tipos unidos por una tabla de union.
MANY_TO_MANY_PAIRS = (
    ("people", "films"),
    ("people", "species"),
    ("people", "starships"),
    ("people", "vehicles"),
    ("films", "planets"),
    ("films", "species"),
    ("films", "starships"),
    ("films", "vehicles"),
)


def relation_column(entity_type: str) -> str:
    """Nombre de la columna FK que apunta a un tipo de entidad (people -> people_id)."""
    return f"{entity_type}_id"


def join_table_name(first_type: str, second_type: str) -> str:
    """
    Nombre determinista de la tabla de union entre dos tipos de entidad.

    El resultado no depende del orden de los argumentos:
    join_table_name("films", "people") == join_table_name("people", "films") == "people_films"
    """
    ordered = sorted(
        (first_type, second_type),
        key=JOIN_TABLE_PRECEDENCE.index
    )
    return f"{ordered[0]}_{ordered[1]}"


class PlanetModel(Base):
    """Modelo de base de datos para planetas."""

    __tablename__ = "planets"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    climate = Column(String(255), nullable=True)
    diameter = Column(String(255), nullable=True)
    rotation_period = Column(String(255), nullable=True)
    orbital_period = Column(String(255), nullable=True)
    gravity = Column(String(255), nullable=True)
    population = Column(String(255), nullable=True)
    terrain = Column(String(255), nullable=True)
    surface_water = Column(String(255), nullable=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Planet(id={self.id}, name={self.name})>"


class PeopleModel(Base):
    """Modelo de base de datos para personajes."""

    __tablename__ = "people"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    height = Column(String(255), nullable=True)
    mass = Column(String(255), nullable=True)
    hair_color = Column(String(255), nullable=True)
    skin_color = Column(String(255), nullable=True)
    eye_color = Column(String(255), nullable=True)
    birth_year = Column(String(255), nullable=True)
    gender = Column(String(255), nullable=True)
    homeworld_id = Column(Integer, ForeignKey("planets.id", ondelete="SET NULL"), nullable=True, index=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<People(id={self.id}, name={self.name})>"


class FilmModel(Base):
    """Modelo de base de datos para peliculas."""

    __tablename__ = "films"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    episode_id = Column(Integer, nullable=True)
    opening_crawl = Column(Text, nullable=True)
    director = Column(String(255), nullable=True)
    producer = Column(String(255), nullable=True)
    release_date = Column(Date, nullable=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Film(id={self.id}, title={self.title})>"


class SpeciesModel(Base):
    """Modelo de base de datos para especies."""

    __tablename__ = "species"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    classification = Column(String(255), nullable=True)
    designation = Column(String(255), nullable=True)
    average_height = Column(String(255), nullable=True)
    average_lifespan = Column(String(255), nullable=True)
    eye_colors = Column(String(255), nullable=True)
    hair_colors = Column(String(255), nullable=True)
    skin_colors = Column(String(255), nullable=True)
    language = Column(String(255), nullable=True)
    homeworld_id = Column(Integer, ForeignKey("planets.id", ondelete="SET NULL"), nullable=True, index=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Species(id={self.id}, name={self.name})>"


class StarshipModel(Base):
    """Modelo de base de datos para naves estelares."""

    __tablename__ = "starships"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    model = Column(String(255), nullable=True)
    starship_class = Column(String(255), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    cost_in_credits = Column(String(255), nullable=True)
    length = Column(String(255), nullable=True)
    crew = Column(String(255), nullable=True)
    passengers = Column(String(255), nullable=True)
    max_atmosphering_speed = Column(String(255), nullable=True)
    hyperdrive_rating = Column(String(255), nullable=True)
    MGLT = Column(String(255), nullable=True)
    cargo_capacity = Column(String(255), nullable=True)
    consumables = Column(String(255), nullable=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Starship(id={self.id}, name={self.name})>"


class VehicleModel(Base):
    """Modelo de base de datos para vehiculos."""

    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    model = Column(String(255), nullable=True)
    vehicle_class = Column(String(255), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    length = Column(String(255), nullable=True)
    cost_in_credits = Column(String(255), nullable=True)
    crew = Column(String(255), nullable=True)
    passengers = Column(String(255), nullable=True)
    max_atmosphering_speed = Column(String(255), nullable=True)
    cargo_capacity = Column(String(255), nullable=True)
    consumables = Column(String(255), nullable=True)
    created = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    edited = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, name={self.name})>"


class ImageModel(Base):
    """
    Modelo de base de datos para imagenes.

    No existe en la API remota: se crea por el API local y cada imagen
    apunta (FK) a como maximo una entidad de cada tipo.
    """

    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    people_id = Column(Integer, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    films_id = Column(Integer, ForeignKey("films.id", ondelete="SET NULL"), nullable=True)
    planets_id = Column(Integer, ForeignKey("planets.id", ondelete="SET NULL"), nullable=True)
    species_id = Column(Integer, ForeignKey("species.id", ondelete="SET NULL"), nullable=True)
    starships_id = Column(Integer, ForeignKey("starships.id", ondelete="SET NULL"), nullable=True)
    vehicles_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)

    def __repr__(self):
        return f"<Image(id={self.id}, name={self.name})>"


def _build_join_table(first_type: str, second_type: str) -> Table:
    first_col = relation_column(first_type)
    second_col = relation_column(second_type)
    return Table(
        join_table_name(first_type, second_type),
        Base.metadata,
        Column(first_col, Integer, ForeignKey(f"{first_type}.id", ondelete="CASCADE"), primary_key=True, index=True),
        Column(second_col, Integer, ForeignKey(f"{second_type}.id", ondelete="CASCADE"), primary_key=True, index=True),
    )


JOIN_TABLES = {
    join_table_name(first, second): _build_join_table(first, second)
    for first, second in MANY_TO_MANY_PAIRS
}

ENTITY_MODELS = {
    "people": PeopleModel,
    "planets": PlanetModel,
    "films": FilmModel,
    "species": SpeciesModel,
    "starships": StarshipModel,
    "vehicles": VehicleModel,
    "images": ImageModel,
}
