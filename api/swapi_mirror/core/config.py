"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

Solo el punto de entrada (CLI) lee estas variables; el pipeline recibe
un SyncConfig explicito construido a partir de ellas.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    - DATABASE_URL se puede especificar completa o por componentes
    - LOCAL_BASE_URL se puede especificar completa o se deriva de HOST/PORT
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="SWAPI Mirror")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)

    # Host/puerto publicos del API local (forman las URLs de referencia locales)
    HOST: str = Field(default="localhost")
    PORT: int = Field(default=8000)

    # Base de datos - Componentes separados (recomendado para flexibilidad)
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="swapi_user")
    DATABASE_PASSWORD: str = Field(default="swapi_pass")
    DATABASE_NAME: str = Field(default="swapi_db")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # API remota
    SWAPI_BASE_URL: str = Field(default="https://swapi.dev/api")
    SWAPI_TIMEOUT_S: float = Field(default=30.0)

    # URL base local (override de HOST/PORT si se proporciona)
    LOCAL_BASE_URL: str = Field(default="")

    # Pipeline de importacion
    # "predict": predice el siguiente ID y reconcilia la URL si difiere.
    # "assign": guarda primero y construye la URL con el ID real.
    SYNC_ID_STRATEGY: str = Field(default="predict")
    SYNC_CACHE_RAW_RECORDS: bool = Field(default=False)
    SYNC_RUN_MIGRATIONS: bool = Field(default=True)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/swapi_sync.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def effective_local_base_url(self) -> str:
        """URL base con la que se construyen las referencias locales."""
        if self.LOCAL_BASE_URL:
            return self.LOCAL_BASE_URL.rstrip("/")
        return f"http://{self.HOST}:{self.PORT}/api"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


# Instancia global de configuración
settings = Settings()
