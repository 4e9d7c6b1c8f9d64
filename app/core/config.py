from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'agrupacion_user'
    POSTGRES_PASSWORD: str = 'agrupacion_pass'
    POSTGRES_DB: str = 'agrupacion_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Sobrescribe la URL armada con POSTGRES_*

    # Redis settings (broker de Celery)
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Identity provider (tokens emitidos por el proveedor externo)
    IDENTITY_JWT_SECRET: str = 'your-identity-provider-secret-change-in-production'
    IDENTITY_JWT_ALGORITHM: str = 'HS256'
    IDENTITY_JWT_AUDIENCE: Optional[str] = None
    IDENTITY_JWT_ISSUER: Optional[str] = None

    # Zona horaria para fechas y horas locales
    TIMEZONE: str = 'America/Argentina/Buenos_Aires'

    # Referencias de tesorería usadas por los asientos automáticos
    DEFAULT_CASH_ACCOUNT_ID: int = 1
    OPENING_BALANCE_CONCEPT_ID: int = 6
    DUES_PAYMENT_CONCEPT_ID: int = 3
    TRANSFER_OUT_CONCEPT_ID: int = 4
    TRANSFER_IN_CONCEPT_ID: int = 5
    CASH_ACCOUNT_TYPE: str = 'Efectivo'

    # CORS
    CORS_ORIGINS: str = 'http://localhost:3000'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

settings = Settings()
