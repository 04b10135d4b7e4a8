from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'mesa_user'
    POSTGRES_PASSWORD: str = 'mesa_pass'
    POSTGRES_DB: str = 'mesa_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None

    # Redis settings
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720

    # Email settings
    EMAIL_SMTP_SERVER: str = 'smtp.gmail.com'
    EMAIL_SMTP_PORT: int = 587
    EMAIL_USE_TLS: bool = True
    EMAIL_USERNAME: str = ''
    EMAIL_PASSWORD: str = ''
    EMAIL_FROM: str = ''
    EMAIL_FROM_NAME: str = 'Mesa360'

    # Datos del emisor copiados en cada factura
    BUSINESS_NAME: str = 'Mi Restaurante'
    BUSINESS_NIT: str = '900000000-0'
    BUSINESS_ADDRESS: str = ''
    BUSINESS_PHONE: str = ''
    BUSINESS_EMAIL: str = ''

    # Cliente por defecto (consumidor final)
    DEFAULT_CUSTOMER_NAME: str = 'CLIENTES VARIOS'
    DEFAULT_CUSTOMER_NIT: str = '222222222222'

    # Facturación y caja
    INVOICE_PREFIX: str = 'F-'
    INVOICE_NUMBER_PADDING: int = 4
    CASH_DESK_HISTORY_LIMIT: int = 200

    # Outbox de notificaciones
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_RETRY_INTERVAL_SECONDS: float = 300.0

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
    def issuer(self) -> dict:
        return {
            "name": self.BUSINESS_NAME,
            "nit": self.BUSINESS_NIT,
            "address": self.BUSINESS_ADDRESS,
            "phone": self.BUSINESS_PHONE,
            "email": self.BUSINESS_EMAIL,
        }

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", "EMAIL_USE_TLS", mode="before")
    @classmethod
    def parse_flag(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

settings = Settings()
