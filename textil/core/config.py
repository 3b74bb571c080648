from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
from decimal import Decimal
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'textil_user'
    POSTGRES_PASSWORD: str = 'textil_pass'
    POSTGRES_DB: str = 'textil_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    # Full SQLAlchemy URL, takes precedence over the POSTGRES_* values (e.g. sqlite:// in tests)
    DATABASE_URL: Optional[str] = None

    # JWT settings (tokens are issued by the session service)
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Frontend origins
    CORS_ORIGINS: List[str] = ["*"]

    # Invoicing rules
    DEFAULT_TAX_RATE: Decimal = Decimal('21.00')
    SPECIAL_CLIENT_NAME: str = 'AUSTRAL SPORT S.A.'
    OVERDUE_AFTER_DAYS: int = 30
    PAYMENT_EPSILON: Decimal = Decimal('0.001')

    # Roles allowed to override entry status and to work with documents
    STATUS_EDIT_ROLES: List[str] = ["admin"]
    INVOICING_ROLES: List[str] = ["admin"]

    SIZES: List[str] = [
        '2', '4', '6', '8', '10', '12', '14',
        '2XS', 'XS', 'S', 'M', 'L', 'XL', '2XL', '3XL', '4XL',
        '5XL', '6XL', '7XL', '8XL', '9XL', '10XL',
    ]

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
