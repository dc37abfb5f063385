from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Box Office API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "boxoffice"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""
    CREATE_DATABASE: bool = True

    # Payments
    STRIPE_SECRET_KEY: str = ""
    PAYMENT_CURRENCY: str = "eur"

    # Inventory
    INVENTORY_LOCK_TIMEOUT_SECONDS: float = 10.0
    COMMIT_MAX_ATTEMPTS: int = 3
    # Raise instead of clamping when available_seats would leave [0, total_seats]
    STRICT_INVENTORY_CHECKS: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
