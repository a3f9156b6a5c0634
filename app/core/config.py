from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Used when a student is registered without an explicit installment count
    default_installment_count: int = Field(3, ge=1, le=12, alias="DEFAULT_INSTALLMENT_COUNT")
    create_tables_on_startup: bool = Field(False, alias="CREATE_TABLES_ON_STARTUP")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
