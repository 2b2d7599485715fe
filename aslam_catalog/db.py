from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    database_url: str = Field(alias="DATABASE_URL")

    auth_secret: str = Field(alias="AUTH_SECRET")
    auth_algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")
    admin_session_expire_minutes: int = Field(default=480, alias="ADMIN_SESSION_EXPIRE_MINUTES")
    media_upload_timeout_seconds: float = Field(default=30.0, alias="MEDIA_UPLOAD_TIMEOUT_SECONDS")

    # .env opcional; chaves sem campo sao ignoradas
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("auth_secret")
    @classmethod
    def validate_auth_secret(cls, value: str) -> str:
        if not value or value == "change-me" or len(value) < 32:
            raise ValueError("AUTH_SECRET must be set and at least 32 chars long")
        return value

    @field_validator("media_upload_timeout_seconds")
    @classmethod
    def validate_media_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("MEDIA_UPLOAD_TIMEOUT_SECONDS must be positive")
        return value


settings = Settings()

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
