from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    FEED_CHANNEL_PREFIX: str = "arthive.inserts"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = "authenticated"

    CORS_ORIGINS: list[str] = ["*"]

    SUGGESTION_LIMIT: int = 5
    MESSAGES_TABLE: str = "messages"
    ROOM_MESSAGES_TABLE: str = "room_messages"
    AVATAR_PLACEHOLDER_URL: str = "https://api.dicebear.com/7.x/identicon/svg?seed={seed}"
    UNKNOWN_USER_NAME: str = "An unknown whisper"

    WS_HEARTBEAT_SECONDS: int = 30

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DEBUG: bool = False

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
