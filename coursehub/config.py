from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./coursehub.db"
    REDIS_URL: str = "redis://localhost:6379/2"
    SECRET_KEY: str = "dev-secret-coursehub"
    LOG_LEVEL: str = "INFO"

    # redis | memory
    SESSION_BACKEND: str = "redis"
    SESSION_COOKIE: str = "coursehub_session"
    SESSION_TTL_SECONDS: int = 86400  # 1 day
    SESSION_COOKIE_SECURE: bool = False

    # бюджет повторов для второй записи саги и для компенсации
    LINK_WRITE_ATTEMPTS: int = 3
    LINK_RETRY_BACKOFF_SECONDS: float = 0.05
    CONFLICT_ATTEMPTS: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
