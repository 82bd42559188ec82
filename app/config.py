from pydantic import BaseModel
import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


class Settings(BaseModel):
    APP_NAME: str = "InnerGlow Pins API"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: list[str] = ["*"]

    # Auth (tokens are issued by the auth service, we only verify them)
    SECRET_KEY: str = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY", "secret")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 15

    # Mongo
    MONGO_URI: str | None = os.getenv("MONGO_URI")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "innerglow")

    # Unsplash
    UNSPLASH_ACCESS_KEY: str | None = os.getenv("UNSPLASH_ACCESS_KEY")
    UNSPLASH_API_URL: str = os.getenv("UNSPLASH_API_URL", "https://api.unsplash.com")
    UNSPLASH_TIMEOUT_SECONDS: float = float(os.getenv("UNSPLASH_TIMEOUT_SECONDS", "10"))

    # Redis cache for provider lookups (disabled when REDIS_HOST is unset)
    REDIS_HOST: str | None = os.getenv("REDIS_HOST")
    REDIS_PORT: int = _int_env("REDIS_PORT", 6379)
    REDIS_PASSWORD: str | None = os.getenv("REDIS_PASSWORD")
    EXTERNAL_CACHE_TTL: int = _int_env("EXTERNAL_CACHE_TTL", 900)

    # Feeds
    FEED_LOCAL_LIMIT: int = _int_env("FEED_LOCAL_LIMIT", 20)
    FEED_EXTERNAL_COUNT: int = _int_env("FEED_EXTERNAL_COUNT", 20)
    FEED_DEFAULT_QUERY: str = os.getenv("FEED_DEFAULT_QUERY", "wellness")
    SEARCH_PAGE_SIZE: int = _int_env("SEARCH_PAGE_SIZE", 20)
    LOCAL_SEARCH_LIMIT: int = _int_env("LOCAL_SEARCH_LIMIT", 50)


settings = Settings()
