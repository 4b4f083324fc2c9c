from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    # remote shop api
    API_BASE_URL: str = "https://flowerschoolbengaluru.com"
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    CONNECT_TIMEOUT_SECONDS: float = 5.0
    QUERY_CACHE_TTL_SECONDS: Optional[int] = 300
    QUERY_CACHE_MAX_ENTRIES: Optional[int] = 1024

    # auth session cookies
    AUTH_COOKIE_DAYS: int = 7
    AUTH_COOKIE_HTTPONLY: bool = False
    SECURE_COOKIES: bool = True
    CLEAR_DURABLE_ON_SIGNOUT: bool = False

    # visitor identity cookies (keys of the storage tiers)
    VISITOR_COOKIE_DAYS: int = 365
    TAB_COOKIE_NAME: str = "sf_tab"
    DEVICE_COOKIE_NAME: str = "sf_device"

    # durable tier lives in redis when configured, in process memory otherwise
    REDIS_URL: Optional[str] = None
    DURABLE_TTL_SECONDS: Optional[int] = None

    # in-process tiers forget idle visitors and keep at most this many
    MEMORY_TIER_IDLE_SECONDS: Optional[int] = 6 * 60 * 60
    MEMORY_TIER_MAX_NAMESPACES: Optional[int] = 10_000

    SAME_DAY_DISTANCE_KM: float = 10

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

config_settings = Settings()
