from contextlib import asynccontextmanager
from typing import Optional
import httpx
from fastapi import FastAPI
from storefront.api import cur_version
from storefront.api.routers import public_routers
from storefront.auth.broadcast import AuthEventHub
from storefront.common.custom_exceptions import register_all_exceptions
from storefront.common.logging_setup import get_logger, setup_logging, shutdown_logging
from storefront.config.settings import config_settings
from storefront.middlewares.request_id_middleware import RequestIdMiddleware
from storefront.middlewares.visitor_middleware import VisitorMiddleware
from storefront.remote.client import make_http_client
from storefront.remote.query_cache import QueryCache
from storefront.storage._redis import make_redis_client
from storefront.storage.tiers import MemoryStorageBackend, RedisStorageBackend

logger = get_logger("bloomcart.app")


def _memory_backend() -> MemoryStorageBackend:
    return MemoryStorageBackend(idle_seconds=config_settings.MEMORY_TIER_IDLE_SECONDS,
                                max_namespaces=config_settings.MEMORY_TIER_MAX_NAMESPACES)


def create_app(remote_transport: Optional[httpx.AsyncBaseTransport] = None):

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        setup_logging()

        app.state.http_client = make_http_client(remote_transport)
        app.state.query_cache = QueryCache(ttl_seconds=config_settings.QUERY_CACHE_TTL_SECONDS,
                                         max_entries=config_settings.QUERY_CACHE_MAX_ENTRIES)
        app.state.session_backend = _memory_backend()
        if config_settings.REDIS_URL:
            app.state.durable_backend = RedisStorageBackend(make_redis_client(config_settings.REDIS_URL),
                                                            ttl_seconds=config_settings.DURABLE_TTL_SECONDS)
            app.state.redis_enabled = True
        else:
            app.state.durable_backend = _memory_backend()
            app.state.redis_enabled = False
        app.state.auth_events = AuthEventHub()

        logger.info("app.startup", extra={"api_base_url": config_settings.API_BASE_URL,
                                          "redis_enabled": app.state.redis_enabled})
        try:
            yield
        finally:
            # new requests are no longer accepted at this point
            await app.state.http_client.aclose()
            await app.state.durable_backend.close()
            await app.state.session_backend.close()
            app.state.query_cache.clear()
            logger.info("app.shutdown")
            shutdown_logging()

    app = FastAPI(
        title="Bloomcart Storefront",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    app.add_middleware(VisitorMiddleware,
                       tab_cookie=config_settings.TAB_COOKIE_NAME,
                       device_cookie=config_settings.DEVICE_COOKIE_NAME,
                       device_days=config_settings.VISITOR_COOKIE_DAYS,
                       secure=config_settings.SECURE_COOKIES)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
