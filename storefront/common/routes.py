from fastapi import APIRouter, Request
from storefront.api import cur_version

home_router = APIRouter()


@home_router.get("/health")
async def health_check(request: Request):
    durable = "redis" if getattr(request.app.state, "redis_enabled", False) else "memory"
    return {"status": "healthy", "version": cur_version, "durable_tier": durable}
