from typing import AsyncIterator
from fastapi import Depends, Request, Response
from storefront.auth.models import UserSession
from storefront.common.custom_exceptions import NotAuthenticated
from storefront.context import StorefrontContext
from storefront.remote.client import StorefrontAPI
from storefront.storage.cookies import ResponseCookieJar


async def get_context(request: Request, response: Response) -> AsyncIterator[StorefrontContext]:
    state = request.app.state
    tab_id = request.state.tab_id
    device_id = request.state.device_id

    session_tier = await state.session_backend.open(tab_id)
    durable_tier = await state.durable_backend.open(device_id)
    ctx = StorefrontContext(
        api=StorefrontAPI(state.http_client, cache=state.query_cache),
        session_tier=session_tier,
        durable_tier=durable_tier,
        cookies=ResponseCookieJar(request.cookies, response),
        event_bus=state.auth_events.channel(device_id),
    )
    ctx.open()
    try:
        await ctx.sync_cart()
        yield ctx
    finally:
        ctx.close()
        state.auth_events.release(device_id)
        await state.session_backend.flush(session_tier)
        await state.durable_backend.flush(durable_tier)


def require_user(ctx: StorefrontContext = Depends(get_context)) -> UserSession:
    if ctx.user is None:
        raise NotAuthenticated()
    return ctx.user
