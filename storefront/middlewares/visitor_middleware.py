import re
import secrets
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from storefront.common.constants import visitor_ctx
from storefront.middlewares import logger

DAY_SECONDS = 24 * 60 * 60
# token_urlsafe(18) is 24 url-safe characters
VISITOR_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{24}")


def new_visitor_id() -> str:
    return secrets.token_urlsafe(18)


def valid_visitor_id(value: Optional[str]) -> Optional[str]:
    if value and VISITOR_ID_PATTERN.fullmatch(value):
        return value
    return None


# sf_tab keys the session-scoped tier and dies with the browser session (no max-age);
# sf_device keys the durable tier and survives restarts.
class VisitorMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, tab_cookie: str, device_cookie: str, device_days: int, secure: bool = True):
        super().__init__(app)
        self.tab_cookie = tab_cookie
        self.device_cookie = device_cookie
        self.device_days = device_days
        self.secure = secure

    async def dispatch(self, request: Request, call_next):
        tab_id = valid_visitor_id(request.cookies.get(self.tab_cookie))
        device_id = valid_visitor_id(request.cookies.get(self.device_cookie))
        if device_id is None and self.device_cookie in request.cookies:
            logger.info("visitor.invalid_device_cookie")
        new_tab = not tab_id
        new_device = not device_id

        request.state.tab_id = tab_id or new_visitor_id()
        request.state.device_id = device_id or new_visitor_id()

        if new_device:
            logger.debug("visitor.new_device", extra={"device_id": request.state.device_id})

        token = visitor_ctx.set(request.state.device_id)
        try:
            response = await call_next(request)
        finally:
            visitor_ctx.reset(token)

        if new_tab:
            response.set_cookie(self.tab_cookie, request.state.tab_id, path="/", secure=self.secure,
                                httponly=True, samesite="lax")
        if new_device:
            response.set_cookie(self.device_cookie, request.state.device_id, path="/", secure=self.secure,
                                httponly=True, samesite="lax", max_age=self.device_days * DAY_SECONDS)
        return response
