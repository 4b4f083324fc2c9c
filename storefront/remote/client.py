from decimal import Decimal
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, List, Optional
import httpx
from storefront.cart.models import Product
from storefront.common.constants import request_id_ctx
from storefront.common.custom_exceptions import TransportError
from storefront.config.settings import config_settings
from storefront.delivery.models import DeliveryOption
from storefront.orders.models import Order
from storefront.remote import logger
from storefront.remote.constants import (AUTH_COOKIE_NAME, AUTH_USER_PATH, CART_PATH, COUPON_VALIDATE_PATH,
                                         DELIVERY_OPTIONS_PATH, NETWORK_ERROR_MESSAGE, ORDERS_PATH,
                                         PLACE_ORDER_PATH, PRODUCTS_PATH, SIGNIN_PATH, SIGNOUT_PATH,
                                         SIGNUP_PATH, TIMEOUT_ERROR_MESSAGE, USER_ORDERS_PATH)
from storefront.remote.query_cache import QueryCache
from storefront.storage.utils import fingerprint


def make_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    timeout = httpx.Timeout(config_settings.REQUEST_TIMEOUT_SECONDS,
                            connect=config_settings.CONNECT_TIMEOUT_SECONDS)
    # one client serves every visitor, so it must never keep the shop's cookies
    no_cookies = CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
    return httpx.AsyncClient(base_url=config_settings.API_BASE_URL, timeout=timeout, cookies=no_cookies,
                             transport=transport, headers={"Accept": "application/json"})


def error_message_from(resp: httpx.Response) -> tuple[str, Any]:
    """Readable message for a failed response, preferring the body's message/error."""
    raw = resp.text or resp.reason_phrase or ""
    parsed = None
    try:
        parsed = resp.json()
    except ValueError:
        parsed = None
    message = None
    if isinstance(parsed, dict):
        message = parsed.get("message") or parsed.get("error")
    return (message or raw or f"HTTP {resp.status_code}"), parsed


class StorefrontAPI:
    """Thin async client for the shop api.

    Every call is JSON and carries the visitor's auth token (cookie and bearer)
    when one is bound. Non-2xx answers, network failures and timeouts all raise
    TransportError; business outcomes come back as data.
    """

    def __init__(self, client: httpx.AsyncClient, token: Optional[str] = None,
                 cache: Optional[QueryCache] = None):
        self.client = client
        self.token = token
        self.cache = cache

    def with_token(self, token: Optional[str]) -> "StorefrontAPI":
        return StorefrontAPI(self.client, token=token, cache=self.cache)

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
            headers["Cookie"] = f"{AUTH_COOKIE_NAME}={self.token}"
        rid = request_id_ctx.get()
        if rid:
            headers["X-Request-ID"] = rid
        return headers

    async def _send(self, method: str, path: str, *, json: Any = None,
                    params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            resp = await self.client.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("remote.timeout", extra={"method": method, "path": path})
            raise TransportError(TIMEOUT_ERROR_MESSAGE, timeout=True) from exc
        except httpx.HTTPError as exc:
            logger.warning("remote.network_error", extra={"method": method, "path": path, "error": str(exc)})
            raise TransportError(NETWORK_ERROR_MESSAGE) from exc
        return resp

    @staticmethod
    def _raise_for_status(method: str, path: str, resp: httpx.Response) -> None:
        if resp.is_error:
            message, parsed = error_message_from(resp)
            logger.info("remote.error_status", extra={"method": method, "path": path,
                                                      "upstream_status": resp.status_code})
            raise TransportError(message, upstream_status=resp.status_code, payload=parsed)

    @staticmethod
    def _body(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError("The shop sent an unreadable response.", upstream_status=resp.status_code) from exc

    async def request(self, method: str, path: str, *, json: Any = None,
                      params: Optional[Dict[str, Any]] = None, allow_unauthorized: bool = False) -> Any:
        resp = await self._send(method, path, json=json, params=params)
        if allow_unauthorized and resp.status_code == 401:
            return None
        self._raise_for_status(method, path, resp)
        return self._body(resp)

    async def _cached_get(self, key_parts: tuple, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.cache is None:
            return await self.request("GET", path, params=params)
        return await self.cache.get_or_load(key_parts, lambda: self.request("GET", path, params=params))

    def _orders_scope(self) -> tuple:
        return ("api", "orders", fingerprint(self.token) if self.token else "anonymous")

    # auth

    async def get_current_user(self) -> Optional[Dict[str, Any]]:
        return await self.request("GET", AUTH_USER_PATH, allow_unauthorized=True)

    async def _auth_call(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._send("POST", path, json=payload)
        self._raise_for_status("POST", path, resp)
        data = self._body(resp) or {}
        # the shop may hand the token out as a cookie only
        if isinstance(data, dict) and not data.get("token"):
            cookie_token = resp.cookies.get(AUTH_COOKIE_NAME)
            if cookie_token:
                data["token"] = cookie_token
        return data

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return await self._auth_call(SIGNIN_PATH, {"email": email, "password": password})

    async def sign_up(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._auth_call(SIGNUP_PATH, payload)

    async def sign_out(self) -> None:
        await self.request("POST", SIGNOUT_PATH)
        if self.cache is not None and self.token:
            self.cache.invalidate(*self._orders_scope())

    # catalog

    async def list_products(self, category: Optional[str] = None) -> List[Product]:
        params = {"category": category} if category else None
        data = await self._cached_get(("api", "products", "list", category or "all"), PRODUCTS_PATH, params)
        return [Product.model_validate(p) for p in data or []]

    async def get_product(self, product_id: str) -> Product:
        data = await self._cached_get(("api", "products", str(product_id)), f"{PRODUCTS_PATH}/{product_id}")
        return Product.model_validate(data)

    async def list_delivery_options(self) -> List[DeliveryOption]:
        data = await self._cached_get(("api", "delivery-options"), DELIVERY_OPTIONS_PATH)
        return [DeliveryOption.model_validate(o) for o in data or []]

    # server cart of a signed-in user

    async def get_cart(self, user_id: str) -> List[Dict[str, Any]]:
        data = await self.request("GET", f"{CART_PATH}/{user_id}")
        return list(data or [])

    async def add_cart_item(self, user_id: str, product_id: str, quantity: int) -> Any:
        return await self.request("POST", f"{CART_PATH}/{user_id}/add",
                                  json={"productId": product_id, "quantity": quantity})

    async def update_cart_item(self, user_id: str, product_id: str, quantity: int) -> Any:
        return await self.request("PUT", f"{CART_PATH}/{user_id}/update",
                                  json={"productId": product_id, "quantity": quantity})

    async def remove_cart_item(self, user_id: str, product_id: str) -> Any:
        return await self.request("DELETE", f"{CART_PATH}/{user_id}/remove/{product_id}")

    async def clear_cart(self, user_id: str) -> Any:
        return await self.request("DELETE", f"{CART_PATH}/{user_id}/clear")

    # coupons

    async def validate_coupon(self, code: str, subtotal: Decimal, user_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {"code": code, "cartSubtotal": float(subtotal)}
        if user_id:
            payload["userId"] = user_id
        return await self.request("POST", COUPON_VALIDATE_PATH, json=payload) or {}

    # orders

    async def get_order(self, order_id: str) -> Order:
        data = await self._cached_get(self._orders_scope() + (str(order_id),), f"{ORDERS_PATH}/{order_id}")
        return Order.model_validate(data)

    async def list_user_orders(self) -> List[Order]:
        data = await self._cached_get(self._orders_scope() + ("user",), USER_ORDERS_PATH)
        return [Order.model_validate(o) for o in data or []]

    async def place_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.request("POST", PLACE_ORDER_PATH, json=payload) or {}
        if self.cache is not None:
            self.cache.invalidate(*self._orders_scope())
        return result
