import json
import httpx
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from storefront.common.custom_exceptions import TransportError
from storefront.delivery.models import DeliveryOption
from storefront.main import create_app

url_prefix = "/api/v1"

PRODUCTS = {
    "1": {"id": 1, "name": "Red Roses Bouquet", "price": "₹1,299", "category": "bouquets", "inStock": True},
    "2": {"id": 2, "name": "White Lily Basket", "price": 850, "category": "baskets", "inStock": True},
    "3": {"id": 3, "name": "Orchid Box", "price": "799.50", "category": "boxes", "inStock": False},
}

DELIVERY_OPTIONS = [
    {"id": 1, "name": "Standard", "price": "0", "estimatedDays": "3-5 days"},
    {"id": 2, "name": "Same Day Express", "price": "199", "estimatedDays": "Same day"},
    {"id": 3, "name": "Next Day", "price": "99", "estimatedDays": "1 day"},
]

USER = {"id": 42, "email": "asha.rao@gmail.com", "firstname": "Asha", "lastname": "Rao"}
PASSWORD = "Petals123"
TOKEN = "tok-asha-123"


class FakeShop:
    """Stands in for the remote shop api behind httpx.MockTransport."""

    def __init__(self):
        self.calls = []
        self.placed_orders = []
        self.carts = {}
        self.failing_products = set()
        self.orders = [
            {"id": "ord-1", "orderNumber": "BB-0001", "status": "delivered", "total": "1299",
             "createdAt": "2026-10-17T19:33:00Z", "paymentMethod": "COD",
             "items": [{"id": 1, "productName": "Red Roses Bouquet", "quantity": 1, "price": "1299"}]},
        ]

    def _json(self, request: httpx.Request):
        return json.loads(request.content) if request.content else None

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = self._json(request)
        self.calls.append((request.method, path, body))
        authed = request.headers.get("Authorization") == f"Bearer {TOKEN}"

        if path == "/api/products":
            category = request.url.params.get("category")
            listed = [p for p in PRODUCTS.values() if not category or p["category"] == category]
            return httpx.Response(200, json=listed)

        if path.startswith("/api/cart/"):
            return self.handle_cart(request.method, path, body, authed)

        if path.startswith("/api/products/"):
            product = PRODUCTS.get(path.rsplit("/", 1)[1])
            if product is None:
                return httpx.Response(404, json={"message": "Product not found"})
            return httpx.Response(200, json=product)

        if path == "/api/delivery-options":
            return httpx.Response(200, json=DELIVERY_OPTIONS)

        if path == "/api/coupons/validate":
            if body["code"] == "SAVE10":
                return httpx.Response(200, json={
                    "valid": True,
                    "coupon": {"id": 7, "description": "10% off", "type": "percentage",
                               "value": 10, "maxDiscount": 500},
                    "discountAmount": round(body["cartSubtotal"] * 0.1, 2),
                })
            if body["code"] == "FLAT200":
                return httpx.Response(200, json={
                    "valid": True, "coupon": {"id": 8, "type": "fixed", "value": 200}, "discountAmount": 200})
            return httpx.Response(200, json={"valid": False, "error": "Coupon has expired"})

        if path == "/api/auth/signin":
            if body == {"email": USER["email"], "password": PASSWORD}:
                return httpx.Response(200, json={"user": USER, "token": TOKEN})
            return httpx.Response(401, json={"message": "Invalid credentials"})

        if path == "/api/auth/signup":
            if body["email"] == USER["email"]:
                return httpx.Response(409, json={"message": "Email already registered"})
            return httpx.Response(201, json={"user": {"id": 43, "email": body["email"],
                                                      "firstname": body["firstName"]}})

        if path == "/api/auth/signout":
            return httpx.Response(200, json={"message": "ok"})

        if path == "/api/auth/user":
            if not authed:
                return httpx.Response(401, json={"message": "Not authenticated"})
            return httpx.Response(200, json=USER)

        if path == "/api/orders/place":
            self.placed_orders.append(body)
            return httpx.Response(200, json={"success": True, "order": {"id": "ord-77", "orderNumber": "BB-0077"}})

        if path == "/api/orders/user":
            if not authed:
                return httpx.Response(401, json={"message": "Not authenticated"})
            return httpx.Response(200, json=self.orders)

        if path.startswith("/api/orders/"):
            order_id = path.rsplit("/", 1)[1]
            for order in self.orders:
                if order["id"] == order_id:
                    return httpx.Response(200, json=order)
            return httpx.Response(404, json={"message": "Order not found"})

        return httpx.Response(404, json={"message": f"no route {path}"})

    def handle_cart(self, method: str, path: str, body, authed: bool) -> httpx.Response:
        # /api/cart/{uid}[/add|/update|/remove/{pid}|/clear]
        parts = path.split("/")[3:]
        if not authed:
            return httpx.Response(401, json={"message": "Not authenticated"})
        lines = self.carts.setdefault(parts[0], {})
        action = parts[1] if len(parts) > 1 else None

        if method == "GET" and action is None:
            rows = [{"product": PRODUCTS[pid], "quantity": qty} for pid, qty in lines.items()]
            return httpx.Response(200, json=rows)
        if action in ("add", "update"):
            pid = str(body["productId"])
            if pid in self.failing_products:
                return httpx.Response(500, json={"message": "Cart service unavailable"})
            lines[pid] = body["quantity"] + (lines.get(pid, 0) if action == "add" else 0)
            return httpx.Response(200, json={"success": True})
        if action == "remove":
            lines.pop(parts[2], None)
            return httpx.Response(200, json={"success": True})
        if action == "clear":
            lines.clear()
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"message": f"no route {path}"})


class StubAPI:
    """In-process replacement for StorefrontAPI used by store-level tests."""

    def __init__(self):
        self.coupon_calls = []
        self.coupon_responses = {}
        self.fail_transport = False
        self.delivery_options = [DeliveryOption.model_validate(o) for o in DELIVERY_OPTIONS]
        self.placed = []
        self.place_result = {"success": True, "order": {"id": "ord-9"}}
        self.server_cart = []
        self.cart_calls = []
        self.fail_cart = False

    async def validate_coupon(self, code, subtotal, user_id=None):
        self.coupon_calls.append((code, subtotal, user_id))
        if self.fail_transport:
            raise TransportError("Network error. Please check your internet connection.")
        return self.coupon_responses.get(code, {"valid": False, "error": "Coupon not found"})

    async def list_delivery_options(self):
        if self.fail_transport:
            raise TransportError("Network error. Please check your internet connection.")
        return list(self.delivery_options)

    async def place_order(self, payload):
        self.placed.append(payload)
        return self.place_result

    async def _cart_call(self, *call):
        self.cart_calls.append(call)
        if self.fail_cart:
            raise TransportError("Cart service unavailable", upstream_status=500)

    async def get_cart(self, user_id):
        await self._cart_call("get", user_id)
        return list(self.server_cart)

    async def add_cart_item(self, user_id, product_id, quantity):
        await self._cart_call("add", user_id, product_id, quantity)
        for row in self.server_cart:
            if str(row["product"]["id"]) == str(product_id):
                row["quantity"] += quantity
                return
        self.server_cart.append({"product": dict(PRODUCTS[str(product_id)]), "quantity": quantity})

    async def update_cart_item(self, user_id, product_id, quantity):
        await self._cart_call("update", user_id, product_id, quantity)
        for row in self.server_cart:
            if str(row["product"]["id"]) == str(product_id):
                row["quantity"] = quantity

    async def remove_cart_item(self, user_id, product_id):
        await self._cart_call("remove", user_id, product_id)
        self.server_cart = [r for r in self.server_cart if str(r["product"]["id"]) != str(product_id)]

    async def clear_cart(self, user_id):
        await self._cart_call("clear", user_id)
        self.server_cart = []


@pytest.fixture
def shop():
    return FakeShop()


@pytest.fixture
def stub_api():
    return StubAPI()


@pytest.fixture
async def app(shop):
    app = create_app(remote_transport=httpx.MockTransport(shop.handle))
    async with LifespanManager(app):
        yield app


@pytest.fixture
async def ac_client(app):
    # https so the Secure visitor and auth cookies travel back
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


@pytest.fixture
def roses():
    return dict(PRODUCTS["1"])


@pytest.fixture
def lilies():
    return dict(PRODUCTS["2"])
