from typing import Callable, List, Optional
from storefront.auth.broadcast import AuthEventBus
from storefront.auth.models import UserSession
from storefront.auth.session_store import AuthSessionStore
from storefront.cart.store import CartStore
from storefront.checkout.store import CheckoutStore
from storefront.config.settings import config_settings
from storefront.remote.client import StorefrontAPI
from storefront.storage.cookies import CookieJar
from storefront.storage.tiers import StorageTier


class StorefrontContext:
    """Everything one visitor's request works with.

    Built from app-wide resources (api client, storage tiers, event bus) and
    opened before use: opening resolves the signed-in user, binds their token
    to the api and loads the stores. The cart and checkout persist to the
    durable tier; the signed-in record lives in both tiers.
    """

    def __init__(self, api: StorefrontAPI, session_tier: StorageTier, durable_tier: StorageTier,
                 cookies: CookieJar, event_bus: Optional[AuthEventBus] = None, settings=config_settings):
        self.base_api = api
        self.api = api
        self.session_tier = session_tier
        self.durable_tier = durable_tier
        self.cookies = cookies
        self.settings = settings

        self.auth = AuthSessionStore(session_tier, durable_tier, cookies, event_bus,
                                     cookie_days=settings.AUTH_COOKIE_DAYS,
                                     secure=settings.SECURE_COOKIES,
                                     httponly=settings.AUTH_COOKIE_HTTPONLY,
                                     clear_durable_on_signout=settings.CLEAR_DURABLE_ON_SIGNOUT)
        self.cart = CartStore(api=api, storage=durable_tier)
        self.checkout = CheckoutStore(self.cart, storage=durable_tier)
        self.user: Optional[UserSession] = None
        self._unsubscribers: List[Callable[[], None]] = []
        self.opened = False

    def _bind_user(self, user: Optional[UserSession]) -> None:
        signed_out = self.user is not None and user is None
        self.user = user
        self.api = self.base_api.with_token(user.auth_token if user else None)
        self.cart.api = self.api
        self.cart.user_id = user.id if user else None
        if signed_out:
            # back to the guest cart kept on this device
            self.cart.load()

    def open(self) -> "StorefrontContext":
        if self.opened:
            return self
        self._bind_user(self.auth.get_user())
        self.cart.load()
        self.checkout.load()
        self._unsubscribers.append(self.auth.watch(self._bind_user))
        self.opened = True
        return self

    async def sync_cart(self) -> None:
        """Merge any guest cart into the signed-in user's server cart, then load it."""
        if not self.cart.server_backed:
            return
        if await self.cart.sync_with_server() == "merged":
            # the guest's shipping details go with the guest cart
            self.checkout.set_address(None)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.opened = False

    @property
    def signed_in(self) -> bool:
        return self.user is not None
