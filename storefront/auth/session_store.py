import secrets
from typing import Callable, Optional
from pydantic import ValidationError
from storefront.auth.broadcast import AuthEventBus
from storefront.auth.constants import (AUTH_COOKIE_KEY, REFRESH_COOKIE_KEY, SESSION_ID_KEY,
                                       SESSION_STORAGE_KEY, logger)
from storefront.auth.models import AuthEvent, StoredUserInfo, UserData, UserSession
from storefront.common.custom_exceptions import StorageError
from storefront.common.utils import now
from storefront.storage.cookies import CookieJar
from storefront.storage.tiers import StorageTier
from storefront.storage.utils import deserialize, serialize


def generate_session_id() -> str:
    return secrets.token_urlsafe(16)


class AuthSessionStore:
    """Signed-in identity kept across requests.

    The auth token lives only in its cookie; the user record is written to
    the session-scoped tier and the durable tier. A session is valid only
    while the token cookie is present.
    """

    def __init__(self, session_tier: StorageTier, durable_tier: StorageTier, cookies: CookieJar,
                 event_bus: Optional[AuthEventBus] = None, *, cookie_days: int = 7, secure: bool = True,
                 httponly: bool = False, clear_durable_on_signout: bool = False):
        self.session_tier = session_tier
        self.durable_tier = durable_tier
        self.cookies = cookies
        self.event_bus = event_bus or AuthEventBus()
        self.cookie_days = cookie_days
        self.secure = secure
        self.httponly = httponly
        self.clear_durable_on_signout = clear_durable_on_signout

    def sign_in(self, user: UserData) -> bool:
        if not user or not user.token:
            logger.error("auth.signin.invalid_user_data")
            return False

        session_id = generate_session_id()
        self.cookies.set(AUTH_COOKIE_KEY, user.token, days=self.cookie_days, secure=self.secure,
                         samesite="strict", httponly=self.httponly)
        self.cookies.set(SESSION_ID_KEY, session_id, days=self.cookie_days, secure=self.secure,
                         samesite="lax")

        info = StoredUserInfo(id=user.id, email=user.email, name=user.name,
                              last_updated=now().isoformat(), session_id=session_id)
        record = serialize(info.model_dump(by_alias=True))
        for tier_name, tier in (("session", self.session_tier), ("durable", self.durable_tier)):
            try:
                tier.set_item(SESSION_STORAGE_KEY, record)
            except StorageError as exc:
                logger.error("auth.signin.storage_failed", extra={"tier": tier_name, "error": exc.message})

        logger.info("auth.signin.stored", extra={"user_id": user.id, "session_id": session_id})
        self.event_bus.publish("login", session_id=session_id)
        return True

    def _read(self, tier: StorageTier) -> Optional[str]:
        try:
            return tier.get_item(SESSION_STORAGE_KEY)
        except StorageError as exc:
            logger.warning("auth.storage_read_failed", extra={"error": exc.message})
            return None

    def _remove(self, tier: StorageTier) -> None:
        try:
            tier.remove_item(SESSION_STORAGE_KEY)
        except StorageError as exc:
            logger.warning("auth.storage_remove_failed", extra={"error": exc.message})

    def _purge(self) -> None:
        self._remove(self.session_tier)
        self._remove(self.durable_tier)
        self.cookies.delete(AUTH_COOKIE_KEY)
        self.cookies.delete(REFRESH_COOKIE_KEY)

    def _parse(self, raw: str, token: str) -> Optional[UserSession]:
        try:
            info = StoredUserInfo.model_validate(deserialize(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("auth.session.corrupt_record", extra={"error": str(exc)})
            return None
        return UserSession(id=info.id, email=info.email, name=info.name, session_id=info.session_id,
                           auth_token=token, last_updated=info.last_updated)

    def get_user(self) -> Optional[UserSession]:
        """Current user, promoting a durable record into the session tier.

        A missing token cookie purges every stored trace of the session.
        """
        token = self.cookies.get(AUTH_COOKIE_KEY)
        if not token:
            self._purge()
            return None

        raw = self._read(self.session_tier)
        if raw is None:
            raw = self._read(self.durable_tier)
            if raw is None:
                return None
            try:
                self.session_tier.set_item(SESSION_STORAGE_KEY, raw)
                logger.debug("auth.session.promoted")
            except StorageError as exc:
                logger.warning("auth.session.promotion_failed", extra={"error": exc.message})

        return self._parse(raw, token)

    def sign_out(self) -> None:
        self._remove(self.session_tier)
        if self.clear_durable_on_signout:
            self._remove(self.durable_tier)
        self.cookies.delete(AUTH_COOKIE_KEY)
        self.cookies.delete(REFRESH_COOKIE_KEY)
        logger.info("auth.signout.cleared")
        self.event_bus.publish("logout")

    def is_authenticated(self) -> bool:
        # session tier only; get_user() is the call that promotes
        if not self.cookies.get(AUTH_COOKIE_KEY):
            return False
        return self._read(self.session_tier) is not None

    def refresh_from_storage(self, event: Optional[AuthEvent] = None) -> Optional[UserSession]:
        """Re-read the user for a listener. Never purges or promotes.

        A logout event means no user, whatever the durable tier still holds.
        """
        if event is not None and event.type == "logout":
            return None
        token = self.cookies.get(AUTH_COOKIE_KEY)
        if not token:
            return None
        raw = self._read(self.session_tier)
        if raw is None:
            raw = self._read(self.durable_tier)
        return self._parse(raw, token) if raw is not None else None

    def watch(self, callback: Callable[[Optional[UserSession]], None]) -> Callable[[], None]:
        """Call `callback` with the freshly read user after every login/logout."""
        def on_event(event: AuthEvent):
            callback(self.refresh_from_storage(event))
        return self.event_bus.subscribe(on_event)
