import pytest
from storefront.auth.constants import AUTH_COOKIE_KEY, REFRESH_COOKIE_KEY, SESSION_ID_KEY, SESSION_STORAGE_KEY
from storefront.auth.models import UserData
from storefront.auth.session_store import AuthSessionStore
from storefront.storage.cookies import MemoryCookieJar
from storefront.storage.tiers import MemoryStorage
from storefront.storage.utils import deserialize

ASHA = UserData(id="42", email="asha.rao@gmail.com", name="Asha Rao", token="tok-asha-123")


@pytest.fixture
def tiers():
    return MemoryStorage(), MemoryStorage()


@pytest.fixture
def cookies():
    return MemoryCookieJar()


@pytest.fixture
def store(tiers, cookies):
    session_tier, durable_tier = tiers
    return AuthSessionStore(session_tier, durable_tier, cookies)


def test_sign_in_requires_a_token(store, tiers, cookies):
    assert store.sign_in(ASHA.model_copy(update={"token": ""})) is False
    assert cookies.values == {}
    assert all(len(t) == 0 for t in tiers)


def test_sign_in_writes_cookies_and_both_tiers(store, tiers, cookies):
    events = []
    store.event_bus.subscribe(events.append)

    assert store.sign_in(ASHA) is True

    assert cookies.get(AUTH_COOKIE_KEY) == "tok-asha-123"
    assert cookies.attributes[AUTH_COOKIE_KEY]["samesite"] == "strict"
    assert cookies.attributes[AUTH_COOKIE_KEY]["max_age"] == 7 * 24 * 60 * 60
    assert cookies.attributes[SESSION_ID_KEY]["samesite"] == "lax"

    session_tier, durable_tier = tiers
    record = deserialize(session_tier.get_item(SESSION_STORAGE_KEY))
    assert record["id"] == "42"
    assert record["sessionId"] == cookies.get(SESSION_ID_KEY)
    assert "lastUpdated" in record
    assert "token" not in record
    assert durable_tier.get_item(SESSION_STORAGE_KEY) == session_tier.get_item(SESSION_STORAGE_KEY)

    assert [e.type for e in events] == ["login"]
    assert events[0].session_id == record["sessionId"]


def test_get_user_promotes_durable_record(store, tiers):
    session_tier, _ = tiers
    store.sign_in(ASHA)
    session_tier.clear()

    assert store.is_authenticated() is False
    user = store.get_user()

    assert user.email == "asha.rao@gmail.com"
    assert user.auth_token == "tok-asha-123"
    assert session_tier.get_item(SESSION_STORAGE_KEY) is not None
    assert store.is_authenticated() is True


def test_missing_token_purges_everything(store, tiers, cookies):
    store.sign_in(ASHA)
    cookies.set(REFRESH_COOKIE_KEY, "refresh-me")
    cookies.delete(AUTH_COOKIE_KEY)

    assert store.get_user() is None
    assert all(t.get_item(SESSION_STORAGE_KEY) is None for t in tiers)
    assert cookies.get(REFRESH_COOKIE_KEY) is None


def test_sign_out_keeps_durable_record_by_default(store, tiers, cookies):
    events = []
    store.event_bus.subscribe(events.append)
    store.sign_in(ASHA)

    store.sign_out()

    session_tier, durable_tier = tiers
    assert session_tier.get_item(SESSION_STORAGE_KEY) is None
    assert durable_tier.get_item(SESSION_STORAGE_KEY) is not None
    assert cookies.get(AUTH_COOKIE_KEY) is None
    assert store.is_authenticated() is False
    assert [e.type for e in events] == ["login", "logout"]


def test_sign_out_can_clear_durable_record(tiers, cookies):
    session_tier, durable_tier = tiers
    store = AuthSessionStore(session_tier, durable_tier, cookies, clear_durable_on_signout=True)
    store.sign_in(ASHA)

    store.sign_out()

    assert durable_tier.get_item(SESSION_STORAGE_KEY) is None


def test_malformed_record_means_no_user(store, tiers, cookies):
    session_tier, _ = tiers
    cookies.set(AUTH_COOKIE_KEY, "tok")
    session_tier.set_item(SESSION_STORAGE_KEY, "{oops")

    assert store.get_user() is None


def test_unavailable_session_tier_falls_back_to_durable(store, tiers):
    session_tier, _ = tiers
    store.sign_in(ASHA)
    session_tier.disabled = True

    assert store.get_user().id == "42"
    assert store.is_authenticated() is False


def test_watchers_reread_storage_on_events(store):
    seen = []
    unsubscribe = store.watch(seen.append)

    store.sign_in(ASHA)
    store.sign_out()
    unsubscribe()
    store.sign_in(ASHA)

    assert seen[0].id == "42"
    assert seen[1] is None
    assert len(seen) == 2


def test_user_data_from_signin_payload():
    user = UserData.from_signin_payload({"user": {"id": 42, "email": "a@b.in", "firstname": "Asha",
                                                  "lastname": "Rao"}, "token": "t"})
    assert (user.id, user.name, user.token) == ("42", "Asha Rao", "t")


def test_watchers_leave_the_durable_record_on_sign_out(store, tiers):
    seen = []
    store.watch(seen.append)
    store.sign_in(ASHA)

    store.sign_out()

    _, durable_tier = tiers
    assert seen[-1] is None
    assert durable_tier.get_item(SESSION_STORAGE_KEY) is not None
