from decimal import Decimal
import pytest
from storefront.cart.constants import CART_LOAD_FAILED_MESSAGE, CART_STORAGE_KEY, COUPON_TRANSPORT_MESSAGE
from storefront.cart.store import CartStore
from storefront.common.custom_exceptions import InputValidationError, TransportError
from storefront.storage.tiers import MemoryStorage

SAVE10 = {"valid": True, "coupon": {"id": 7, "description": "10% off", "type": "percentage",
                                     "value": 10, "maxDiscount": 500}, "discountAmount": 129.9}


def test_add_item_inserts_then_increments(roses, lilies):
    cart = CartStore()
    cart.add_item(roses)
    cart.add_item(roses, 2)
    cart.add_item(lilies)

    assert len(cart.lines) == 2
    assert cart.quantity_of("1") == 3
    assert cart.total_items == 4
    # "₹1,299" x3 + 850
    assert cart.total_price == Decimal("4747")


@pytest.mark.parametrize("qty", [0, -1, 1.5, True, "2"])
def test_add_item_rejects_bad_quantity(roses, qty):
    cart = CartStore()
    with pytest.raises(InputValidationError):
        cart.add_item(roses, qty)
    assert cart.lines == []


def test_update_quantity_zero_is_remove(roses, lilies):
    a, b = CartStore(), CartStore()
    for cart in (a, b):
        cart.add_item(roses, 2)
        cart.add_item(lilies)
    a.update_quantity("1", 0)
    b.remove_item("1")

    assert [l.product_id for l in a.lines] == [l.product_id for l in b.lines] == ["2"]
    assert a.total_items == b.total_items == 1


def test_update_quantity_on_missing_line_is_noop(roses):
    cart = CartStore()
    cart.add_item(roses)
    seen = []
    cart.subscribe(lambda c: seen.append(c.total_items))

    cart.update_quantity("999", 4)

    assert cart.total_items == 1
    assert seen == []


def test_unparseable_price_counts_as_zero():
    cart = CartStore()
    cart.add_item({"id": "x", "name": "Mystery Stem", "price": "call us"}, 2)
    assert cart.total_price == Decimal(0)


def test_listeners_run_before_mutation_returns(roses):
    cart = CartStore()
    seen = []
    unsubscribe = cart.subscribe(lambda c: seen.append(c.total_items))

    cart.add_item(roses)
    assert seen == [1]

    unsubscribe()
    cart.add_item(roses)
    assert seen == [1]


def test_failing_listener_does_not_break_others(roses):
    cart = CartStore()
    seen = []

    def broken(_):
        raise RuntimeError("listener bug")

    cart.subscribe(broken)
    cart.subscribe(lambda c: seen.append(c.total_items))
    cart.add_item(roses)

    assert seen == [1]


@pytest.mark.asyncio
async def test_apply_coupon_normalizes_and_stores(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api, user_id="42")
    cart.add_item(roses)

    result = await cart.apply_coupon(" save10 ")

    assert result.success is True
    assert result.discount_amount == Decimal("129.9")
    assert stub_api.coupon_calls == [("SAVE10", Decimal("1299"), "42")]
    assert cart.applied_coupon.code == "SAVE10"
    assert cart.final_amount == Decimal("1169.1")


@pytest.mark.asyncio
async def test_blank_coupon_never_reaches_the_shop(stub_api, roses):
    cart = CartStore(api=stub_api)
    cart.add_item(roses)

    result = await cart.apply_coupon("   ")

    assert result.success is False
    assert result.kind == "validation"
    assert cart.coupon_error == "Please enter a coupon code"
    assert stub_api.coupon_calls == []


@pytest.mark.asyncio
async def test_rejected_coupon_sets_error_without_raising(stub_api, roses):
    cart = CartStore(api=stub_api)
    cart.add_item(roses)

    result = await cart.apply_coupon("NOPE")

    assert result.success is False
    assert result.kind == "business"
    assert cart.coupon_error == "Coupon not found"
    assert cart.applied_coupon is None


@pytest.mark.asyncio
async def test_transport_failure_keeps_prior_coupon(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api)
    cart.add_item(roses)
    await cart.apply_coupon("SAVE10")

    stub_api.fail_transport = True
    result = await cart.apply_coupon("OTHER")

    assert result.kind == "transport"
    assert cart.coupon_error == COUPON_TRANSPORT_MESSAGE
    assert cart.applied_coupon.code == "SAVE10"


@pytest.mark.asyncio
async def test_final_amount_never_negative(stub_api, roses):
    stub_api.coupon_responses["HUGE"] = {"valid": True, "discountAmount": 5000}
    cart = CartStore(api=stub_api)
    cart.add_item(roses)

    await cart.apply_coupon("HUGE")

    assert cart.discount_amount == Decimal(5000)
    assert cart.final_amount == Decimal(0)


@pytest.mark.asyncio
async def test_percentage_discount_follows_subtotal(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api)
    cart.add_item(roses)
    await cart.apply_coupon("SAVE10")

    cart.update_quantity("1", 2)

    assert cart.discount_amount == Decimal("259.8")


@pytest.mark.asyncio
async def test_emptying_cart_drops_coupon(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api)
    cart.add_item(roses)
    await cart.apply_coupon("SAVE10")

    cart.remove_item("1")

    assert cart.applied_coupon is None
    assert cart.discount_amount == Decimal(0)


@pytest.mark.asyncio
async def test_revalidate_removes_coupon_the_shop_no_longer_accepts(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api)
    cart.add_item(roses)
    await cart.apply_coupon("SAVE10")

    stub_api.coupon_responses["SAVE10"] = {"valid": False, "error": "Minimum order is ₹2,000"}
    still_valid = await cart.revalidate_coupon()

    assert still_valid is False
    assert cart.applied_coupon is None
    assert "Minimum order is ₹2,000" in cart.error


@pytest.mark.asyncio
async def test_revalidate_keeps_coupon_on_transport_failure(stub_api, roses):
    stub_api.coupon_responses["SAVE10"] = SAVE10
    cart = CartStore(api=stub_api)
    cart.add_item(roses)
    await cart.apply_coupon("SAVE10")

    stub_api.fail_transport = True

    assert await cart.revalidate_coupon() is True
    assert cart.applied_coupon is not None


@pytest.mark.asyncio
async def test_sync_delivery_selection_notifies_only_on_change(stub_api):
    cart = CartStore(api=stub_api)
    options = await cart.load_delivery_options()
    seen = []
    cart.subscribe(lambda c: seen.append(c.delivery_option.name if c.delivery_option else None))

    cart.sync_delivery_selection(options, 20)
    cart.sync_delivery_selection(options, 20)

    assert seen == ["Next Day"]


def test_cart_survives_reload_from_storage(roses, lilies):
    storage = MemoryStorage()
    cart = CartStore(storage=storage)
    cart.add_item(roses, 2)
    cart.add_item(lilies)

    restored = CartStore(storage=storage).load()

    assert restored.total_items == 3
    assert restored.total_price == cart.total_price


def test_corrupt_stored_cart_loads_empty():
    storage = MemoryStorage({CART_STORAGE_KEY: "{not json"})
    cart = CartStore(storage=storage).load()
    assert cart.lines == []


def test_unavailable_storage_is_not_fatal(roses):
    storage = MemoryStorage()
    storage.disabled = True
    cart = CartStore(storage=storage)

    cart.add_item(roses)

    assert cart.total_items == 1
    assert CartStore(storage=storage).load().lines == []


@pytest.mark.asyncio
async def test_guest_cart_merges_into_server_cart_on_sign_in(stub_api, roses):
    storage = MemoryStorage()
    CartStore(storage=storage).add_item(roses, 2)
    cart = CartStore(api=stub_api, storage=storage, user_id="42").load()

    outcome = await cart.sync_with_server()

    assert outcome == "merged"
    assert stub_api.cart_calls == [("add", "42", "1", 2), ("get", "42")]
    assert storage.get_item(CART_STORAGE_KEY) is None
    assert cart.quantity_of("1") == 2
    assert cart.error is None


@pytest.mark.asyncio
async def test_failed_merge_keeps_the_guest_cart(stub_api, roses):
    storage = MemoryStorage()
    CartStore(storage=storage).add_item(roses)
    stub_api.fail_cart = True
    cart = CartStore(api=stub_api, storage=storage, user_id="42").load()

    outcome = await cart.sync_with_server()

    assert outcome == "partial"
    assert storage.get_item(CART_STORAGE_KEY) is not None
    assert cart.error == CART_LOAD_FAILED_MESSAGE
    assert cart.quantity_of("1") == 1


@pytest.mark.asyncio
async def test_server_cart_rows_nested_or_flat(stub_api, roses, lilies):
    stub_api.server_cart = [{"product": roses, "quantity": 2}, {**lilies, "quantity": 1}, {"quantity": 1}]
    cart = CartStore(api=stub_api, user_id="42")

    assert await cart.load_server_cart() is True

    assert [line.product_id for line in cart.lines] == ["1", "2"]
    assert cart.total_price == Decimal("3448")


@pytest.mark.asyncio
async def test_synced_mutations_write_through_then_reload(stub_api, roses, lilies):
    storage = MemoryStorage()
    cart = CartStore(api=stub_api, storage=storage, user_id="42")

    await cart.add_item_synced(roses, 2)
    await cart.add_item_synced(lilies)
    await cart.update_quantity_synced("1", 3)
    await cart.update_quantity_synced("2", 0)

    assert [c[0] for c in stub_api.cart_calls] == ["add", "get", "add", "get", "update", "get", "remove", "get"]
    assert cart.quantity_of("1") == 3
    assert cart.quantity_of("2") == 0
    # the guest key belongs to guests
    assert storage.get_item(CART_STORAGE_KEY) is None

    await cart.clear_synced()
    assert stub_api.cart_calls[-1] == ("clear", "42")
    assert cart.lines == []


@pytest.mark.asyncio
async def test_failed_synced_add_reports_and_raises(stub_api, roses):
    cart = CartStore(api=stub_api, user_id="42")
    stub_api.fail_cart = True

    with pytest.raises(TransportError):
        await cart.add_item_synced(roses)

    assert cart.error == "Failed to add Red Roses Bouquet to cart: Cart service unavailable"
    assert cart.lines == []


@pytest.mark.asyncio
async def test_guest_synced_mutations_stay_local(stub_api, roses):
    cart = CartStore(api=stub_api)

    await cart.add_item_synced(roses)
    await cart.remove_item_synced("1")

    assert stub_api.cart_calls == []
    assert cart.lines == []
