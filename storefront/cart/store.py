import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Literal, Mapping, Optional, Union
from pydantic import ValidationError
from storefront.cart import logger
from storefront.cart.constants import (CART_CLEAR_FAILED_MESSAGE, CART_LOAD_FAILED_MESSAGE, CART_REMOVE_FAILED_MESSAGE,
                                       CART_STORAGE_KEY, CART_UPDATE_FAILED_MESSAGE, COUPON_STORAGE_KEY,
                                       COUPON_TRANSPORT_MESSAGE, DELIVERY_STORAGE_KEY)
from storefront.cart.coupons import CouponEvaluator
from storefront.cart.models import AppliedCoupon, CartLine, CouponApplyResult, Product
from storefront.common.custom_exceptions import InputValidationError, StorageError, TransportError
from storefront.delivery.eligibility import choose_default
from storefront.delivery.models import DeliveryOption
from storefront.storage.tiers import StorageTier
from storefront.storage.utils import deserialize, serialize

Listener = Callable[["CartStore"], None]
MergeOutcome = Literal["empty", "merged", "partial"]


def _check_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InputValidationError("Quantity must be a positive whole number",
                                   field_errors={"quantity": "must be a positive whole number"})


class CartStore:
    """Cart contents, applied coupon, delivery choice and the totals derived from them.

    Mutations are synchronous and every subscribed listener has been called
    by the time a mutation returns. Totals are computed on each read.
    With a storage tier the cart is saved after every mutation and restored
    by `load()`. For a signed-in user the `*_synced` variants write through
    to the shop's server cart and reload it afterwards.
    """

    def __init__(self, api=None, storage: Optional[StorageTier] = None, user_id: Optional[str] = None,
                 evaluator: Optional[CouponEvaluator] = None):
        self.api = api
        self.storage = storage
        self.user_id = user_id
        self._evaluator = evaluator

        self._lines: List[CartLine] = []
        self.applied_coupon: Optional[AppliedCoupon] = None
        self.coupon_error: Optional[str] = None
        self.error: Optional[str] = None
        self.delivery_option: Optional[DeliveryOption] = None
        self._listeners: List[Listener] = []

    # observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _changed(self):
        self._persist()
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("cart.listener_failed")

    # reads

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def _find(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self._lines if line.product_id == str(product_id)), None)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal(0))

    @property
    def discount_amount(self) -> Decimal:
        if self.applied_coupon is None:
            return Decimal(0)
        return self.applied_coupon.discount_amount

    @property
    def final_amount(self) -> Decimal:
        return max(self.total_price - self.discount_amount, Decimal(0))

    def quantity_of(self, product_id: str) -> int:
        line = self._find(product_id)
        return line.quantity if line else 0

    def contains(self, product_id: str) -> bool:
        return self._find(product_id) is not None

    # line mutations

    def add_item(self, product: Union[Product, Mapping[str, Any]], quantity: int = 1) -> CartLine:
        _check_quantity(quantity)
        if not isinstance(product, Product):
            product = Product.model_validate(product)

        line = self._find(product.id)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine.from_product(product, quantity)
            self._lines.append(line)

        logger.debug("cart.item_added", extra={"product_id": product.id, "quantity": line.quantity})
        self._lines_changed()
        return line

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        line = self._find(product_id)
        if line is None:
            return
        line.quantity = int(quantity)
        self._lines_changed()

    def remove_item(self, product_id: str) -> None:
        line = self._find(product_id)
        if line is None:
            return
        self._lines.remove(line)
        logger.debug("cart.item_removed", extra={"product_id": str(product_id)})
        self._lines_changed()

    def clear(self) -> None:
        self._lines = []
        self._lines_changed()

    def _lines_changed(self):
        if not self._lines:
            # an empty cart carries no coupon
            self.applied_coupon = None
            self.coupon_error = None
        elif self.applied_coupon is not None:
            discount = self.applied_coupon.discount_for(self.total_price)
            if discount != self.applied_coupon.discount_amount:
                self.applied_coupon = self.applied_coupon.model_copy(update={"discount_amount": discount})
        self._changed()

    def clear_error(self) -> None:
        self.error = None
        self._changed()

    def clear_coupon_error(self) -> None:
        self.coupon_error = None
        self._changed()

    # coupons

    @property
    def evaluator(self) -> CouponEvaluator:
        if self._evaluator is not None:
            return self._evaluator
        if self.api is None:
            raise RuntimeError("cart store has no shop api to validate coupons with")
        return CouponEvaluator(self.api)

    async def apply_coupon(self, code: Optional[str]) -> CouponApplyResult:
        self.coupon_error = None
        try:
            decision = await self.evaluator.evaluate(code, self.total_price, user_id=self.user_id)
        except TransportError as exc:
            logger.warning("cart.coupon.transport_failed", extra={"error": exc.message})
            self.coupon_error = COUPON_TRANSPORT_MESSAGE
            self._changed()
            return CouponApplyResult(success=False, kind="transport", message=COUPON_TRANSPORT_MESSAGE)

        if not decision.accepted:
            self.coupon_error = decision.reason
            self._changed()
            return CouponApplyResult(success=False, kind=decision.kind, message=decision.reason)

        self.applied_coupon = decision.coupon
        logger.info("cart.coupon.applied", extra={"code": decision.code,
                                                  "discount": str(decision.coupon.discount_amount)})
        self._changed()
        return CouponApplyResult(success=True, discount_amount=decision.coupon.discount_amount)

    def remove_coupon(self) -> None:
        self.applied_coupon = None
        self.coupon_error = None
        logger.debug("cart.coupon.removed")
        self._changed()

    async def revalidate_coupon(self) -> bool:
        """Re-check the applied coupon against the current subtotal.

        Returns False when the shop no longer accepts it (the coupon is then
        removed). A transport failure keeps the coupon.
        """
        coupon = self.applied_coupon
        if coupon is None:
            return True
        try:
            decision = await self.evaluator.evaluate(coupon.code, self.total_price, user_id=self.user_id)
        except TransportError as exc:
            logger.warning("cart.coupon.revalidate_transport_failed", extra={"code": coupon.code,
                                                                              "error": exc.message})
            return True

        if decision.accepted:
            return True

        self.applied_coupon = None
        self.coupon_error = None
        self.error = f'Your coupon "{coupon.code}" is no longer valid: {decision.reason}'
        logger.info("cart.coupon.revoked", extra={"code": coupon.code, "reason": decision.reason})
        self._changed()
        return False

    # delivery

    async def load_delivery_options(self) -> List[DeliveryOption]:
        if self.api is None:
            raise RuntimeError("cart store has no shop api to load delivery options from")
        return await self.api.list_delivery_options()

    def set_delivery_option(self, option: Optional[DeliveryOption]) -> None:
        current_id = self.delivery_option.id if self.delivery_option else None
        new_id = option.id if option else None
        if current_id == new_id and self.delivery_option == option:
            return
        self.delivery_option = option
        self._changed()

    def sync_delivery_selection(self, eligible: List[DeliveryOption], distance_km: Optional[float],
                                threshold_km: Optional[float] = None) -> Optional[DeliveryOption]:
        current_id = self.delivery_option.id if self.delivery_option else None
        selection = choose_default(eligible, current_id, distance_km, threshold_km)
        if selection.changed:
            self.set_delivery_option(selection.option)
        return self.delivery_option

    # server cart (signed-in visitors)

    @property
    def server_backed(self) -> bool:
        return bool(self.user_id) and self.api is not None

    def _stored_guest_lines(self) -> List[CartLine]:
        if self.storage is None:
            return []
        try:
            raw = self.storage.get_item(CART_STORAGE_KEY)
            return [CartLine.model_validate(item) for item in (deserialize(raw) if raw else [])]
        except StorageError as exc:
            logger.error("cart.guest_read_failed", extra={"error": exc.message})
        except (ValueError, ValidationError) as exc:
            logger.error("cart.stored_state_corrupt", extra={"error": str(exc)})
        return []

    async def merge_guest_cart(self) -> MergeOutcome:
        """Push the stored guest lines into the signed-in user's server cart.

        The guest cart and coupon are only forgotten when every line made it;
        otherwise they stay stored for the next attempt.
        """
        guest = self._stored_guest_lines()
        if not self.server_backed or not guest:
            return "empty"
        results = await asyncio.gather(
            *(self.api.add_cart_item(self.user_id, line.product_id, line.quantity) for line in guest),
            return_exceptions=True)
        failures = []
        for result in results:
            if isinstance(result, TransportError):
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
        if failures:
            logger.warning("cart.guest_merge_partial", extra={"failed": len(failures), "lines": len(guest)})
            return "partial"
        try:
            self.storage.remove_item(CART_STORAGE_KEY)
            self.storage.remove_item(COUPON_STORAGE_KEY)
        except StorageError as exc:
            logger.error("cart.guest_clear_failed", extra={"error": exc.message})
        logger.info("cart.guest_merged", extra={"lines": len(guest)})
        return "merged"

    async def load_server_cart(self) -> bool:
        """Replace the lines with the user's server cart. The applied coupon is kept."""
        if not self.server_backed:
            return False
        try:
            rows = await self.api.get_cart(self.user_id)
        except TransportError as exc:
            logger.warning("cart.server_load_failed", extra={"error": exc.message})
            self.error = CART_LOAD_FAILED_MESSAGE
            self._changed()
            return False
        lines = []
        for row in rows:
            try:
                lines.append(CartLine.from_server_item(row))
            except (ValidationError, ValueError, AttributeError) as exc:
                logger.warning("cart.server_row_skipped", extra={"error": str(exc)})
        self._lines = lines
        self.error = None
        self._lines_changed()
        return True

    async def sync_with_server(self) -> MergeOutcome:
        outcome = await self.merge_guest_cart()
        await self.load_server_cart()
        return outcome

    async def _mirror(self, call: Awaitable[Any], failure: str, with_reason: bool = False) -> None:
        try:
            await call
        except TransportError as exc:
            logger.warning("cart.server_sync_failed", extra={"error": exc.message})
            self.error = f"{failure}: {exc.message}" if with_reason else failure
            self._changed()
            raise
        await self.load_server_cart()

    async def add_item_synced(self, product: Union[Product, Mapping[str, Any]],
                              quantity: int = 1) -> Optional[CartLine]:
        """`add_item`, written through to the server cart when one backs this store."""
        if not self.server_backed:
            return self.add_item(product, quantity)
        _check_quantity(quantity)
        if not isinstance(product, Product):
            product = Product.model_validate(product)
        await self._mirror(self.api.add_cart_item(self.user_id, product.id, quantity),
                           f"Failed to add {product.name} to cart", with_reason=True)
        return self._find(product.id)

    async def update_quantity_synced(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            await self.remove_item_synced(product_id)
        elif not self.server_backed:
            self.update_quantity(product_id, quantity)
        else:
            await self._mirror(self.api.update_cart_item(self.user_id, str(product_id), int(quantity)),
                               CART_UPDATE_FAILED_MESSAGE)

    async def remove_item_synced(self, product_id: str) -> None:
        if not self.server_backed:
            self.remove_item(product_id)
            return
        await self._mirror(self.api.remove_cart_item(self.user_id, str(product_id)), CART_REMOVE_FAILED_MESSAGE)

    async def clear_synced(self) -> None:
        if self.server_backed:
            try:
                await self.api.clear_cart(self.user_id)
            except TransportError as exc:
                logger.warning("cart.server_sync_failed", extra={"error": exc.message})
                self.error = CART_CLEAR_FAILED_MESSAGE
                self._changed()
                raise
        self.clear()

    # persistence

    def snapshot(self) -> Dict[str, Any]:
        return {
            "items": [line.model_dump(mode="json") for line in self._lines],
            "total_items": self.total_items,
            "total_price": str(self.total_price),
            "applied_coupon": self.applied_coupon.model_dump(mode="json") if self.applied_coupon else None,
            "discount_amount": str(self.discount_amount),
            "final_amount": str(self.final_amount),
            "delivery_option": self.delivery_option.model_dump(mode="json") if self.delivery_option else None,
            "coupon_error": self.coupon_error,
            "error": self.error,
        }

    def _persist(self):
        if self.storage is None:
            return
        try:
            # a signed-in cart lives on the server; the guest key only holds guest lines
            if not self.server_backed:
                self.storage.set_item(CART_STORAGE_KEY, serialize([line.model_dump() for line in self._lines]))
            if self.applied_coupon is not None:
                self.storage.set_item(COUPON_STORAGE_KEY, serialize(self.applied_coupon.model_dump()))
            else:
                self.storage.remove_item(COUPON_STORAGE_KEY)
            if self.delivery_option is not None:
                self.storage.set_item(DELIVERY_STORAGE_KEY, serialize(self.delivery_option.model_dump(by_alias=True)))
            else:
                self.storage.remove_item(DELIVERY_STORAGE_KEY)
        except StorageError as exc:
            logger.error("cart.persist_failed", extra={"error": exc.message})

    def load(self) -> "CartStore":
        if self.storage is None:
            return self
        try:
            raw_lines = self.storage.get_item(CART_STORAGE_KEY)
            raw_coupon = self.storage.get_item(COUPON_STORAGE_KEY)
            raw_delivery = self.storage.get_item(DELIVERY_STORAGE_KEY)
        except StorageError as exc:
            logger.error("cart.load_failed", extra={"error": exc.message})
            return self

        try:
            self._lines = [CartLine.model_validate(item) for item in (deserialize(raw_lines) if raw_lines else [])]
            self.applied_coupon = AppliedCoupon.model_validate(deserialize(raw_coupon)) if raw_coupon else None
            self.delivery_option = DeliveryOption.model_validate(deserialize(raw_delivery)) if raw_delivery else None
        except (ValueError, ValidationError) as exc:
            logger.error("cart.stored_state_corrupt", extra={"error": str(exc)})
            self._lines = []
            self.applied_coupon = None
            self.delivery_option = None

        if not self._lines:
            self.applied_coupon = None
        return self
