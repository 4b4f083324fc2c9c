from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from storefront.cart.store import CartStore
from storefront.checkout import logger
from storefront.checkout.constants import (ADDRESS_STORAGE_KEY, CHARGE_RATE, EMPTY_CART_MESSAGE,
                                           INCOMPLETE_PAYMENT_MESSAGE, MIN_CHARGE, MISSING_ADDRESS_MESSAGE,
                                           MISSING_DELIVERY_MESSAGE, ORDER_FAILED_MESSAGE, PAYMENT_STORAGE_KEY)
from storefront.checkout.models import Address, PaymentData, PaymentMethod, StoredPayment
from storefront.common.custom_exceptions import BusinessRejection, InputValidationError, StorageError, TransportError
from storefront.storage.tiers import StorageTier
from storefront.storage.utils import deserialize, serialize

_CENTS = Decimal("0.01")


def payment_charge_for(method: Optional[PaymentMethod], base_amount: Decimal) -> Decimal:
    """Gateway fee: 2% of the discounted subtotal with a ₹5 floor, none for COD and QR."""
    if method is None or not method.charged:
        return Decimal(0)
    return max((base_amount * CHARGE_RATE).quantize(_CENTS, rounding=ROUND_HALF_UP), MIN_CHARGE)


def validate_payment_data(data: Optional[PaymentData]) -> bool:
    if data is None or data.selected_method is None:
        return False
    method = data.selected_method
    if method is PaymentMethod.CARD:
        card = data.card
        return bool(card and card.holder_name and card.number and card.expiry_month
                    and card.expiry_year and card.cvv)
    if method is PaymentMethod.UPI:
        return bool(data.upi_id)
    if method is PaymentMethod.NETBANKING:
        return bool(data.bank_name)
    if method is PaymentMethod.COD:
        return data.cod_confirmed
    if method is PaymentMethod.QRCODE:
        return data.qrcode_confirmed
    return False


def format_delivery_address(address: Address) -> str:
    parts = f"{address.full_name}, {address.address_line1}"
    if address.address_line2:
        parts += f", {address.address_line2}"
    landmark = f"{address.landmark}, " if address.landmark else ""
    return f"{parts}, {landmark}{address.city}, {address.state} {address.postal_code}, {address.country}"


class CheckoutStore:
    """Shipping address and payment selection layered on a CartStore."""

    def __init__(self, cart: CartStore, storage: Optional[StorageTier] = None):
        self.cart = cart
        self.storage = storage
        self.address: Optional[Address] = None
        self.payment: StoredPayment = StoredPayment()

    @property
    def payment_charge(self) -> Decimal:
        return payment_charge_for(self.payment.selected_method,
                                  self.cart.total_price - self.cart.discount_amount)

    @property
    def payable_amount(self) -> Decimal:
        return self.cart.final_amount + self.payment_charge

    def set_address(self, address: Optional[Address]) -> None:
        self.address = address
        self._save(ADDRESS_STORAGE_KEY, address.model_dump(by_alias=True) if address else None)

    def set_payment(self, data: PaymentData) -> bool:
        stored = data.stored()
        stored.complete = validate_payment_data(data)
        self.payment = stored
        self._save(PAYMENT_STORAGE_KEY, stored.model_dump(mode="json"))
        logger.debug("checkout.payment_selected", extra={"method": str(data.selected_method),
                                                         "complete": stored.complete})
        return stored.complete

    def clear(self) -> None:
        self.address = None
        self.payment = StoredPayment()
        self._save(ADDRESS_STORAGE_KEY, None)
        self._save(PAYMENT_STORAGE_KEY, None)

    def validate_order(self) -> List[str]:
        problems = []
        if not self.cart.lines:
            problems.append(EMPTY_CART_MESSAGE)
        if self.address is None:
            problems.append(MISSING_ADDRESS_MESSAGE)
        if self.cart.delivery_option is None:
            problems.append(MISSING_DELIVERY_MESSAGE)
        if not self.payment.complete:
            problems.append(INCOMPLETE_PAYMENT_MESSAGE)
        return problems

    def build_order_payload(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        cart = self.cart
        address = self.address
        payload: Dict[str, Any] = {
            "customerName": address.full_name if address else "",
            "email": address.email if address else "",
            "phone": address.phone if address else "",
            "occasion": "",
            "requirements": "",
            "items": [
                {
                    "productId": line.product_id,
                    "productName": line.name,
                    "quantity": line.quantity,
                    "unitPrice": float(line.unit_price),
                    "totalPrice": float(line.line_total),
                }
                for line in cart.lines
            ],
            "subtotal": float(cart.total_price),
            "deliveryOptionId": cart.delivery_option.id if cart.delivery_option else "",
            "deliveryCharge": 0,
            "paymentMethod": (self.payment.selected_method.server_value
                              if self.payment.selected_method else "COD"),
            "paymentCharges": float(self.payment_charge),
            "deliveryAddress": format_delivery_address(address) if address else "",
            "discountAmount": float(cart.discount_amount),
            "total": float(self.payable_amount),
        }
        if cart.applied_coupon is not None:
            payload["couponCode"] = cart.applied_coupon.code
        if user_id:
            payload["userId"] = user_id
            if address is not None and address.id:
                payload["shippingAddressId"] = address.id
        return payload

    async def place_order(self, api, user_id: Optional[str] = None) -> Dict[str, Any]:
        problems = self.validate_order()
        if problems:
            raise InputValidationError(", ".join(problems), field_errors={"order": ", ".join(problems)})

        payload = self.build_order_payload(user_id)
        logger.info("checkout.place_order", extra={"items": len(payload["items"]), "total": payload["total"],
                                                   "user_id": user_id})
        result = await api.place_order(payload)

        if not result.get("success"):
            reason = result.get("error") or result.get("message") or ORDER_FAILED_MESSAGE
            self.cart.error = reason
            logger.warning("checkout.order_rejected", extra={"reason": reason})
            raise BusinessRejection(reason)

        try:
            await self.cart.clear_synced()
        except TransportError:
            # the order stands; the server cart is reconciled on the next load
            self.cart.clear()
        self.cart.set_delivery_option(None)
        self.clear()
        logger.info("checkout.order_placed", extra={"order_id": (result.get("order") or {}).get("id")})
        return result

    # persistence

    def _save(self, key: str, value: Any) -> None:
        if self.storage is None:
            return
        try:
            if value is None:
                self.storage.remove_item(key)
            else:
                self.storage.set_item(key, serialize(value))
        except StorageError as exc:
            logger.error("checkout.persist_failed", extra={"key": key, "error": exc.message})

    def load(self) -> "CheckoutStore":
        if self.storage is None:
            return self
        try:
            raw_address = self.storage.get_item(ADDRESS_STORAGE_KEY)
            raw_payment = self.storage.get_item(PAYMENT_STORAGE_KEY)
        except StorageError as exc:
            logger.error("checkout.load_failed", extra={"error": exc.message})
            return self
        try:
            self.address = Address.model_validate(deserialize(raw_address)) if raw_address else None
            self.payment = StoredPayment.model_validate(deserialize(raw_payment)) if raw_payment else StoredPayment()
        except (ValueError, ValidationError) as exc:
            logger.error("checkout.stored_state_corrupt", extra={"error": str(exc)})
            self.address = None
            self.payment = StoredPayment()
        return self

    def snapshot(self) -> Dict[str, Any]:
        return {
            "address": self.address.model_dump() if self.address else None,
            "payment": self.payment.model_dump(mode="json"),
            "payment_charge": str(self.payment_charge),
            "payable_amount": str(self.payable_amount),
            "problems": self.validate_order(),
        }
