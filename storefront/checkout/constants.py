from decimal import Decimal

ADDRESS_STORAGE_KEY = "guest-shipping"
PAYMENT_STORAGE_KEY = "checkout-payment"

CHARGE_RATE = Decimal("0.02")
MIN_CHARGE = Decimal(5)

EMPTY_CART_MESSAGE = "Cart is empty"
MISSING_ADDRESS_MESSAGE = "Shipping address is required"
MISSING_DELIVERY_MESSAGE = "Delivery option must be selected"
INCOMPLETE_PAYMENT_MESSAGE = "Payment information is incomplete"
ORDER_FAILED_MESSAGE = "Failed to place order. Please try again."
