CART_STORAGE_KEY = "guest-cart"
COUPON_STORAGE_KEY = "guest-coupon"
DELIVERY_STORAGE_KEY = "guest-delivery"

BLANK_COUPON_MESSAGE = "Please enter a coupon code"
DEFAULT_COUPON_REJECTION = "Invalid coupon code"
COUPON_TRANSPORT_MESSAGE = "Failed to validate coupon. Please try again."

CART_LOAD_FAILED_MESSAGE = "Failed to load cart"
CART_UPDATE_FAILED_MESSAGE = "Failed to update cart item"
CART_REMOVE_FAILED_MESSAGE = "Failed to remove item from cart"
CART_CLEAR_FAILED_MESSAGE = "Failed to clear cart"
