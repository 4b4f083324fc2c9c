AUTH_USER_PATH = "/api/auth/user"
SIGNIN_PATH = "/api/auth/signin"
SIGNUP_PATH = "/api/auth/signup"
SIGNOUT_PATH = "/api/auth/signout"

PRODUCTS_PATH = "/api/products"
CART_PATH = "/api/cart"
DELIVERY_OPTIONS_PATH = "/api/delivery-options"
COUPON_VALIDATE_PATH = "/api/coupons/validate"

ORDERS_PATH = "/api/orders"
USER_ORDERS_PATH = "/api/orders/user"
PLACE_ORDER_PATH = "/api/orders/place"

# forwarded to the shop api with every credentialed call
AUTH_COOKIE_NAME = "auth_token"

NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."
TIMEOUT_ERROR_MESSAGE = "The shop took too long to respond. Please try again."
