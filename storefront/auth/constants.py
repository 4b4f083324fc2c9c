from storefront.common.logging_setup import get_logger

logger = get_logger("bloomcart.auth")

SESSION_STORAGE_KEY = "user_session"
AUTH_COOKIE_KEY = "auth_token"
REFRESH_COOKIE_KEY = "refresh_token"
SESSION_ID_KEY = "session_id"

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password. Please check your credentials and try again."
INVALID_PASSWORD_FORMAT_MESSAGE = "Invalid password format."
SIGNIN_SERVER_ERROR_MESSAGE = "Server error. Please try again later."
SIGNIN_NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."
SIGNUP_FAILED_MESSAGE = "Failed to create account. Please try again."
