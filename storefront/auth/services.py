from typing import Any, Dict, Optional
from storefront.auth.constants import (INVALID_CREDENTIALS_MESSAGE, INVALID_PASSWORD_FORMAT_MESSAGE,
                                       SIGNIN_NETWORK_ERROR_MESSAGE, SIGNIN_SERVER_ERROR_MESSAGE,
                                       SIGNUP_FAILED_MESSAGE, logger)
from storefront.auth.models import SignInIn, SignUpIn, UserData, UserSession
from storefront.auth.session_store import AuthSessionStore
from storefront.auth.validators import validate_signin, validate_signup
from storefront.common.custom_exceptions import BusinessRejection, InputValidationError, TransportError


def _first(errors: Dict[str, str]) -> str:
    return next(iter(errors.values()))


async def sign_in(api, session_store: AuthSessionStore, form: SignInIn) -> UserSession:
    errors = validate_signin(form)
    if errors:
        raise InputValidationError(_first(errors), field_errors=errors)

    logger.info("signin.attempt", extra={"email": form.email})
    try:
        payload = await api.sign_in(form.email.strip(), form.password)
    except TransportError as exc:
        if exc.upstream_status == 401:
            logger.info("signin.rejected", extra={"email": form.email})
            raise BusinessRejection(INVALID_CREDENTIALS_MESSAGE, status_code=401) from exc
        if exc.upstream_status == 400:
            raise InputValidationError(INVALID_PASSWORD_FORMAT_MESSAGE,
                                       field_errors={"password": INVALID_PASSWORD_FORMAT_MESSAGE}) from exc
        if exc.upstream_status is None:
            raise TransportError(SIGNIN_NETWORK_ERROR_MESSAGE, timeout=exc.timeout) from exc
        raise TransportError(SIGNIN_SERVER_ERROR_MESSAGE, upstream_status=exc.upstream_status) from exc

    user = UserData.from_signin_payload(payload)
    if not session_store.sign_in(user):
        # 2xx without a token cannot start a session
        raise TransportError(SIGNIN_SERVER_ERROR_MESSAGE, payload=payload)

    session = session_store.get_user()
    if session is None:
        raise TransportError(SIGNIN_SERVER_ERROR_MESSAGE)
    logger.info("signin.success", extra={"user_id": session.id})
    return session


def signup_payload(form: SignUpIn) -> Dict[str, Any]:
    digits = "".join(c for c in form.phone if c.isdigit())
    return {
        "firstName": form.first_name.strip(),
        "lastName": form.last_name.strip(),
        "email": form.email.strip(),
        "phone": f"{form.country_code}{digits}",
        "password": form.password,
    }


async def sign_up(api, session_store: AuthSessionStore, form: SignUpIn) -> Optional[UserSession]:
    """Create the account; returns the new session when the shop signs the user straight in."""
    errors = validate_signup(form)
    if errors:
        raise InputValidationError(_first(errors), field_errors=errors)

    logger.info("signup.attempt", extra={"email": form.email})
    try:
        payload = await api.sign_up(signup_payload(form))
    except TransportError as exc:
        body = exc.payload if isinstance(exc.payload, dict) else {}
        if isinstance(body.get("errors"), dict) and body["errors"]:
            field_errors = {k: str(v) for k, v in body["errors"].items()}
            raise InputValidationError(_first(field_errors), field_errors=field_errors) from exc
        if exc.upstream_status is not None and 400 <= exc.upstream_status < 500:
            raise BusinessRejection(body.get("message") or body.get("error") or SIGNUP_FAILED_MESSAGE) from exc
        raise

    logger.info("signup.success", extra={"email": form.email})
    user = UserData.from_signin_payload(payload)
    if user.token and session_store.sign_in(user):
        return session_store.get_user()
    return None


async def sign_out(api, session_store: AuthSessionStore) -> None:
    try:
        await api.sign_out()
    except TransportError as exc:
        # the local session ends regardless
        logger.warning("signout.remote_failed", extra={"error": exc.message})
    session_store.sign_out()
