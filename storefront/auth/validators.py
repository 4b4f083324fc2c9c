import re
from typing import Dict
from email_validator import EmailNotValidError, validate_email
from storefront.auth.constants import logger
from storefront.auth.models import SignInIn, SignUpIn

_NON_DIGITS = re.compile(r"\D")


def normalize_email_address(email: str) -> str:
    """
    Validate and return normalized email (lowercased, normalized by email-validator).
    Raises ValueError if invalid.
    """
    try:
        v = validate_email(email, check_deliverability=False)
        return v.normalized.lower()
    except EmailNotValidError as e:
        raise ValueError(str(e))


def validate_password(password: str, min_length: int = 6) -> tuple[bool, str]:
    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"
    if not (any(c.islower() for c in password) and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)):
        return False, "Password should include uppercase, lowercase letters and numbers"
    return True, "OK"


def _check_name(value: str, label: str) -> str:
    if not value.strip():
        return f"{label} is required"
    if len(value.strip()) < 2:
        return f"{label} must be at least 2 characters"
    return ""


def validate_signup(form: SignUpIn) -> Dict[str, str]:
    """Field -> message for every problem in the sign-up form; empty when it can be sent."""
    errors: Dict[str, str] = {}

    for field, label, value in (("firstName", "First name", form.first_name),
                                ("lastName", "Last name", form.last_name)):
        msg = _check_name(value, label)
        if msg:
            errors[field] = msg

    if not form.email.strip():
        errors["email"] = "Email is required"
    else:
        try:
            normalize_email_address(form.email.strip())
        except ValueError:
            errors["email"] = "Please enter a valid email address"

    if not form.phone.strip():
        errors["phone"] = "Phone number is required"
    elif len(_NON_DIGITS.sub("", form.phone)) != 10:
        errors["phone"] = "Please enter a valid 10-digit phone number"

    if not form.password:
        errors["password"] = "Password is required"
    else:
        ok, detail = validate_password(form.password)
        if not ok:
            errors["password"] = detail

    if not form.confirm_password:
        errors["confirmPassword"] = "Please confirm your password"
    elif form.password != form.confirm_password:
        errors["confirmPassword"] = "Passwords do not match"

    if errors:
        logger.info("signup.validation.failed", extra={"fields": sorted(errors)})
    return errors


def validate_signin(form: SignInIn) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not form.email.strip():
        errors["email"] = "Email is required"
    else:
        try:
            normalize_email_address(form.email.strip())
        except ValueError:
            errors["email"] = "Please enter a valid email address"
    if not form.password:
        errors["password"] = "Password is required"
    return errors
