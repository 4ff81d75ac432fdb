"""Input validation helpers for the onboarding form."""
from __future__ import annotations
from typing import Mapping, Optional

from app.core.classifier import AccountKind
from app.core.models import UserProfile

# Characters Graph rejects in mailNickname
_NICKNAME_FORBIDDEN = set("@()\\[]\";:<>, ")


def normalize_user_name(raw: str) -> str:
    """Normalize and validate the user name used as display name and mail nickname.

    Raises:
        ValueError: If the user name is invalid
    """
    user_name = raw.strip()
    if not user_name:
        raise ValueError("User name is required")
    if len(user_name) > 64:
        raise ValueError("User name must not exceed 64 characters")
    if any(char in _NICKNAME_FORBIDDEN for char in user_name) or not user_name.isascii():
        raise ValueError("User name contains invalid characters")
    if user_name.startswith(".") or user_name.endswith("."):
        raise ValueError("User name cannot start or end with a dot")
    return user_name


def validate_email(email: str) -> str:
    """Validate email address.

    Returns:
        Normalized (trimmed, lowercased) email address

    Raises:
        ValueError: If email is invalid
    """
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValueError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError("Invalid email format")
    if len(email) > 254:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str) -> str:
    """Validate first/last name fields.

    Raises:
        ValueError: If name is invalid
    """
    name = name.strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > 64:
        raise ValueError(f"{field} exceeds maximum length")
    if any(char in name for char in "<>\"'`;&|$"):
        raise ValueError(f"{field} contains invalid characters")
    return name


def parse_account_kind(raw: Optional[str]) -> Optional[AccountKind]:
    """Map the form's account type selector to an AccountKind (None = classify by domain)."""
    value = (raw or "").strip().lower()
    if value in ("", "auto"):
        return None
    try:
        return AccountKind(value)
    except ValueError:
        raise ValueError(f"Unknown account type '{raw}'") from None


def profile_from_form(form: Mapping[str, str]) -> UserProfile:
    """Build a validated UserProfile from submitted form fields.

    Raises:
        ValueError: On the first invalid field
    """
    return UserProfile(
        email=validate_email(form.get("email", "")),
        user_name=normalize_user_name(form.get("user_name", "")),
        first_name=validate_name(form.get("first_name", ""), "First name"),
        last_name=validate_name(form.get("last_name", ""), "Last name"),
    )
