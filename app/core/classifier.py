"""Member/guest classification by issuer domain."""
from __future__ import annotations
import enum


class AccountKind(enum.Enum):
    """Directory account type; the value is Graph's userType."""
    MEMBER = "member"
    GUEST = "guest"


def is_issuer_email(email: str, issuer_domain: str) -> bool:
    """Case-insensitive suffix match of the issuer domain against the email."""
    return email.lower().endswith(issuer_domain.lower())


def classify(email: str, issuer_domain: str) -> AccountKind:
    """Return MEMBER for emails in the issuer domain, GUEST for everything else."""
    if is_issuer_email(email, issuer_domain):
        return AccountKind.MEMBER
    return AccountKind.GUEST


def guest_user_principal_name(email: str, issuer_domain: str) -> str:
    """Build the external UPN Entra ID uses for guests.

    "a@b.com" in tenant "x.com" becomes "a_b.com#EXT#@x.com". Issuer-domain
    emails are returned unchanged.
    """
    if is_issuer_email(email, issuer_domain):
        return email
    return f"{email.replace('@', '_')}#EXT#@{issuer_domain}"
