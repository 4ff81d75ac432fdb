"""Value objects passed between the onboarding page and the provisioning service."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from app.core.classifier import AccountKind


@dataclass(frozen=True)
class UserProfile:
    """Form input for one provisioning call."""
    email: str
    user_name: str
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AccountRecord:
    """Account created in the directory. Never persisted."""
    user_principal_name: str
    directory_id: str
    kind: AccountKind
    generated_password: Optional[str] = None


@dataclass(frozen=True)
class AccessCredential:
    """Temporary Access Pass issued to a member account."""
    owner_email: str
    temporary_pass_code: str
    validity_minutes: int = 60
    single_use: bool = True


@dataclass(frozen=True)
class InvitationRecord:
    """Result of a B2B guest invitation."""
    invited_email: str
    redeem_url: str
    status: str
    invited_user_id: Optional[str] = None
