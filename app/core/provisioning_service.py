"""
Provisioning Service Layer: Member/Guest Onboarding

This module provides the onboarding logic used by both the Flask page and the
CLI. It classifies the user by issuer domain, creates the directory account and,
for members, issues a Temporary Access Pass (TAP) so the user can sign in once
and register their own authentication methods.

Architecture:
    Onboarding page (/onboarding/*) ──┐
                                      ├──> provisioning_service.py ──> app.core.graph ──> Microsoft Graph
    CLI (scripts/onboard.py) ─────────┘

Features:
    - Member accounts: UPN = email, placeholder password, TAP after creation
    - Guest accounts: synthesized #EXT# UPN, federated identity, generated password
    - B2B invitations for external users
    - Bounded retry with backoff while a new account replicates
    - Standardized error handling via ProvisioningError subclasses
"""

from __future__ import annotations
import enum
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.classifier import AccountKind, classify, guest_user_principal_name, is_issuer_email
from app.core.graph import (
    AuthenticationMethodService,
    GraphAPIError,
    GraphError,
    InvitationService,
    UserService,
)
from app.core.models import AccessCredential, AccountRecord, InvitationRecord, UserProfile
from scripts import audit

logger = logging.getLogger(__name__)

PASSWORD_SUFFIX = "-AC"
PASSWORD_POLICIES = "DisablePasswordExpiration"
TAP_LIFETIME_MINUTES = 60

# Range of each random block in the placeholder password
_RANDOM_BLOCK_MIN = 100_000_000
_RANDOM_BLOCK_MAX = 2**31 - 1


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class ProvisioningError(Exception):
    """Onboarding error with an HTTP-like status and a user-facing detail."""

    status = 500

    def __init__(self, detail: str, status: Optional[int] = None):
        self.detail = detail
        if status is not None:
            self.status = status
        super().__init__(detail)

    def to_dict(self) -> dict:
        return {"status": str(self.status), "detail": self.detail, "type": type(self).__name__}


class DomainMismatchError(ProvisioningError):
    """Email domain is inconsistent with the requested account kind."""
    status = 400


class RemoteServiceError(ProvisioningError):
    """A Microsoft Graph call failed.

    Attributes:
        remote_status: HTTP status returned by Graph (None for transport errors)
        not_found: True when Graph reported the target object as missing
    """
    status = 502

    def __init__(self, detail: str, remote_status: Optional[int] = None, not_found: bool = False):
        super().__init__(detail)
        self.remote_status = remote_status
        self.not_found = not_found


class PartialProvisioningError(ProvisioningError):
    """The account exists but no usable credential could be issued for it."""
    status = 202

    def __init__(self, detail: str, account: AccountRecord):
        super().__init__(detail)
        self.account = account


def _remote_call(action: str, fn: Callable, *args, **kwargs):
    """Run a Graph call, translating client errors into RemoteServiceError."""
    try:
        return fn(*args, **kwargs)
    except GraphAPIError as exc:
        raise RemoteServiceError(
            f"{action} failed: {exc.message}",
            remote_status=exc.status_code,
            not_found=exc.is_not_found,
        ) from exc
    except GraphError as exc:
        raise RemoteServiceError(f"{action} failed: {exc}") from exc
    except requests.RequestException as exc:
        raise RemoteServiceError(f"{action} failed: {exc}") from exc


# ─────────────────────────────────────────────────────────────────────────────
# Utility Functions
# ─────────────────────────────────────────────────────────────────────────────

def generate_placeholder_password() -> str:
    """
    Generate the initial password set on new accounts.

    Four random 9-10 digit blocks plus a fixed suffix. Members never use it
    (they sign in with the TAP); guests get it shown once on the page.
    """
    blocks = [
        str(_RANDOM_BLOCK_MIN + secrets.randbelow(_RANDOM_BLOCK_MAX - _RANDOM_BLOCK_MIN))
        for _ in range(4)
    ]
    return "".join(blocks) + PASSWORD_SUFFIX


def build_member_payload(profile: UserProfile, password: str) -> dict:
    """Graph user resource for an account in the issuer domain."""
    return {
        "accountEnabled": True,
        "userPrincipalName": profile.email,
        "displayName": profile.user_name,
        "surname": profile.last_name,
        "givenName": profile.first_name,
        "mailNickname": profile.user_name,
        "userType": AccountKind.MEMBER.value,
        "passwordProfile": {
            "password": password,
            "forceChangePasswordNextSignIn": False,
        },
        "passwordPolicies": PASSWORD_POLICIES,
    }


def build_guest_payload(profile: UserProfile, issuer_domain: str, password: str) -> dict:
    """Graph user resource for an external account bound to a federated identity."""
    return {
        "accountEnabled": True,
        "displayName": profile.full_name or profile.user_name,
        "surname": profile.last_name,
        "givenName": profile.first_name,
        "mailNickname": profile.user_name,
        "otherMails": [profile.email],
        "userType": AccountKind.GUEST.value,
        "userPrincipalName": guest_user_principal_name(profile.email, issuer_domain),
        "identities": [
            {
                "signInType": "federated",
                "issuer": issuer_domain,
                "issuerAssignedId": profile.email,
            }
        ],
        "passwordProfile": {
            "password": password,
            "forceChangePasswordNextSignIn": False,
        },
        "passwordPolicies": PASSWORD_POLICIES,
    }


def _check_domain(email: str, issuer_domain: str, kind: AccountKind) -> None:
    in_issuer_domain = is_issuer_email(email, issuer_domain)
    if kind is AccountKind.MEMBER and not in_issuer_domain:
        raise DomainMismatchError(f"Member email '{email}' does not belong to {issuer_domain}")
    if kind is AccountKind.GUEST and in_issuer_domain:
        raise DomainMismatchError(f"Guest email '{email}' must be from a domain other than {issuer_domain}")


# ─────────────────────────────────────────────────────────────────────────────
# Provisioning Operations
# ─────────────────────────────────────────────────────────────────────────────

def provision(
    profile: UserProfile,
    issuer_domain: str,
    *,
    user_service: UserService,
    kind: Optional[AccountKind] = None,
) -> AccountRecord:
    """
    Create a member or guest account in the directory.

    Not idempotent: calling twice for the same email attempts two creations.

    Args:
        profile: Form input
        issuer_domain: Organization's own domain
        user_service: Graph user service
        kind: Force the account kind (defaults to classification by domain)

    Returns:
        AccountRecord of the created account

    Raises:
        DomainMismatchError: Email domain does not fit the requested kind (no remote call made)
        RemoteServiceError: Graph rejected the creation
    """
    kind = kind or classify(profile.email, issuer_domain)
    _check_domain(profile.email, issuer_domain, kind)

    password = generate_placeholder_password()
    if kind is AccountKind.MEMBER:
        payload = build_member_payload(profile, password)
    else:
        payload = build_guest_payload(profile, issuer_domain, password)

    created = _remote_call(f"Creating {kind.value} account", user_service.create_user, payload)

    return AccountRecord(
        user_principal_name=created.get("userPrincipalName") or payload["userPrincipalName"],
        directory_id=created.get("id", ""),
        kind=kind,
        generated_password=password if kind is AccountKind.GUEST else None,
    )


def issue_access(
    account_id: str,
    owner_email: str,
    *,
    auth_service: AuthenticationMethodService,
) -> AccessCredential:
    """
    Issue a single-use Temporary Access Pass, valid for TAP_LIFETIME_MINUTES, for an
    existing member account.

    Raises:
        RemoteServiceError: Graph rejected the request (not_found=True while the
            account has not replicated yet)
    """
    result = _remote_call(
        "Issuing temporary access pass",
        auth_service.add_temporary_access_pass,
        account_id,
        lifetime_in_minutes=TAP_LIFETIME_MINUTES,
        is_usable_once=True,
    )
    pass_code = result.get("temporaryAccessPass") or ""
    if not pass_code:
        raise RemoteServiceError("Issuing temporary access pass failed: response carried no pass code")

    return AccessCredential(
        owner_email=owner_email,
        temporary_pass_code=pass_code,
        validity_minutes=TAP_LIFETIME_MINUTES,
        single_use=True,
    )


def invite_guest(
    profile: UserProfile,
    issuer_domain: str,
    redirect_url: str,
    *,
    invitation_service: InvitationService,
) -> InvitationRecord:
    """
    Send a B2B invitation to an external user.

    Raises:
        DomainMismatchError: Email is in the issuer domain
        RemoteServiceError: Graph rejected the invitation
    """
    _check_domain(profile.email, issuer_domain, AccountKind.GUEST)

    invite = _remote_call(
        "Sending invitation",
        invitation_service.invite,
        profile.email,
        profile.full_name,
        redirect_url,
    )
    invited_user = invite.get("invitedUser") or {}
    return InvitationRecord(
        invited_email=invite.get("invitedUserEmailAddress", profile.email),
        redeem_url=invite.get("inviteRedeemUrl", ""),
        status=invite.get("status", ""),
        invited_user_id=invited_user.get("id"),
    )


def count_users(user_service: UserService) -> int:
    """Number of users in the tenant."""
    return _remote_call("Counting users", user_service.count_users)


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator
# ─────────────────────────────────────────────────────────────────────────────

class WorkflowState(enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"
    CREDENTIAL_PENDING = "credential_pending"


@dataclass
class OnboardingResult:
    """What the onboarding page renders after a submission."""
    state: WorkflowState
    email: str
    kind: Optional[AccountKind] = None
    user_principal_name: Optional[str] = None
    temporary_pass_code: Optional[str] = None
    password: Optional[str] = None
    error: Optional[ProvisioningError] = None

    @property
    def succeeded(self) -> bool:
        return self.state is WorkflowState.DONE


def _account_not_visible_yet(exc: BaseException) -> bool:
    return isinstance(exc, RemoteServiceError) and exc.not_found


class OnboardingWorkflow:
    """
    Runs one onboarding submission: classify → create account → (member) TAP.

    Taxonomy errors are turned into a result state; anything else propagates.

    Usage:
        workflow = OnboardingWorkflow(cfg, UserService(client), AuthenticationMethodService(client))
        result = workflow.run(UserProfile("tst5@contoso.com", "tst5", "first", "last"))
    """

    def __init__(
        self,
        cfg,
        user_service: UserService,
        auth_service: AuthenticationMethodService,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cfg = cfg
        self.user_service = user_service
        self.auth_service = auth_service
        self._sleep = sleep
        self.state = WorkflowState.IDLE

    def run(
        self,
        profile: UserProfile,
        kind: Optional[AccountKind] = None,
        operator: str = "system",
    ) -> OnboardingResult:
        """Provision the account described by the profile and return the outcome."""
        self.state = WorkflowState.SUBMITTING
        issuer_domain = self.cfg.issuer_domain

        try:
            account = provision(profile, issuer_domain, user_service=self.user_service, kind=kind)
        except (DomainMismatchError, RemoteServiceError) as exc:
            logger.warning("Provisioning %s failed: %s", profile.email, exc.detail)
            requested_kind = kind or classify(profile.email, issuer_domain)
            self._audit(profile, requested_kind, operator, success=False,
                        details={"error": exc.detail, "status": exc.status})
            return self._finish(WorkflowState.FAILED, profile.email, kind=requested_kind, error=exc)

        # No id: the account cannot be confirmed, so no credential is handed out
        if not account.directory_id:
            error = PartialProvisioningError(
                f"Account {account.user_principal_name} was created but Graph returned no id", account
            )
            return self._pending(profile, account, operator, error)

        if account.kind is AccountKind.GUEST:
            self._audit(profile, account.kind, operator, success=True,
                        details={"upn": account.user_principal_name, "directory_id": account.directory_id})
            return self._finish(
                WorkflowState.DONE,
                profile.email,
                kind=account.kind,
                user_principal_name=account.user_principal_name,
                password=account.generated_password,
            )

        try:
            credential = self._issue_with_retry(account)
        except RemoteServiceError as exc:
            error = PartialProvisioningError(
                f"Account {account.user_principal_name} created, but the temporary access pass "
                f"could not be issued: {exc.detail}",
                account,
            )
            return self._pending(profile, account, operator, error)

        self._audit(profile, account.kind, operator, success=True,
                    details={"upn": account.user_principal_name, "directory_id": account.directory_id,
                             "tap_lifetime_minutes": credential.validity_minutes})
        return self._finish(
            WorkflowState.DONE,
            profile.email,
            kind=account.kind,
            user_principal_name=account.user_principal_name,
            temporary_pass_code=credential.temporary_pass_code,
        )

    def _issue_with_retry(self, account: AccountRecord) -> AccessCredential:
        """Issue the TAP, retrying while Graph has not replicated the new account."""
        settle_delay = float(self.cfg.tap_settle_delay_seconds)
        if settle_delay > 0:
            self._sleep(settle_delay)

        retrying = Retrying(
            stop=stop_after_attempt(max(1, int(self.cfg.tap_max_attempts))),
            wait=wait_exponential(multiplier=1, min=1, max=float(self.cfg.tap_backoff_max_seconds)),
            retry=retry_if_exception(_account_not_visible_yet),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(
            issue_access,
            account.directory_id,
            account.user_principal_name,
            auth_service=self.auth_service,
        )

    def _pending(self, profile: UserProfile, account: AccountRecord, operator: str,
                 error: PartialProvisioningError) -> OnboardingResult:
        logger.error("Onboarding %s incomplete: %s", profile.email, error.detail)
        self._audit(profile, account.kind, operator, success=False,
                    details={"upn": account.user_principal_name, "directory_id": account.directory_id,
                             "error": error.detail, "status": error.status})
        return self._finish(
            WorkflowState.CREDENTIAL_PENDING,
            profile.email,
            kind=account.kind,
            user_principal_name=account.user_principal_name,
            error=error,
        )

    def _finish(self, state: WorkflowState, email: str, **fields) -> OnboardingResult:
        self.state = state
        return OnboardingResult(state=state, email=email, **fields)

    def _audit(self, profile: UserProfile, kind: AccountKind, operator: str, *, success: bool,
               details: dict) -> None:
        event_type = "member_onboarding" if kind is AccountKind.MEMBER else "guest_onboarding"
        audit.safe_log_onboarding_event(
            event_type,
            profile.email,
            operator=operator,
            tenant=self.cfg.issuer_domain,
            details=details,
            success=success,
        )
