"""Command-line onboarding: create member/guest accounts and issue Temporary Access Passes.

This module serves as a CLI wrapper around app.core.provisioning_service.
"""
from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.config import AppConfig
from app.core import provisioning_service
from app.core.graph import (
    AuthenticationMethodService,
    GraphClient,
    GraphError,
    InvitationService,
    UserService,
    create_credential,
    GRAPH_BASE_URL,
)
from app.core.models import UserProfile
from app.core.provisioning_service import OnboardingWorkflow, ProvisioningError, WorkflowState
from app.core.validators import parse_account_kind
from scripts import audit


def _build_config(args: argparse.Namespace) -> AppConfig:
    return AppConfig(
        demo_mode=False,
        secret_key="",
        issuer_domain=args.issuer_domain.strip().lower(),
        azure_tenant_id=args.tenant_id or "",
        azure_client_id=args.client_id or "",
        azure_client_secret=args.client_secret or "",
        azure_use_managed_identity=args.managed_identity,
        graph_base_url=args.graph_url,
        tap_settle_delay_seconds=getattr(args, "settle_delay", 2.0),
        tap_max_attempts=getattr(args, "max_attempts", 5),
        invite_redirect_url=getattr(args, "redirect_url", ""),
    )


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Entra ID onboarding helper")
    parser.add_argument("--issuer-domain", default=os.environ.get("AAD_ISSUER_DOMAIN"))
    parser.add_argument("--tenant-id", default=os.environ.get("AZURE_TENANT_ID"))
    parser.add_argument("--client-id", default=os.environ.get("AZURE_CLIENT_ID"))
    parser.add_argument("--client-secret", default=os.environ.get("AZURE_CLIENT_SECRET"))
    parser.add_argument("--managed-identity", action="store_true",
                        default=os.environ.get("AZURE_USE_MANAGED_IDENTITY", "false").lower() == "true")
    parser.add_argument("--graph-url", default=os.environ.get("GRAPH_BASE_URL", GRAPH_BASE_URL))
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    sc = sub.add_parser("create", help="Create a member or guest account")
    sc.add_argument("--email", required=True)
    sc.add_argument("--username", required=True)
    sc.add_argument("--first", required=True)
    sc.add_argument("--last", required=True)
    sc.add_argument("--type", dest="account_type", choices=["auto", "member", "guest"], default="auto")
    sc.add_argument("--settle-delay", type=float, default=float(os.environ.get("TAP_SETTLE_DELAY_SECONDS", "2")))
    sc.add_argument("--max-attempts", type=int, default=int(os.environ.get("TAP_MAX_ATTEMPTS", "5")))

    si = sub.add_parser("invite", help="Send a B2B guest invitation")
    si.add_argument("--email", required=True)
    si.add_argument("--first", required=True)
    si.add_argument("--last", required=True)
    si.add_argument("--redirect-url", default=os.environ.get("INVITE_REDIRECT_URL", "https://myapplications.microsoft.com"))

    sub.add_parser("count", help="Print the number of users in the tenant")

    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if not args.issuer_domain:
        parser.error("Missing --issuer-domain (or AAD_ISSUER_DOMAIN)")

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    cfg = _build_config(args)

    try:
        credential = create_credential(
            cfg.azure_tenant_id, cfg.azure_client_id, cfg.azure_client_secret, cfg.azure_use_managed_identity
        )
    except GraphError as e:
        print(f"[onboard] Error: {e}", file=sys.stderr)
        return 2
    client = GraphClient(cfg.graph_base_url, credential)

    if args.cmd == "count":
        try:
            print(provisioning_service.count_users(UserService(client)))
        except ProvisioningError as e:
            print(f"[count] Error: {e.detail}", file=sys.stderr)
            return 1
        return 0

    if args.cmd == "invite":
        profile = UserProfile(email=args.email.strip().lower(), user_name=args.email.split("@")[0],
                              first_name=args.first, last_name=args.last)
        try:
            invitation = provisioning_service.invite_guest(
                profile, cfg.issuer_domain, cfg.invite_redirect_url,
                invitation_service=InvitationService(client),
            )
        except ProvisioningError as e:
            print(f"[invite] Error: {e.detail}", file=sys.stderr)
            audit.safe_log_onboarding_event(
                "guest_invitation", profile.email, operator=args.operator, tenant=cfg.issuer_domain,
                details={"error": e.detail, "status": e.status}, success=False,
            )
            return 1
        audit.safe_log_onboarding_event(
            "guest_invitation", profile.email, operator=args.operator, tenant=cfg.issuer_domain,
            details={"status": invitation.status, "invited_user_id": invitation.invited_user_id},
        )
        print(f"[invite] {invitation.invited_email}: {invitation.status} {invitation.redeem_url}")
        return 0

    profile = UserProfile(email=args.email.strip().lower(), user_name=args.username,
                          first_name=args.first, last_name=args.last)
    workflow = OnboardingWorkflow(cfg, UserService(client), AuthenticationMethodService(client))
    result = workflow.run(profile, kind=parse_account_kind(args.account_type), operator=args.operator)

    if result.state is WorkflowState.DONE:
        print(f"[create] {result.user_principal_name} created")
        if result.temporary_pass_code:
            print(f"[create] Temporary access pass: {result.temporary_pass_code}")
        else:
            print(f"[create] Password: {result.password}")
        return 0

    print(f"[create] {result.state.value}: {result.error.detail if result.error else 'unknown error'}",
          file=sys.stderr)
    return 3 if result.state is WorkflowState.CREDENTIAL_PENDING else 1


if __name__ == "__main__":
    sys.exit(main())
