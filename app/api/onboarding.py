"""Onboarding page: create member/guest accounts and issue Temporary Access Passes."""
from __future__ import annotations
import logging

from flask import Blueprint, render_template, request, current_app, jsonify

from scripts import audit
from app.core.classifier import AccountKind
from app.core import provisioning_service
from app.core.graph import AuthenticationMethodService, InvitationService, UserService
from app.core.provisioning_service import (
    OnboardingResult,
    OnboardingWorkflow,
    ProvisioningError,
    RemoteServiceError,
    WorkflowState,
)
from app.core.validators import parse_account_kind, profile_from_form

bp = Blueprint("onboarding", __name__)
logger = logging.getLogger(__name__)

# Header set by App Service authentication in front of the app
PRINCIPAL_HEADER = "X-MS-CLIENT-PRINCIPAL-NAME"


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _graph_client():
    client = current_app.config.get("GRAPH_CLIENT")
    if client is None:
        raise RemoteServiceError("Directory client is not configured (set AZURE_* settings)")
    return client


def _operator() -> str:
    return request.headers.get(PRINCIPAL_HEADER) or "anonymous"


def _sample_form() -> dict:
    """Values pre-populated on first load."""
    cfg = current_app.config["APP_CONFIG"]
    user_name = cfg.sample_user_name
    return {
        "email": cfg.sample_email,
        "user_name": user_name,
        "first_name": f"first-{user_name}",
        "last_name": f"last-{user_name}",
        "account_type": "auto",
    }


def _submitted_form() -> dict:
    return {
        "email": request.form.get("email", ""),
        "user_name": request.form.get("user_name", ""),
        "first_name": request.form.get("first_name", ""),
        "last_name": request.form.get("last_name", ""),
        "account_type": request.form.get("account_type", "auto"),
    }


def _result_messages(result: OnboardingResult) -> list[tuple[str, str]]:
    """Banner for each outcome; credentials are rendered separately, never in banners."""
    if result.state is WorkflowState.DONE:
        return [("success", f"Account {result.user_principal_name} created.")]

    if result.state is WorkflowState.CREDENTIAL_PENDING:
        if result.kind is AccountKind.GUEST:
            return [(
                "warning",
                f"Account {result.user_principal_name} may have been created, but the directory "
                "returned no id. Verify it in the Entra admin center before sharing any credentials.",
            )]
        return [(
            "warning",
            f"Account {result.user_principal_name} created, but the temporary access pass could "
            "not be issued yet. Issue one from the Entra admin center or retry later.",
        )]

    error = result.error
    if isinstance(error, provisioning_service.DomainMismatchError):
        return [("error", f"Email domain does not match the account type: {error.detail}")]
    if isinstance(error, RemoteServiceError):
        return [("error", f"Directory service rejected the request: {error.detail}")]
    return [("error", "Onboarding failed.")]


def _render(form: dict, status: int = 200, **context):
    context.setdefault("flash_messages", [])
    return render_template(
        "onboarding.html",
        title="Onboarding",
        form=form,
        **context,
    ), status


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.get("/")
def onboarding_page():
    """Onboarding form pre-populated with a sample user."""
    return _render(_sample_form())


@bp.post("/")
def onboarding_submit():
    """Create the account and, for members, issue a Temporary Access Pass."""
    cfg = current_app.config["APP_CONFIG"]
    form = _submitted_form()

    try:
        profile = profile_from_form(request.form)
        kind = parse_account_kind(form["account_type"])
    except ValueError as exc:
        return _render(form, 400, flash_messages=[("error", f"Validation error: {exc}")])

    try:
        client = _graph_client()
    except RemoteServiceError as exc:
        result = OnboardingResult(state=WorkflowState.FAILED, email=profile.email, error=exc)
        return _render(form, flash_messages=_result_messages(result), result=result)

    workflow = OnboardingWorkflow(cfg, UserService(client), AuthenticationMethodService(client))
    result = workflow.run(profile, kind=kind, operator=_operator())
    logger.info("Onboarding %s finished in state %s", profile.email, result.state.value)

    return _render(form, flash_messages=_result_messages(result), result=result)


@bp.post("/invite")
def onboarding_invite():
    """Send a B2B invitation to an external user."""
    cfg = current_app.config["APP_CONFIG"]
    form = _submitted_form()
    operator = _operator()

    try:
        profile = profile_from_form(request.form)
    except ValueError as exc:
        return _render(form, 400, flash_messages=[("error", f"Validation error: {exc}")])

    try:
        invitation = provisioning_service.invite_guest(
            profile,
            cfg.issuer_domain,
            cfg.invite_redirect_url,
            invitation_service=InvitationService(_graph_client()),
        )
    except ProvisioningError as exc:
        audit.safe_log_onboarding_event(
            "guest_invitation",
            profile.email,
            operator=operator,
            tenant=cfg.issuer_domain,
            details={"error": exc.detail, "status": exc.status},
            success=False,
        )
        return _render(form, flash_messages=[("error", f"Failed to invite '{profile.email}': {exc.detail}")])

    audit.safe_log_onboarding_event(
        "guest_invitation",
        profile.email,
        operator=operator,
        tenant=cfg.issuer_domain,
        details={"status": invitation.status, "invited_user_id": invitation.invited_user_id},
        success=True,
    )
    return _render(
        form,
        flash_messages=[("success", f"Invitation sent to {invitation.invited_email}.")],
        invitation=invitation,
    )


@bp.get("/users/count")
def users_count():
    """Number of users in the tenant (JSON)."""
    count = provisioning_service.count_users(UserService(_graph_client()))
    return jsonify({"count": count})
