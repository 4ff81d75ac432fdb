"""Pytest shared fixtures for onboarding tests."""
import os
import pathlib
import sys
import json
from unittest.mock import Mock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("AAD_ISSUER_DOMAIN", "issuer.com")

import pytest
import requests

from app.config.settings import AppConfig
from app.flask_app import create_app
from scripts import audit

ISSUER_DOMAIN = "issuer.com"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting Microsoft Graph.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub(method):
        def _raise(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _raise

    for method in ("get", "post", "patch", "delete"):
        monkeypatch.setattr(requests, method, _stub(method.upper()))


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Isolated audit trail for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "onboarding-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# Configuration & Graph Doubles
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        secret_key="test-secret-key",
        issuer_domain=ISSUER_DOMAIN,
        session_cookie_secure=False,
        trusted_proxy_ips="127.0.0.1/32,::1/128",
        azure_tenant_id="tenant-id",
        azure_client_id="client-id",
        azure_client_secret="client-secret",
        tap_settle_delay_seconds=0,
        tap_max_attempts=3,
        tap_backoff_max_seconds=1,
        invite_redirect_url="https://myapplications.microsoft.com",
        sample_email=f"tst4@{ISSUER_DOMAIN}",
    )
    base.update(overrides)
    return AppConfig(**base)


def graph_response(payload=None, status_code: int = 200, text: str = None):
    """Stand-in for a successful requests.Response returned by GraphClient."""
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    resp.text = text if text is not None else json.dumps(payload or {})
    return resp


class FakeGraph:
    """Routes GraphClient calls by path; records every call made."""

    def __init__(self):
        self.calls = []
        self.tap_code = "TAP-CODE-123"
        self.user_count = 42
        self.tap_error = None
        self.create_error = None
        self.omit_user_id = False

    def post(self, path, json=None, **kwargs):
        self.calls.append(("POST", path, json))
        if path == "/users":
            if self.create_error:
                raise self.create_error
            upn = json["userPrincipalName"]
            if self.omit_user_id:
                return graph_response({"userPrincipalName": upn})
            return graph_response({"id": f"id-{json['mailNickname']}", "userPrincipalName": upn})
        if path.endswith("/authentication/temporaryAccessPassMethods"):
            if self.tap_error:
                raise self.tap_error
            return graph_response({
                "temporaryAccessPass": self.tap_code,
                "lifetimeInMinutes": json["lifetimeInMinutes"],
                "isUsableOnce": json["isUsableOnce"],
            })
        if path == "/invitations":
            return graph_response({
                "invitedUserEmailAddress": json["invitedUserEmailAddress"],
                "inviteRedeemUrl": "https://login.microsoftonline.com/redeem?x=1",
                "status": "PendingAcceptance",
                "invitedUser": {"id": "guest-id"},
            })
        raise AssertionError(f"Unexpected POST {path}")

    def get(self, path, params=None, **kwargs):
        self.calls.append(("GET", path, kwargs.get("headers")))
        if path == "/users/$count":
            return graph_response(text=str(self.user_count))
        raise AssertionError(f"Unexpected GET {path}")

    def paths(self, method=None):
        return [path for verb, path, _ in self.calls if method is None or verb == method]


@pytest.fixture()
def fake_graph():
    return FakeGraph()


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app(fake_graph):
    flask_app = create_app(make_config(), graph_client=fake_graph)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    """Flask test client wired to the fake Graph client."""
    with app.test_client() as client:
        with app.app_context():
            yield client


def get_csrf_token(client) -> str:
    """Get CSRF token from session."""
    client.get("/onboarding/")
    with client.session_transaction() as session:
        return session.get("_csrf_token", "")


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires a real tenant)"
    )
