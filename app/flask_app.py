"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.
"""
from __future__ import annotations
import ipaddress
import hmac
import logging
import os
import secrets
from tempfile import gettempdir
from typing import Optional

from flask import Flask, session, request, g, abort, redirect, url_for
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from app.config import AppConfig, load_settings
from app.core.graph import create_graph_client


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, graph_client=None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Explicit configuration (loaded from the environment when omitted)
        graph_client: Pre-built Graph client (built from cfg when omitted)
    """
    _configure_logging()
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode

    # Flask session configuration
    app.config["SECRET_KEY"] = cfg.secret_key
    if cfg.secret_key_fallbacks:
        app.config["SECRET_KEY_FALLBACKS"] = cfg.secret_key_fallbacks

    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "onboarding_flask_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = cfg.session_cookie_secure

    Session(app)

    # Trust X-Forwarded-* headers from proxy (nginx / App Service front end)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    trusted_proxy_networks = []
    for entry in cfg.trusted_proxy_ips.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            trusted_proxy_networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            app.logger.warning("Ignoring invalid TRUSTED_PROXY_IPS entry: %s", entry)

    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks
    app.config["CSRF_SESSION_KEY"] = "_csrf_token"

    # Directory client shared by all requests
    if graph_client is None and cfg.graph_configured:
        graph_client = create_graph_client(cfg)
    app.config["GRAPH_CLIENT"] = graph_client

    # Register blueprints
    from app.api import health, errors
    from app.api import onboarding

    app.register_blueprint(health.bp)
    app.register_blueprint(onboarding.bp, url_prefix="/onboarding")

    @app.route("/")
    def index():
        return redirect(url_for("onboarding.onboarding_page"))

    errors.register_error_handlers(app)
    _register_middleware(app, trusted_proxy_networks)
    _register_context_processors(app, cfg)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print(f"[flask_app] Onboarding page registered at /onboarding (issuer domain {cfg.issuer_domain})")

    if graph_client is None:
        print("[flask_app] WARNING: No Microsoft Graph client configured")

    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _register_middleware(app: Flask, trusted_proxy_networks: list):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Validate proxy headers from trusted sources only."""
        original_remote = request.environ.get("werkzeug.proxy_fix.orig_remote_addr")
        if original_remote:
            try:
                address = ipaddress.ip_address(original_remote)
                if not any(address in network for network in trusted_proxy_networks):
                    abort(400, description="Untrusted proxy")
            except ValueError:
                abort(400, description="Invalid proxy address")

        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto and forwarded_proto != "https":
            abort(400, description="Invalid forwarded protocol")

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and "," in forwarded_for:
            abort(400, description="Multiple forwarded clients not permitted")

        g.csrf_token = _generate_csrf_token()

    @app.before_request
    def enforce_csrf() -> None:
        """Validate CSRF token for state-changing requests."""
        if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
            return

        submitted_token = request.form.get("csrf_token") or request.headers.get("X-CSRF-Token", "")

        csrf_session_key = app.config["CSRF_SESSION_KEY"]
        session_token = session.get(csrf_session_key, "")

        if not session_token or not submitted_token or not hmac.compare_digest(session_token, submitted_token):
            abort(400, description="CSRF validation failed")


def _register_context_processors(app: Flask, cfg: AppConfig):
    """Register context processors for templates."""

    @app.context_processor
    def inject_global_context():
        """Inject global variables into all templates."""
        return {
            "csrf_token": g.get("csrf_token") or _generate_csrf_token(),
            "issuer_domain": cfg.issuer_domain,
            "demo_mode": cfg.demo_mode,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _generate_csrf_token() -> str:
    """Generate or retrieve CSRF token for current session."""
    csrf_session_key = "_csrf_token"
    token = session.get(csrf_session_key)
    if not token:
        token = secrets.token_urlsafe(32)
        session[csrf_session_key] = token
    return token
