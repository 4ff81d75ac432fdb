"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from app.core.graph import GRAPH_BASE_URL

DEMO_ISSUER_DOMAIN = "contoso.onmicrosoft.com"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    issuer_domain: str
    secret_key_fallbacks: list[str] = field(default_factory=list)
    session_cookie_secure: bool = True
    trusted_proxy_ips: str = "127.0.0.1/32,::1/128"

    # Microsoft Graph
    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""
    azure_use_managed_identity: bool = False
    azure_use_keyvault: bool = False
    graph_base_url: str = GRAPH_BASE_URL

    # Temporary Access Pass
    tap_settle_delay_seconds: float = 2.0
    tap_max_attempts: int = 5
    tap_backoff_max_seconds: float = 8.0

    # Guest invitations
    invite_redirect_url: str = ""

    # Onboarding page
    sample_email: str = ""

    @property
    def graph_configured(self) -> bool:
        """Whether enough settings are present to build a Graph credential."""
        if self.azure_use_managed_identity:
            return True
        return bool(self.azure_tenant_id and self.azure_client_id and self.azure_client_secret)

    @property
    def sample_user_name(self) -> str:
        return self.sample_email.split("@", 1)[0]


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).strip().lower() == "true"


def _env_number(name: str, default, cast):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number, got '{raw}'") from exc


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_bool("DEMO_MODE")
    azure_use_keyvault = _env_bool("AZURE_USE_KEYVAULT")
    if demo_mode and azure_use_keyvault:
        print("[settings] WARNING: DEMO_MODE=true requires AZURE_USE_KEYVAULT=false (runtime guard)")
        azure_use_keyvault = False

    # Flask secret key
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    secret_key_fallbacks = [
        key.strip()
        for key in os.environ.get("FLASK_SECRET_KEY_FALLBACKS", "").split(",")
        if key.strip()
    ]
    session_cookie_secure = _env_bool("FLASK_SESSION_COOKIE_SECURE", True)

    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        is_testing = os.environ.get("PYTEST_CURRENT_TEST") is not None
        if demo_mode or is_testing:
            trusted_proxy_ips = "127.0.0.1/32,::1/128"
        else:
            raise RuntimeError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")

    # Directory
    issuer_domain = _get_or_generate("AAD_ISSUER_DOMAIN", demo_default=DEMO_ISSUER_DOMAIN, demo_mode=demo_mode)
    issuer_domain = issuer_domain.strip().lstrip("@").lower()

    azure_use_managed_identity = _env_bool("AZURE_USE_MANAGED_IDENTITY")
    azure_tenant_id = os.environ.get("AZURE_TENANT_ID", "")
    azure_client_id = os.environ.get("AZURE_CLIENT_ID", "")
    azure_client_secret = _load_secret_from_file("azure_client_secret", "AZURE_CLIENT_SECRET") or ""
    graph_base_url = os.environ.get("GRAPH_BASE_URL", GRAPH_BASE_URL).rstrip("/")
    if not graph_base_url.startswith("https://"):
        raise RuntimeError(f"GRAPH_BASE_URL must use HTTPS: {graph_base_url}")

    # Temporary Access Pass
    tap_settle_delay_seconds = _env_number("TAP_SETTLE_DELAY_SECONDS", 2.0, float)
    tap_max_attempts = _env_number("TAP_MAX_ATTEMPTS", 5, int)
    tap_backoff_max_seconds = _env_number("TAP_BACKOFF_MAX_SECONDS", 8.0, float)

    invite_redirect_url = os.environ.get("INVITE_REDIRECT_URL", "https://myapplications.microsoft.com")
    sample_email = os.environ.get("ONBOARDING_SAMPLE_EMAIL", f"tst4@{issuer_domain}")

    cfg = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        issuer_domain=issuer_domain,
        secret_key_fallbacks=secret_key_fallbacks,
        session_cookie_secure=session_cookie_secure,
        trusted_proxy_ips=trusted_proxy_ips,
        azure_tenant_id=azure_tenant_id,
        azure_client_id=azure_client_id,
        azure_client_secret=azure_client_secret,
        azure_use_managed_identity=azure_use_managed_identity,
        azure_use_keyvault=azure_use_keyvault,
        graph_base_url=graph_base_url,
        tap_settle_delay_seconds=tap_settle_delay_seconds,
        tap_max_attempts=tap_max_attempts,
        tap_backoff_max_seconds=tap_backoff_max_seconds,
        invite_redirect_url=invite_redirect_url,
        sample_email=sample_email,
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    identity_label = "managed-identity" if azure_use_managed_identity else "client-secret"
    print(f"[settings] Mode={mode_label}; issuer_domain={issuer_domain}; graph_auth={identity_label}")
    if not cfg.graph_configured:
        print("[settings] WARNING: Microsoft Graph credentials missing; onboarding submissions will fail.")

    return cfg
