"""Audit logging utilities for onboarding operations."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Literal

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "onboarding-events.jsonl"
_DEFAULT_SECRET_PATHS = [
    Path("/run/secrets/audit_log_signing_key"),
    Path(".runtime/secrets/audit_log_signing_key"),
]


def _get_signing_key() -> bytes:
    """Get the audit signing key (read lazily so Key Vault preloading can set it)."""
    if "AUDIT_LOG_SIGNING_KEY" in os.environ:
        return os.environ["AUDIT_LOG_SIGNING_KEY"].strip().encode("utf-8")

    paths = list(_DEFAULT_SECRET_PATHS)
    key_file = os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE")
    if key_file:
        paths.insert(0, Path(key_file))
    for path in paths:
        if path.exists():
            try:
                return path.read_text(encoding="utf-8").strip().encode("utf-8")
            except OSError:
                continue
    return b""


EventType = Literal[
    "member_onboarding",
    "guest_onboarding",
    "guest_invitation",
]


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_onboarding_event(
    event_type: EventType,
    email: str,
    *,
    operator: str = "system",
    tenant: str = "",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append an onboarding event to the audit trail with timestamp and signature.

    Args:
        event_type: Kind of onboarding operation
        email: Email of the onboarded user
        operator: Who performed the operation (admin user, "cli", ...)
        tenant: Issuer domain of the directory
        details: Additional context (UPN, directory id, error)
        success: Whether the operation succeeded

    Credentials (pass codes, passwords) must never be passed in details.
    """
    _ensure_audit_dir()

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "tenant": tenant,
        "email": email,
        "operator": operator,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_onboarding_event(
    event_type: EventType,
    email: str,
    *,
    operator: str = "system",
    tenant: str = "",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log an onboarding event without ever raising.

    Audit failures are reported on stderr so they never break onboarding.

    Returns:
        True if the event was written, False otherwise
    """
    try:
        log_onboarding_event(
            event_type,
            email,
            operator=operator,
            tenant=tenant,
            details=details,
            success=success,
        )
        return True
    except Exception as e:
        print(
            f"[audit] Warning: Failed to log {event_type} event for {email}: {e}",
            file=sys.stderr,
        )
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if computed_sig and hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
