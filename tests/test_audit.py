"""Unit tests for onboarding audit logging."""
import json

from scripts import audit


def test_log_onboarding_event_creates_file(temp_audit_dir):
    """Test that logging creates the audit file with restricted permissions."""
    audit_dir, audit_file = temp_audit_dir

    assert not audit_file.exists()

    audit.log_onboarding_event(
        "member_onboarding",
        "tst5@issuer.com",
        operator="admin",
        tenant="issuer.com",
        details={"upn": "tst5@issuer.com"},
        success=True,
    )

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600
    assert audit_dir.stat().st_mode & 0o777 == 0o700


def test_log_onboarding_event_creates_valid_json(temp_audit_dir):
    """Test that logged events are valid JSON."""
    _, audit_file = temp_audit_dir

    audit.log_onboarding_event(
        "guest_onboarding",
        "ext@other.com",
        operator="system",
        tenant="issuer.com",
        details={"upn": "ext_other.com#EXT#@issuer.com"},
        success=True,
    )

    event = json.loads(audit_file.read_text().splitlines()[0])

    assert event["event_type"] == "guest_onboarding"
    assert event["email"] == "ext@other.com"
    assert event["operator"] == "system"
    assert event["tenant"] == "issuer.com"
    assert event["success"] is True
    assert "timestamp" in event
    assert "signature" in event


def test_log_multiple_events(temp_audit_dir):
    """Test logging multiple events in sequence."""
    _, audit_file = temp_audit_dir

    events = [
        ("member_onboarding", "a@issuer.com", True),
        ("guest_onboarding", "b@other.com", True),
        ("guest_invitation", "c@other.com", False),
    ]
    for event_type, email, success in events:
        audit.log_onboarding_event(event_type, email, success=success)

    lines = audit_file.read_text().splitlines()
    assert len(lines) == 3
    for line, (event_type, email, success) in zip(lines, events):
        event = json.loads(line)
        assert event["event_type"] == event_type
        assert event["email"] == email
        assert event["success"] is success


def test_verify_audit_log_valid_signatures(temp_audit_dir):
    """Test signature verification on untampered log."""
    audit.log_onboarding_event("member_onboarding", "a@issuer.com")
    audit.log_onboarding_event("guest_invitation", "b@other.com")

    assert audit.verify_audit_log() == (2, 2)


def test_verify_audit_log_detects_tampering(temp_audit_dir):
    """Test that modified events fail verification."""
    _, audit_file = temp_audit_dir
    audit.log_onboarding_event("member_onboarding", "a@issuer.com", success=False)

    event = json.loads(audit_file.read_text())
    event["success"] = True
    audit_file.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_verify_audit_log_missing_file(temp_audit_dir):
    assert audit.verify_audit_log() == (0, 0)


def test_unsigned_events_without_key(temp_audit_dir, monkeypatch):
    """An empty signing key writes unsigned events."""
    _, audit_file = temp_audit_dir
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")

    audit.log_onboarding_event("member_onboarding", "a@issuer.com")

    event = json.loads(audit_file.read_text())
    assert "signature" not in event
    assert audit.verify_audit_log() == (1, 0)


def test_signing_key_from_file(temp_audit_dir, monkeypatch, tmp_path):
    key_file = tmp_path / "audit_key"
    key_file.write_text("file-key\n")
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY_FILE", str(key_file))

    assert audit._get_signing_key() == b"file-key"


def test_safe_log_never_raises(temp_audit_dir, monkeypatch, capsys):
    def _boom():
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(audit, "_ensure_audit_dir", _boom)

    assert audit.safe_log_onboarding_event("member_onboarding", "a@issuer.com") is False
    assert "Failed to log member_onboarding" in capsys.readouterr().err
