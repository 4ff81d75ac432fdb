"""Tests for the onboarding command-line interface."""
from unittest.mock import Mock

import pytest

from app.core.graph import GraphAPIError
from scripts import onboard

BASE_ARGS = ["--issuer-domain", "issuer.com", "--tenant-id", "t", "--client-id", "c", "--client-secret", "s"]


@pytest.fixture
def cli_graph(monkeypatch, fake_graph):
    monkeypatch.setattr(onboard, "create_credential", lambda *args, **kwargs: Mock())
    monkeypatch.setattr(onboard, "GraphClient", lambda *args, **kwargs: fake_graph)
    return fake_graph


def _create_args(email="tst5@issuer.com", *extra):
    return BASE_ARGS + [
        "create", "--email", email, "--username", "tst5", "--first", "first-tst5", "--last", "last-tst5",
        "--settle-delay", "0", *extra,
    ]


def test_no_command_prints_help(capsys):
    assert onboard.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_missing_issuer_domain(monkeypatch):
    monkeypatch.delenv("AAD_ISSUER_DOMAIN", raising=False)
    with pytest.raises(SystemExit) as exc:
        onboard.main(["count"])
    assert exc.value.code == 2


def test_count(cli_graph, capsys):
    assert onboard.main(BASE_ARGS + ["count"]) == 0
    assert capsys.readouterr().out.strip() == "42"


def test_create_member_prints_access_pass(cli_graph, capsys):
    assert onboard.main(_create_args()) == 0

    out = capsys.readouterr().out
    assert "tst5@issuer.com created" in out
    assert "Temporary access pass: TAP-CODE-123" in out


def test_create_guest_prints_password(cli_graph, capsys):
    assert onboard.main(_create_args("ext@other.com")) == 0

    out = capsys.readouterr().out
    assert "ext_other.com#EXT#@issuer.com created" in out
    assert "Password: " in out
    assert cli_graph.paths("POST") == ["/users"]


def test_create_domain_mismatch_fails(cli_graph, capsys):
    assert onboard.main(_create_args("ext@other.com", "--type", "member")) == 1
    assert "failed" in capsys.readouterr().err
    assert cli_graph.calls == []


def test_create_access_pass_failure_is_pending(cli_graph, capsys):
    cli_graph.tap_error = GraphAPIError(403, "Policy disabled", "/users/x")

    assert onboard.main(_create_args()) == 3
    assert "credential_pending" in capsys.readouterr().err


def test_invite(cli_graph, capsys):
    args = BASE_ARGS + ["invite", "--email", "ext@other.com", "--first", "Ext", "--last", "User",
                        "--redirect-url", "https://myapps"]

    assert onboard.main(args) == 0
    assert "PendingAcceptance" in capsys.readouterr().out
    assert cli_graph.calls[0][2]["inviteRedirectUrl"] == "https://myapps"


def test_invite_rejects_issuer_domain(cli_graph, capsys):
    args = BASE_ARGS + ["invite", "--email", "tst5@issuer.com", "--first", "a", "--last", "b"]

    assert onboard.main(args) == 1
    assert "[invite] Error" in capsys.readouterr().err


def test_missing_client_secret_is_credential_error(monkeypatch, capsys):
    monkeypatch.delenv("AZURE_CLIENT_SECRET", raising=False)
    monkeypatch.delenv("AZURE_USE_MANAGED_IDENTITY", raising=False)

    assert onboard.main(["--issuer-domain", "issuer.com", "--tenant-id", "t", "--client-id", "c", "count"]) == 2
    assert "[onboard] Error" in capsys.readouterr().err
