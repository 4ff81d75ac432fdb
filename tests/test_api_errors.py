from types import SimpleNamespace

import pytest
from flask import Flask, abort
from jinja2 import DictLoader

from app.api.errors import register_error_handlers
from app.core.provisioning_service import DomainMismatchError, RemoteServiceError


def _build_app(demo_mode=False):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["DEMO_MODE"] = demo_mode
    app.jinja_loader = DictLoader({
        "errors/error.html": "{{ title }}: {{ message }}",
        "errors/500.html": "{{ title }}|{{ error_message }}",
    })
    app.logger = SimpleNamespace(error=lambda *args, **kwargs: None, warning=lambda *args, **kwargs: None)

    register_error_handlers(app)

    @app.route("/crash")
    def crash():
        raise RuntimeError("boom")

    @app.route("/mismatch")
    def mismatch():
        raise DomainMismatchError("Member email 'ext@other.com' does not belong to issuer.com")

    @app.route("/remote")
    def remote():
        raise RemoteServiceError("Counting users failed: throttled", remote_status=429)

    @app.route("/form/error")
    def form_error():
        abort(400, "invalid payload")

    return app


@pytest.fixture()
def flask_client():
    with _build_app().test_client() as client:
        yield client


def test_provisioning_error_returns_json(flask_client):
    response = flask_client.get("/mismatch", headers={"Accept": "application/json"})

    assert response.status_code == 400
    assert response.get_json() == {
        "status": "400",
        "detail": "Member email 'ext@other.com' does not belong to issuer.com",
        "type": "DomainMismatchError",
    }


def test_remote_error_renders_page(flask_client):
    response = flask_client.get("/remote", headers={"Accept": "text/html"})

    assert response.status_code == 502
    assert response.get_data(as_text=True) == "Directory Error: Counting users failed: throttled"


def test_bad_request_renders_description(flask_client):
    response = flask_client.get("/form/error", headers={"Accept": "text/html"})

    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Bad Request: invalid payload"


def test_bad_request_json(flask_client):
    response = flask_client.get("/form/error", headers={"Accept": "application/json"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Bad Request"


def test_not_found_json(flask_client):
    response = flask_client.get("/missing", headers={"Accept": "application/json"})

    assert response.status_code == 404
    assert response.get_json() == {"error": "Not Found", "message": "Resource not found"}


def test_not_found_page(flask_client):
    response = flask_client.get("/missing", headers={"Accept": "text/html"})

    assert response.status_code == 404
    assert response.get_data(as_text=True).startswith("Not Found:")


def test_unhandled_exception_hides_traceback(flask_client):
    response = flask_client.get("/crash", headers={"Accept": "text/html"})

    assert response.status_code == 500
    assert response.get_data(as_text=True) == "Internal Server Error|None"


def test_unhandled_exception_json(flask_client):
    response = flask_client.get("/crash", headers={"Accept": "application/json"})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal Server Error", "message": "An unexpected error occurred"}


def test_demo_mode_shows_traceback():
    with _build_app(demo_mode=True).test_client() as client:
        response = client.get("/crash", headers={"Accept": "text/html"})

    assert response.status_code == 500
    assert "RuntimeError: boom" in response.get_data(as_text=True)
