"""
Pytest fixtures: one throwaway SQLite file per test, the seeded superadmin,
and an outbox that captures login codes instead of sending mail.
"""
import pytest

from app import create_app
from config import Config
from models import db as _db

SUPER_EMAIL = "super@x.com"


class ConfigForTests(Config):
    TESTING = True
    ENV = "testing"
    SECRET_KEY = "test-secret"
    SUPERADMIN_EMAIL = SUPER_EMAIL
    SESSION_COOKIE_SECURE = False
    AUTO_CREATE_TABLES = True
    SMTP_HOST = None
    OTP_REQUEST_RATE_MAX = 1000
    OTP_VERIFY_RATE_MAX = 1000


@pytest.fixture
def app(tmp_path):
    class _Config(ConfigForTests):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")
        # worker threads in the race tests share the pool
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False}}

    app = create_app(_Config)
    yield app

    with app.app_context():
        _db.session.remove()
        _db.engine.dispose()


@pytest.fixture
def ctx(app):
    """App context for calling services directly (not for test-client calls)."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send(email, code):
        sent.append((email, code))
        return True

    monkeypatch.setattr("security.otp.send_otp_email", fake_send)
    return sent


@pytest.fixture
def csrf_headers(client):
    """Headers echoing the csrf cookie back, as the frontend does."""

    def _headers():
        cookie = client.get_cookie("csrf_token")
        return {"X-CSRF-Token": cookie.value} if cookie else {}

    return _headers


@pytest.fixture
def login(client, outbox):
    """Runs the whole OTP flow through the API and returns the verify response."""

    def _login(email, name="Test User", mobile=None):
        resp = client.post("/api/auth/request-otp", json={"email": email})
        assert resp.status_code == 200, resp.get_json()
        code = outbox[-1][1]
        return client.post(
            "/api/auth/verify-otp",
            json={"email": email, "code": code, "name": name, "mobile": mobile},
        )

    return _login
