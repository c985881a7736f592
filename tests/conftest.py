"""
Shared pytest fixtures for the PartnerHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - partner / second_partner: Pre-created Partner entities
"""

import pytest

from partnerhub import create_app
from partnerhub.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def partner(client):
    """Create and return a gold-tier Partner via the API."""
    res = client.post(
        "/api/v1/partners",
        json={
            "name": "Acme Events",
            "tier": "gold",
            "contact_email": "ops@acme.test",
            "account_manager": "alice",
        },
    )
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def second_partner(client):
    res = client.post(
        "/api/v1/partners",
        json={"name": "Beta Media", "tier": "silver", "account_manager": "bob"},
    )
    assert res.status_code == 201
    return res.get_json()
