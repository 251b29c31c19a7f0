import itertools

import pytest
from flask_jwt_extended import create_access_token

from pollbooth import create_app
from pollbooth.config import TestConfig
from pollbooth.extensions import db as _db
from pollbooth.models import User
from pollbooth.services import booths as booth_service
from pollbooth.services import membership


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    """Create and commit a user; emails are unique unless given explicitly."""
    counter = itertools.count(1)

    def _make_user(name="Test Voter", email=None, password="Password123", verified=False, max_booths=5):
        user = User(
            name=name,
            email=email or f"user{next(counter)}@example.org",
            is_email_verified=verified,
            max_booths=max_booths,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def creator(make_user):
    return make_user(name="Booth Creator", email="creator@example.org", verified=True)


def _booth_payload(candidates=("A", "B"), max_members=10, **settings):
    return {
        "name": "Test booth",
        "description": "A booth used by the test suite",
        "candidates": [{"name": c} for c in candidates],
        "max_members": max_members,
        "settings": settings,
    }


@pytest.fixture
def booth_payload():
    return _booth_payload


@pytest.fixture
def make_booth(creator):
    def _make_booth(owner=None, candidates=("A", "B"), max_members=10, **settings):
        return booth_service.create_booth(owner or creator, _booth_payload(candidates, max_members, **settings))

    return _make_booth


@pytest.fixture
def join():
    def _join(booth, *users):
        return [membership.join_booth(booth, user) for user in users]

    return _join


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
