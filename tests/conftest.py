"""Shared fixtures: an app on a throwaway SQLite file and a service bound to it."""

import pytest

from lending_service.app import create_app
from lending_service.lending import LendingService


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'library.db'}",
        }
    )
    yield app
    app.extensions["lending_engine"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def engine(app):
    return app.extensions["lending_engine"]


@pytest.fixture
def session(app):
    session = app.extensions["lending_sessionmaker"]()
    yield session
    session.close()


@pytest.fixture
def service(session):
    return LendingService(session)


@pytest.fixture
def alice(service):
    return service.create_user("Alice")["id"]


@pytest.fixture
def bob(service):
    return service.create_user("Bob")["id"]


@pytest.fixture
def dune(service):
    return service.create_book("Dune")["id"]
