import itertools
import os

# Keep the module-level app in `agenda.main` off the on-disk database.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from agenda import models, repositories, services
from agenda.config import Settings
from agenda.database import build_engine
from agenda.main import create_app

TEST_SECRET = "test-secret-not-for-production-use-0001"


@pytest.fixture()
def settings():
    return Settings(
        ENV="dev",
        DATABASE_URL="sqlite://",
        JWT_SECRET=TEST_SECRET,
        FEDERATED_VERIFY_SIGNATURE=False,
        RATE_LIMIT_MAX_REQUESTS=10000,
        ALLOW_DEV_CORS=False,
    )


@pytest.fixture()
def engine(settings):
    """A fresh in-memory database per test."""
    engine = build_engine(settings.DATABASE_URL)
    yield engine
    engine.dispose()


@pytest.fixture()
def app(settings, engine):
    return create_app(settings, engine)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def session(app, engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def make_user(session):
    """Insert a user directly, bypassing the API."""
    counter = itertools.count(1)

    def _make(rol=models.ROLE_STUDENT, correo=None, **fields):
        n = next(counter)
        fields.setdefault("nombres", f"Nombre{n}")
        fields.setdefault("apellidos", f"Apellido{n}")
        user = models.User(correo=correo or f"{rol}{n}@uml.edu.ni", rol=rol, **fields)
        return repositories.UserRepository(session).save(user)

    return _make


@pytest.fixture()
def make_career(session):
    counter = itertools.count(1001)

    def _make(nombre=None, codigo=None):
        codigo = codigo or next(counter)
        career = models.Career(nombre=nombre or f"Carrera {codigo}", codigo=codigo)
        return repositories.CareerRepository(session).save(career)

    return _make


@pytest.fixture()
def make_group(session):
    def _make(creator, nombre="Grupo de Estudio", **fields):
        group = models.Group(nombre=nombre, creador_id=creator.id, **fields)
        return repositories.GroupRepository(session).save(group)

    return _make


@pytest.fixture()
def auth_headers(session, settings):
    """Return Authorization headers carrying a valid token for `user`."""
    def _headers(user):
        token = services.AuthService(session, settings).issue_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def admin(make_user):
    return make_user(models.ROLE_ADMIN)


@pytest.fixture()
def admin_headers(admin, auth_headers):
    return auth_headers(admin)
