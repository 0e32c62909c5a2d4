from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlmodel import select

from agenda import models
from agenda.auth import FederatedTokenVerifier
from agenda.config import Settings
from agenda.errors import AuthenticationError
from agenda.main import create_app
from conftest import TEST_SECRET

ISSUER = "https://accounts.google.com"
AUDIENCE = "agenda-client-id"


def _unsigned(claims):
    # Signature checks are off in the default test settings.
    return jwt.encode(claims, "unused-key-for-unverified-tokens-0001", algorithm="HS256")


def _login(client, claims):
    return client.post("/api/auth/google", json={"credential": _unsigned(claims)})


def _users(session):
    session.expire_all()
    return session.exec(select(models.User)).all()


def test_outside_domain_is_rejected_without_touching_users(client, session):
    r = _login(client, {"email": "someone@gmail.com", "name": "Some One"})
    assert r.status_code == 403
    assert r.json()["message"] == "only @uml.edu.ni accounts are allowed"
    assert _users(session) == []


def test_lookalike_domain_is_rejected(client, session):
    r = _login(client, {"email": "someone@fakeuml.edu.ni", "name": "Some One"})
    assert r.status_code == 403
    assert _users(session) == []


def test_first_login_provisions_student(client, session):
    r = _login(client, {"email": "Maria.Perez@uml.edu.ni", "name": "María José Pérez Ruiz", "email_verified": True})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["created"] is True
    assert data["token"]
    user = data["user"]
    assert user["correo"] == "maria.perez@uml.edu.ni"
    assert user["rol"] == "estudiante"
    assert user["nombres"] == "María"
    assert user["apellidos"] == "José Pérez Ruiz"

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {data['token']}"})
    assert profile.status_code == 200
    assert profile.json()["data"]["id"] == user["id"]


def test_second_login_refreshes_names_and_keeps_role(client, make_user):
    existing = make_user(models.ROLE_FACULTY, correo="docente@uml.edu.ni", nombres="Viejo", apellidos="Nombre")
    r = _login(client, {"email": "docente@uml.edu.ni", "name": "Nuevo Nombre Completo"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["created"] is False
    assert data["user"]["id"] == existing.id
    assert data["user"]["rol"] == "profesor"
    assert data["user"]["nombres"] == "Nuevo"
    assert data["user"]["apellidos"] == "Nombre Completo"


def test_login_without_name_claims_keeps_stored_names(client, session, make_user):
    existing = make_user(models.ROLE_ADMIN, correo="ana.lopez@uml.edu.ni", nombres="Ana", apellidos="López")
    r = _login(client, {"email": "ana.lopez@uml.edu.ni"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["created"] is False
    assert data["user"]["nombres"] == "Ana"
    assert data["user"]["apellidos"] == "López"
    assert data["user"]["rol"] == "admin"
    session.expire_all()
    stored = session.get(models.User, existing.id)
    assert (stored.nombres, stored.apellidos) == ("Ana", "López")


def test_name_falls_back_to_given_and_family_claims(client):
    r = _login(client, {"email": "luis@uml.edu.ni", "given_name": "Luis", "family_name": "Mendoza"})
    assert r.status_code == 200
    user = r.json()["data"]["user"]
    assert (user["nombres"], user["apellidos"]) == ("Luis", "Mendoza")


def test_missing_email_claim(client):
    r = _login(client, {"name": "Sin Correo"})
    assert r.status_code == 400


def test_unverified_email_is_rejected(client, session):
    r = _login(client, {"email": "nuevo@uml.edu.ni", "name": "Nuevo Usuario", "email_verified": False})
    assert r.status_code == 403
    assert _users(session) == []


def test_garbage_credential_is_rejected(client):
    r = client.post("/api/auth/google", json={"credential": "garbage"})
    assert r.status_code == 401


class _StaticJWKClient:
    """Stands in for the provider's JWKS endpoint with one known key."""

    def __init__(self, public_key):
        self.public_key = public_key

    def get_signing_key_from_jwt(self, token):
        return SimpleNamespace(key=self.public_key)


@pytest.fixture()
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def verifying_settings():
    return Settings(
        ENV="dev",
        DATABASE_URL="sqlite://",
        JWT_SECRET=TEST_SECRET,
        FEDERATED_VERIFY_SIGNATURE=True,
        FEDERATED_AUDIENCE=AUDIENCE,
        RATE_LIMIT_MAX_REQUESTS=10000,
        ALLOW_DEV_CORS=False,
    )


def _signed(key, **overrides):
    claims = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "email": "firmado@uml.edu.ni",
        "email_verified": True,
        "name": "Token Firmado",
        "exp": int((datetime.now(timezone.utc) + timedelta(minutes=5)).timestamp()),
    }
    claims.update(overrides)
    return jwt.encode(claims, key, algorithm="RS256")


def test_verifier_accepts_token_signed_by_provider_key(verifying_settings, rsa_key):
    verifier = FederatedTokenVerifier(verifying_settings, jwks_client=_StaticJWKClient(rsa_key.public_key()))
    claims = verifier.decode(_signed(rsa_key))
    assert claims["email"] == "firmado@uml.edu.ni"


def test_verifier_rejects_foreign_signature(verifying_settings, rsa_key):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    verifier = FederatedTokenVerifier(verifying_settings, jwks_client=_StaticJWKClient(rsa_key.public_key()))
    with pytest.raises(AuthenticationError):
        verifier.decode(_signed(other))


def test_verifier_rejects_wrong_audience_issuer_and_expiry(verifying_settings, rsa_key):
    verifier = FederatedTokenVerifier(verifying_settings, jwks_client=_StaticJWKClient(rsa_key.public_key()))
    with pytest.raises(AuthenticationError):
        verifier.decode(_signed(rsa_key, aud="someone-else"))
    with pytest.raises(AuthenticationError) as exc:
        verifier.decode(_signed(rsa_key, iss="https://evil.example.org"))
    assert exc.value.message == "invalid token issuer"
    past = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())
    with pytest.raises(AuthenticationError) as exc:
        verifier.decode(_signed(rsa_key, exp=past))
    assert exc.value.message == "token expired"


def test_verifier_rejects_unsigned_tokens_when_verification_is_on(verifying_settings, rsa_key):
    verifier = FederatedTokenVerifier(verifying_settings, jwks_client=_StaticJWKClient(rsa_key.public_key()))
    with pytest.raises(AuthenticationError):
        verifier.decode(_unsigned({"email": "firmado@uml.edu.ni", "iss": ISSUER, "aud": AUDIENCE}))


def test_google_endpoint_with_signature_verification(verifying_settings, engine, rsa_key):
    verifier = FederatedTokenVerifier(verifying_settings, jwks_client=_StaticJWKClient(rsa_key.public_key()))
    client = TestClient(create_app(verifying_settings, engine, federated_verifier=verifier))
    r = client.post("/api/auth/google", json={"credential": _signed(rsa_key)})
    assert r.status_code == 200
    assert r.json()["data"]["user"]["correo"] == "firmado@uml.edu.ni"
    r2 = client.post("/api/auth/google", json={"credential": _signed(rsa_key, email="x@gmail.com")})
    assert r2.status_code == 403
