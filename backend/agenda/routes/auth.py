"""Authentication endpoints.

- POST /api/auth/register  (public)
- POST /api/auth/login     (public)
- POST /api/auth/google    (public, federated identity token)
- GET  /api/auth/profile
- PUT  /api/auth/profile
"""

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from .. import models, services
from ..auth import FederatedTokenVerifier, get_current_user, get_settings
from ..config import Settings
from ..database import get_session
from ..schemas import FederatedLoginIn, LoginIn, ProfileUpdate, UserCreate
from . import ok

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_federated_verifier(request: Request) -> FederatedTokenVerifier:
    return request.app.state.federated_verifier


@router.post("/register", status_code=201)
def register(payload: UserCreate, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
    """Register a new user and return it with a session token."""
    auth = services.AuthService(db, settings)
    user, token = auth.register(payload)
    return ok({"user": auth.users.payload(user), "token": token}, "user registered")


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
    """Authenticate by email (and password, when the account has one)."""
    auth = services.AuthService(db, settings)
    user, token = auth.authenticate(payload.correo, payload.password)
    return ok({"user": auth.users.payload(user), "token": token}, "login successful")


@router.post("/google")
def federated_login(
    payload: FederatedLoginIn,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    verifier: FederatedTokenVerifier = Depends(get_federated_verifier),
):
    """Exchange an identity-provider token for a local session token.

    Only institutional accounts are accepted; first-time users are
    provisioned as students.
    """
    claims = verifier.decode(payload.credential)
    auth = services.AuthService(db, settings)
    user, token, created = auth.federated_login(claims)
    return ok({"user": auth.users.payload(user), "token": token, "created": created}, "login successful")


@router.get("/profile")
def get_profile(user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    return ok(services.UserService(db).payload(user))


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: models.User = Depends(get_current_user), db: Session = Depends(get_session)):
    """Update the caller's own profile; the role cannot be changed here."""
    svc = services.UserService(db)
    updated = svc.update(user.id, payload)
    return ok(svc.payload(updated), "profile updated")
