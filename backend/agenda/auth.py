"""Authentication helpers and FastAPI security dependencies.

This module provides:

- `decode_token` / `get_current_user`: verify a self-issued bearer token
  and resolve it to the live `User` row (a deleted user is rejected even
  when the token itself is still valid);
- `require_roles` and `owner_or_admin`: authorization dependencies used
  by the routers;
- `FederatedTokenVerifier`: verification of identity tokens issued by the
  external provider against its published signing keys.

Token problems raise `AuthenticationError` (401) and permission problems
raise `ForbiddenError` (403); the application's exception handlers turn
them into JSON responses.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .database import get_session
from .errors import AuthenticationError, BadRequestError, ForbiddenError, NotFoundError

logger = logging.getLogger("agenda.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Return the settings of the running application."""
    return request.app.state.settings


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and verify a session token.

    Returns the decoded payload on success or raises
    `AuthenticationError` on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("invalid token")


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The user row is re-read on every request and stored on
    `request.state.user` for downstream consumers.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("token required")
    payload = decode_token(credentials.credentials, settings)
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise AuthenticationError("invalid token")
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        logger.warning("token for missing user id=%s", user_id)
        raise AuthenticationError("user not found")
    request.state.user = user
    return user


def require_roles(*roles: str):
    """Build a dependency that admits only users whose role is in `roles`."""
    allowed = frozenset(roles)

    def _check(user: models.User = Depends(get_current_user)) -> models.User:
        if user.rol not in allowed:
            raise ForbiddenError("insufficient permissions")
        return user

    return _check


def owner_or_admin(model, owner_field: str, param: str = "id"):
    """Build a dependency admitting admins and the owner of a resource.

    The resource is loaded by the `param` path parameter: a missing row
    yields 404 before any ownership comparison, so callers can tell
    "does not exist" apart from "not yours".
    """

    def _check(
        request: Request,
        user: models.User = Depends(get_current_user),
        db: Session = Depends(get_session),
    ) -> models.User:
        if user.rol == models.ROLE_ADMIN:
            return user
        try:
            resource_id = int(request.path_params[param])
        except ValueError:
            raise BadRequestError("invalid id")
        resource = db.get(model, resource_id)
        if resource is None:
            raise NotFoundError("resource not found")
        if getattr(resource, owner_field) != user.id:
            raise ForbiddenError("you are not allowed to access this resource")
        return user

    return _check


class FederatedTokenVerifier:
    """Verify identity tokens issued by the external identity provider.

    Signatures are checked against the provider's JWKS endpoint; the
    audience is enforced when configured. With `verify_signature`
    disabled (dev only, see `Settings._validate`) the claims are decoded
    without any verification.
    """

    def __init__(self, settings: Settings, jwks_client: Optional[jwt.PyJWKClient] = None):
        self.verify_signature = settings.FEDERATED_VERIFY_SIGNATURE
        self.audience = settings.FEDERATED_AUDIENCE or None
        self.issuers = list(settings.FEDERATED_ISSUERS)
        self._jwks_client = jwks_client
        self._jwks_url = settings.FEDERATED_JWKS_URL

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(self._jwks_url)
        return self._jwks_client

    def decode(self, token: str) -> dict:
        """Return the verified claims of `token` or raise `AuthenticationError`."""
        if not self.verify_signature:
            try:
                return jwt.decode(token, options={"verify_signature": False})
            except jwt.InvalidTokenError:
                raise AuthenticationError("invalid token")
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("token expired")
        except (jwt.InvalidTokenError, jwt.PyJWKClientError) as exc:
            logger.warning("federated token rejected: %s", exc)
            raise AuthenticationError("invalid token")
        if self.issuers and claims.get("iss") not in self.issuers:
            raise AuthenticationError("invalid token issuer")
        return claims
