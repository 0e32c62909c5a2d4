"""User management endpoints (`/api/usuarios`)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_roles
from ..database import get_session
from ..schemas import Role, UserCreate, UserUpdate
from ..utils.pagination import ListParams
from . import listing, ok

router = APIRouter(prefix="/api/usuarios", tags=["usuarios"])

STAFF = (models.ROLE_ADMIN, models.ROLE_FACULTY, models.ROLE_OFFICE)


@router.get("", dependencies=[Depends(require_roles(*STAFF))])
def list_users(
    params: ListParams = Depends(),
    rol: Optional[Role] = None,
    carrera_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_session),
):
    """List users filtered by role, career or a free-text search."""
    rows, total = services.UserService(db).list(params, rol=rol, carrera_id=carrera_id, search=search)
    return listing(rows, params, total)


@router.get("/{id}", dependencies=[Depends(require_roles(*STAFF))])
def get_user(id: int, db: Session = Depends(get_session)):
    svc = services.UserService(db)
    return ok(svc.payload(svc.get(id)))


@router.post("", status_code=201, dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def create_user(payload: UserCreate, db: Session = Depends(get_session)):
    svc = services.UserService(db)
    return ok(svc.payload(svc.create(payload)), "user created")


@router.put("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def update_user(id: int, payload: UserUpdate, db: Session = Depends(get_session)):
    svc = services.UserService(db)
    return ok(svc.payload(svc.update(id, payload)), "user updated")


@router.delete("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def delete_user(id: int, db: Session = Depends(get_session)):
    """Delete a user that has no memberships, sent invitations or groups."""
    services.UserService(db).delete(id)
    return ok(message="user deleted")
