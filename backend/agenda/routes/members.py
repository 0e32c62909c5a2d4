"""Membership endpoints (`/api/miembros`)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_roles
from ..database import get_session
from ..schemas import MemberCreate
from ..utils.pagination import ListParams
from . import listing, ok

router = APIRouter(prefix="/api/miembros", tags=["miembros"])

STAFF = (models.ROLE_ADMIN, models.ROLE_FACULTY, models.ROLE_OFFICE)


@router.get("", dependencies=[Depends(require_roles(*STAFF))])
def list_members(
    params: ListParams = Depends(),
    grupo_id: Optional[int] = Query(None, gt=0),
    usuario_id: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_session),
):
    rows, total = services.MemberService(db).list(params, grupo_id=grupo_id, usuario_id=usuario_id)
    return listing(rows, params, total)


@router.get("/{id}", dependencies=[Depends(require_roles(*STAFF))])
def get_member(id: int, db: Session = Depends(get_session)):
    svc = services.MemberService(db)
    return ok(svc.payload(svc.get(id)))


@router.post("", status_code=201, dependencies=[Depends(require_roles(models.ROLE_ADMIN, models.ROLE_FACULTY))])
def create_member(payload: MemberCreate, db: Session = Depends(get_session)):
    svc = services.MemberService(db)
    return ok(svc.payload(svc.create(payload)), "member added")


@router.delete("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def delete_member(id: int, db: Session = Depends(get_session)):
    services.MemberService(db).delete(id)
    return ok(message="member removed")
