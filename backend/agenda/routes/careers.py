"""Academic program endpoints (`/api/carreras`)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_roles
from ..database import get_session
from ..schemas import CareerCreate, CareerUpdate
from ..utils.pagination import ListParams
from . import ALL_ROLES, listing, ok

router = APIRouter(prefix="/api/carreras", tags=["carreras"])


@router.get("", dependencies=[Depends(require_roles(*ALL_ROLES))])
def list_careers(
    params: ListParams = Depends(),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_session),
):
    rows, total = services.CareerService(db).list(params, search=search)
    return listing(rows, params, total)


@router.get("/{id}", dependencies=[Depends(require_roles(*ALL_ROLES))])
def get_career(id: int, db: Session = Depends(get_session)):
    svc = services.CareerService(db)
    return ok(svc.payload(svc.get(id)))


@router.post("", status_code=201, dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def create_career(payload: CareerCreate, db: Session = Depends(get_session)):
    svc = services.CareerService(db)
    return ok(svc.payload(svc.create(payload), 0), "career created")


@router.put("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def update_career(id: int, payload: CareerUpdate, db: Session = Depends(get_session)):
    svc = services.CareerService(db)
    return ok(svc.payload(svc.update(id, payload)), "career updated")


@router.delete("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def delete_career(id: int, db: Session = Depends(get_session)):
    """Delete a career; refused while any user is enrolled in it."""
    services.CareerService(db).delete(id)
    return ok(message="career deleted")
