"""Group endpoints (`/api/grupos`) including nested group membership routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import models, services
from ..auth import owner_or_admin, require_roles
from ..database import get_session
from ..schemas import GroupCreate, GroupMemberAdd, GroupState, GroupType, GroupUpdate
from ..utils.pagination import ListParams
from . import ALL_ROLES, listing, ok

router = APIRouter(prefix="/api/grupos", tags=["grupos"])

MANAGERS = (models.ROLE_ADMIN, models.ROLE_FACULTY)


@router.get("", dependencies=[Depends(require_roles(*ALL_ROLES))])
def list_groups(
    params: ListParams = Depends(),
    estado: Optional[GroupState] = None,
    tipo: Optional[GroupType] = None,
    creador_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_session),
):
    rows, total = services.GroupService(db).list(
        params, estado=estado, tipo=tipo, creador_id=creador_id, search=search
    )
    return listing(rows, params, total)


@router.get("/{id}", dependencies=[Depends(require_roles(*ALL_ROLES))])
def get_group(id: int, db: Session = Depends(get_session)):
    """Return a group with its members."""
    return ok(services.GroupService(db).detail(id))


@router.post("", status_code=201, dependencies=[Depends(require_roles(*MANAGERS))])
def create_group(payload: GroupCreate, db: Session = Depends(get_session)):
    svc = services.GroupService(db)
    return ok(svc.payload(svc.create(payload), 0), "group created")


@router.put(
    "/{id}",
    dependencies=[Depends(require_roles(*MANAGERS)), Depends(owner_or_admin(models.Group, "creador_id"))],
)
def update_group(id: int, payload: GroupUpdate, db: Session = Depends(get_session)):
    """Update a group; only its creator or an admin may do so."""
    svc = services.GroupService(db)
    return ok(svc.payload(svc.update(id, payload)), "group updated")


@router.delete("/{id}", dependencies=[Depends(require_roles(models.ROLE_ADMIN))])
def delete_group(id: int, db: Session = Depends(get_session)):
    """Delete a group; refused while it has members or invitations."""
    services.GroupService(db).delete(id)
    return ok(message="group deleted")


@router.get("/{id}/miembros", dependencies=[Depends(require_roles(*ALL_ROLES))])
def list_group_members(id: int, params: ListParams = Depends(), db: Session = Depends(get_session)):
    rows, total = services.MemberService(db).list_group(id, params)
    return listing(rows, params, total)


@router.post("/{id}/miembros", status_code=201, dependencies=[Depends(require_roles(*MANAGERS))])
def add_group_member(id: int, payload: GroupMemberAdd, db: Session = Depends(get_session)):
    svc = services.MemberService(db)
    return ok(svc.payload(svc.add_to_group(id, payload)), "member added")


@router.delete("/{id}/miembros/{miembro_id}", dependencies=[Depends(require_roles(*MANAGERS))])
def remove_group_member(id: int, miembro_id: int, db: Session = Depends(get_session)):
    services.MemberService(db).remove_from_group(id, miembro_id)
    return ok(message="member removed")
