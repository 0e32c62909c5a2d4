"""Invitation endpoints (`/api/invitaciones`).

Updating and deleting an invitation is reserved to its sender and to
admins; accepting it adds the sender to the group.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_roles
from ..database import get_session
from ..schemas import InvitationCreate, InvitationState, InvitationUpdate
from ..utils.pagination import ListParams
from . import ALL_ROLES, listing, ok

router = APIRouter(prefix="/api/invitaciones", tags=["invitaciones"])

SENDERS = (models.ROLE_ADMIN, models.ROLE_FACULTY, models.ROLE_STUDENT)


@router.get("", dependencies=[Depends(require_roles(*ALL_ROLES))])
def list_invitations(
    params: ListParams = Depends(),
    estado: Optional[InvitationState] = None,
    grupo_id: Optional[int] = Query(None, gt=0),
    sender_id: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_session),
):
    """List invitations, newest first unless another order is requested."""
    rows, total = services.InvitationService(db).list(params, estado=estado, grupo_id=grupo_id, sender_id=sender_id)
    return listing(rows, params, total)


@router.get("/usuario/{id}", dependencies=[Depends(require_roles(*ALL_ROLES))])
def list_user_invitations(
    id: int,
    params: ListParams = Depends(),
    tipo: Literal["recibidas", "enviadas"] = "recibidas",
    estado: Optional[InvitationState] = None,
    db: Session = Depends(get_session),
):
    """Invitations sent by a user or addressed to the user's email."""
    rows, total = services.InvitationService(db).list_for_user(id, params, tipo=tipo, estado=estado)
    return listing(rows, params, total)


@router.get("/{id}", dependencies=[Depends(require_roles(*ALL_ROLES))])
def get_invitation(id: int, db: Session = Depends(get_session)):
    svc = services.InvitationService(db)
    return ok(svc.payload(svc.get(id)))


@router.post("", status_code=201)
def create_invitation(
    payload: InvitationCreate,
    user: models.User = Depends(require_roles(*SENDERS)),
    db: Session = Depends(get_session),
):
    """Create a pending invitation; non-admins may only send as themselves."""
    svc = services.InvitationService(db)
    return ok(svc.payload(svc.create(payload, user)), "invitation created")


@router.put("/{id}")
def update_invitation(
    id: int,
    payload: InvitationUpdate,
    user: models.User = Depends(require_roles(*SENDERS)),
    db: Session = Depends(get_session),
):
    svc = services.InvitationService(db)
    return ok(svc.payload(svc.update(id, payload, user)), f"invitation {payload.estado}")


@router.delete("/{id}")
def delete_invitation(
    id: int,
    user: models.User = Depends(require_roles(*SENDERS)),
    db: Session = Depends(get_session),
):
    services.InvitationService(db).delete(id, user)
    return ok(message="invitation deleted")
