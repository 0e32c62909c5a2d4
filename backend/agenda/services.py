"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they run the existence, uniqueness and
dependency pre-checks for each operation, raise `agenda.errors`
exceptions on failure and persist aggregates via repositories. Read
operations return plain dictionaries ready to be sent as JSON.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from .schemas import (
    CareerCreate,
    CareerUpdate,
    GroupCreate,
    GroupMemberAdd,
    GroupUpdate,
    InvitationCreate,
    InvitationUpdate,
    MemberCreate,
    ProfileUpdate,
    UserCreate,
)
from .utils.pagination import ListParams

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("agenda.services")


def user_summary(user: Optional[models.User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "nombres": user.nombres, "apellidos": user.apellidos,
            "correo": user.correo, "rol": user.rol}


def career_summary(career: Optional[models.Career]) -> Optional[dict]:
    if career is None:
        return None
    return {"id": career.id, "nombre": career.nombre, "codigo": career.codigo}


def group_summary(group: Optional[models.Group]) -> Optional[dict]:
    if group is None:
        return None
    return {"id": group.id, "nombre": group.nombre}


def split_full_name(full_name: str) -> Tuple[str, str]:
    """Split a display name into (given names, family names).

    The first whitespace-separated token is the given name and the rest
    is the family name: "Ana María López" -> ("Ana", "María López").
    """
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _patch(obj, changes: dict) -> None:
    for field, value in changes.items():
        setattr(obj, field, value)
    if hasattr(obj, "updated_at"):
        obj.updated_at = models.utcnow()


class UserService:
    """Users CRUD with uniqueness, career and dependency checks."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.career_repo = repositories.CareerRepository(session)
        self.member_repo = repositories.MemberRepository(session)
        self.group_repo = repositories.GroupRepository(session)
        self.invitation_repo = repositories.InvitationRepository(session)

    def payload(self, user: models.User) -> dict:
        """Public user fields plus a summary of the user's career."""
        out = user.public()
        career = self.career_repo.get(user.carrera_id) if user.carrera_id else None
        out["carrera"] = career_summary(career)
        return out

    def list(self, params: ListParams, **filters) -> Tuple[List[dict], int]:
        rows, total = self.user_repo.list(params, **filters)
        return [self.payload(u) for u in rows], total

    def get(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("user not found")
        return user

    def _check_career(self, career_id: Optional[int]) -> None:
        if career_id and not self.career_repo.get(career_id):
            raise BadRequestError("career not found")

    def create(self, data: UserCreate) -> models.User:
        """Create a user after the email uniqueness and career checks."""
        if self.user_repo.get_by_correo(data.correo):
            raise ConflictError("a user with this email already exists")
        self._check_career(data.carrera_id)
        fields = data.model_dump(exclude={"password"})
        user = models.User(**fields)
        if data.password:
            user.password_hash = PWD_CTX.hash(data.password)
        user = self.user_repo.save(user)
        logger.info("user created id=%s correo=%s rol=%s", user.id, user.correo, user.rol)
        return user

    def update(self, user_id: int, data: ProfileUpdate) -> models.User:
        """Patch the supplied fields; re-checks email uniqueness on change."""
        user = self.get(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        password = changes.pop("password", None)
        new_email = changes.get("correo")
        if new_email and new_email != user.correo.lower():
            other = self.user_repo.get_by_correo(new_email)
            if other and other.id != user.id:
                raise ConflictError("a user with this email already exists")
        self._check_career(changes.get("carrera_id"))
        _patch(user, changes)
        if password:
            user.password_hash = PWD_CTX.hash(password)
        user = self.user_repo.save(user)
        logger.info("user updated id=%s fields=%s", user.id, sorted(changes))
        return user

    def delete(self, user_id: int) -> None:
        """Delete a user that owns no memberships, invitations or groups."""
        user = self.get(user_id)
        if self.member_repo.count_for_user(user.id) > 0:
            raise ConflictError("cannot delete a user that belongs to groups")
        if self.invitation_repo.count_sent_by(user.id) > 0:
            raise ConflictError("cannot delete a user that has sent invitations")
        if self.group_repo.count_created_by(user.id) > 0:
            raise ConflictError("cannot delete a user that has created groups")
        self.user_repo.delete(user)
        logger.info("user deleted id=%s", user_id)


class AuthService:
    """Authentication related operations (register, login, federated login)."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.user_repo = repositories.UserRepository(session)
        self.users = UserService(session)

    def issue_token(self, user: models.User) -> str:
        """Return a signed session token for `user`."""
        expire = datetime.now(timezone.utc) + timedelta(hours=self.settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "correo": user.correo, "rol": user.rol, "exp": int(expire.timestamp())}
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def register(self, data: UserCreate) -> Tuple[models.User, str]:
        user = self.users.create(data)
        return user, self.issue_token(user)

    def authenticate(self, correo: str, password: Optional[str]) -> Tuple[models.User, str]:
        """Verify credentials and return the user with a signed token.

        Accounts without a stored password (e.g. provisioned by federated
        login) are identified by email alone.
        """
        user = self.user_repo.get_by_correo(correo)
        if not user:
            logger.warning("login failed: unknown email %s", correo)
            raise AuthenticationError("invalid credentials")
        if user.password_hash and not (password and PWD_CTX.verify(password, user.password_hash)):
            logger.warning("login failed: bad password for user id=%s", user.id)
            raise AuthenticationError("invalid credentials")
        logger.info("user logged in id=%s", user.id)
        return user, self.issue_token(user)

    def federated_login(self, claims: dict) -> Tuple[models.User, str, bool]:
        """Log in with verified identity-provider claims.

        Only emails in the institutional domain are accepted; nothing is
        read or written for any other address. Unknown emails are
        provisioned as students; known ones get their names refreshed only
        when the token carries a name that differs from the stored one.
        Returns `(user, token, created)`.
        """
        email = str(claims.get("email") or "").strip().lower()
        if not email:
            raise BadRequestError("identity token has no email claim")
        if not email.endswith("@" + self.settings.INSTITUTIONAL_DOMAIN):
            logger.warning("federated login rejected for outside domain: %s", email)
            raise ForbiddenError(f"only @{self.settings.INSTITUTIONAL_DOMAIN} accounts are allowed")
        if claims.get("email_verified") is False:
            raise ForbiddenError("email address is not verified by the identity provider")

        claim_name = " ".join(str(claims.get("name") or "").split())
        if not claim_name:
            claim_name = " ".join(
                " ".join(str(claims.get(k) or "").split()) for k in ("given_name", "family_name")
            ).strip()

        user = self.user_repo.get_by_correo(email)
        created = False
        if not user:
            # The email local part only stands in for a missing name on first login.
            nombres, apellidos = split_full_name(claim_name or email.split("@")[0])
            user = self.user_repo.save(models.User(
                nombres=nombres, apellidos=apellidos, correo=email, rol=models.ROLE_STUDENT
            ))
            created = True
            logger.info("federated user provisioned id=%s correo=%s", user.id, email)
        elif claim_name and user.full_name != claim_name:
            nombres, apellidos = split_full_name(claim_name)
            _patch(user, {"nombres": nombres, "apellidos": apellidos})
            user = self.user_repo.save(user)
            logger.info("federated user names refreshed id=%s", user.id)
        return user, self.issue_token(user), created


class CareerService:
    """Careers CRUD; a career with enrolled users cannot be deleted."""
    def __init__(self, session: Session):
        self.session = session
        self.career_repo = repositories.CareerRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def payload(self, career: models.Career, users_count: Optional[int] = None) -> dict:
        out = career.model_dump()
        if users_count is None:
            users_count = self.user_repo.count_for_career(career.id)
        out["usuarios_count"] = users_count
        return out

    def list(self, params: ListParams, search: Optional[str] = None) -> Tuple[List[dict], int]:
        rows, total = self.career_repo.list(params, search=search)
        counts = self.user_repo.counts_by_career(c.id for c in rows)
        return [self.payload(c, counts.get(c.id, 0)) for c in rows], total

    def get(self, career_id: int) -> models.Career:
        career = self.career_repo.get(career_id)
        if not career:
            raise NotFoundError("career not found")
        return career

    def create(self, data: CareerCreate) -> models.Career:
        if self.career_repo.get_by_codigo(data.codigo):
            raise ConflictError("a career with this code already exists")
        career = self.career_repo.save(models.Career(**data.model_dump()))
        logger.info("career created id=%s codigo=%s", career.id, career.codigo)
        return career

    def update(self, career_id: int, data: CareerUpdate) -> models.Career:
        career = self.get(career_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        new_code = changes.get("codigo")
        if new_code is not None and new_code != career.codigo and self.career_repo.get_by_codigo(new_code):
            raise ConflictError("a career with this code already exists")
        _patch(career, changes)
        career = self.career_repo.save(career)
        logger.info("career updated id=%s fields=%s", career.id, sorted(changes))
        return career

    def delete(self, career_id: int) -> None:
        career = self.get(career_id)
        if self.user_repo.count_for_career(career.id) > 0:
            raise ConflictError("cannot delete a career with enrolled users")
        self.career_repo.delete(career)
        logger.info("career deleted id=%s", career_id)


class GroupService:
    """Groups CRUD; a group with members or invitations cannot be deleted."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.member_repo = repositories.MemberRepository(session)
        self.invitation_repo = repositories.InvitationRepository(session)

    def payload(self, group: models.Group, members_count: Optional[int] = None) -> dict:
        out = group.model_dump()
        if members_count is None:
            members_count = self.member_repo.count_for_group(group.id)
        out["miembros_count"] = members_count
        out["creador"] = user_summary(self.user_repo.get(group.creador_id))
        return out

    def detail(self, group_id: int) -> dict:
        """Group fields plus its members with user summaries."""
        group = self.get(group_id)
        members = self.member_repo.list_for_group(group.id)
        out = self.payload(group, len(members))
        out["miembros"] = [
            {**m.model_dump(), "usuario": user_summary(self.user_repo.get(m.usuario_id))}
            for m in members
        ]
        return out

    def list(self, params: ListParams, **filters) -> Tuple[List[dict], int]:
        rows, total = self.group_repo.list(params, **filters)
        counts = self.member_repo.counts_by_group(g.id for g in rows)
        return [self.payload(g, counts.get(g.id, 0)) for g in rows], total

    def get(self, group_id: int) -> models.Group:
        group = self.group_repo.get(group_id)
        if not group:
            raise NotFoundError("group not found")
        return group

    def create(self, data: GroupCreate) -> models.Group:
        if not self.user_repo.get(data.creador_id):
            raise BadRequestError("creator user not found")
        group = self.group_repo.save(models.Group(**data.model_dump()))
        logger.info("group created id=%s creador_id=%s", group.id, group.creador_id)
        return group

    def update(self, group_id: int, data: GroupUpdate) -> models.Group:
        group = self.get(group_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        _patch(group, changes)
        group = self.group_repo.save(group)
        logger.info("group updated id=%s fields=%s", group.id, sorted(changes))
        return group

    def delete(self, group_id: int) -> None:
        group = self.get(group_id)
        if self.member_repo.count_for_group(group.id) > 0:
            raise ConflictError("cannot delete a group that has members")
        if self.invitation_repo.count_for_group(group.id) > 0:
            raise ConflictError("cannot delete a group that has invitations")
        self.group_repo.delete(group)
        logger.info("group deleted id=%s", group_id)


class MemberService:
    """Membership operations, both flat and nested under a group."""
    def __init__(self, session: Session):
        self.session = session
        self.member_repo = repositories.MemberRepository(session)
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def payload(self, member: models.Member) -> dict:
        out = member.model_dump()
        out["usuario"] = user_summary(self.user_repo.get(member.usuario_id))
        out["grupo"] = group_summary(self.group_repo.get(member.grupo_id))
        return out

    def list(self, params: ListParams, **filters) -> Tuple[List[dict], int]:
        rows, total = self.member_repo.list(params, **filters)
        return [self.payload(m) for m in rows], total

    def list_group(self, group_id: int, params: ListParams) -> Tuple[List[dict], int]:
        """One page of the members of a group; 404 if the group does not exist."""
        if not self.group_repo.get(group_id):
            raise NotFoundError("group not found")
        return self.list(params, grupo_id=group_id)

    def get(self, member_id: int) -> models.Member:
        member = self.member_repo.get(member_id)
        if not member:
            raise NotFoundError("member not found")
        return member

    def create(self, data: MemberCreate) -> models.Member:
        """Add a user to a group; a user appears at most once per group."""
        if not self.group_repo.get(data.grupo_id):
            raise NotFoundError("group not found")
        if not self.user_repo.get(data.usuario_id):
            raise NotFoundError("user not found")
        if self.member_repo.get_for(data.grupo_id, data.usuario_id):
            raise ConflictError("the user is already a member of this group")
        member = self.member_repo.save(models.Member(grupo_id=data.grupo_id, usuario_id=data.usuario_id))
        logger.info("member added id=%s grupo_id=%s usuario_id=%s", member.id, member.grupo_id, member.usuario_id)
        return member

    def add_to_group(self, group_id: int, data: GroupMemberAdd) -> models.Member:
        return self.create(MemberCreate(grupo_id=group_id, usuario_id=data.usuario_id))

    def delete(self, member_id: int) -> None:
        member = self.get(member_id)
        self.member_repo.delete(member)
        logger.info("member removed id=%s", member_id)

    def remove_from_group(self, group_id: int, member_id: int) -> None:
        if not self.group_repo.get(group_id):
            raise NotFoundError("group not found")
        member = self.member_repo.get(member_id)
        if not member or member.grupo_id != group_id:
            raise NotFoundError("member not found in this group")
        self.member_repo.delete(member)
        logger.info("member removed id=%s grupo_id=%s", member_id, group_id)


class InvitationService:
    """Invitation lifecycle: pending -> accepted | rejected.

    Accepting an invitation materialises the *sender* as a member of the
    group; the receiver is only an email address until they register on
    their own. The status change and the membership insert are committed
    together.
    """
    def __init__(self, session: Session):
        self.session = session
        self.invitation_repo = repositories.InvitationRepository(session)
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.member_repo = repositories.MemberRepository(session)

    def payload(self, invitation: models.Invitation) -> dict:
        out = invitation.model_dump()
        out["grupo"] = group_summary(self.group_repo.get(invitation.grupo_id))
        out["sender"] = user_summary(self.user_repo.get(invitation.sender_id))
        return out

    def list(self, params: ListParams, **filters) -> Tuple[List[dict], int]:
        rows, total = self.invitation_repo.list(params, **filters)
        return [self.payload(i) for i in rows], total

    def list_for_user(self, user_id: int, params: ListParams, tipo: str = "recibidas",
                      estado: Optional[str] = None) -> Tuple[List[dict], int]:
        """Invitations sent by a user (`enviadas`) or addressed to their email."""
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("user not found")
        if tipo == "enviadas":
            return self.list(params, estado=estado, sender_id=user.id)
        return self.list(params, estado=estado, receiver=user.correo)

    def get(self, invitation_id: int) -> models.Invitation:
        invitation = self.invitation_repo.get(invitation_id)
        if not invitation:
            raise NotFoundError("invitation not found")
        return invitation

    def _check_sender_or_admin(self, invitation: models.Invitation, caller: models.User, action: str) -> None:
        if caller.rol != models.ROLE_ADMIN and invitation.sender_id != caller.id:
            raise ForbiddenError(f"you are not allowed to {action} this invitation")

    def create(self, data: InvitationCreate, caller: models.User) -> models.Invitation:
        """Create a pending invitation.

        Preconditions are checked in order and the first failure wins:
        the group exists, the sender exists and is the caller (admins may
        send on behalf of anyone), no invitation for the same
        (group, receiver) exists, and the receiver is not already a member.
        """
        group = self.group_repo.get(data.grupo_id)
        if not group:
            raise NotFoundError("group not found")
        if not self.user_repo.get(data.sender_id):
            raise NotFoundError("sender user not found")
        if caller.rol != models.ROLE_ADMIN and data.sender_id != caller.id:
            raise ForbiddenError("you can only send invitations as yourself")
        if self.invitation_repo.find_for(group.id, data.receiver):
            raise ConflictError("an invitation for this receiver already exists in this group")
        receiver_user = self.user_repo.get_by_correo(data.receiver)
        if receiver_user and self.member_repo.get_for(group.id, receiver_user.id):
            raise ConflictError("the receiver is already a member of this group")
        invitation = models.Invitation(
            grupo_id=group.id,
            sender_id=data.sender_id,
            receiver=data.receiver,
            estado=models.INVITATION_PENDING,
            fecha=data.fecha or models.utcnow(),
        )
        invitation = self.invitation_repo.save(invitation)
        logger.info("invitation created id=%s grupo_id=%s receiver=%s", invitation.id, invitation.grupo_id, invitation.receiver)
        return invitation

    def update(self, invitation_id: int, data: InvitationUpdate, caller: models.User) -> models.Invitation:
        """Move an invitation to a new state.

        Terminal states cannot be left; repeating the current state is a
        no-op success, so a retried acceptance never duplicates the
        membership.
        """
        invitation = self.get(invitation_id)
        self._check_sender_or_admin(invitation, caller, "update")
        current, requested = invitation.estado, data.estado
        if current in models.TERMINAL_INVITATION_STATES and requested != current:
            raise InvalidTransitionError(current, requested)
        try:
            invitation.estado = requested
            self.invitation_repo.save(invitation, commit=False)
            self.session.flush()
            if requested == models.INVITATION_ACCEPTED and not self.member_repo.get_for(invitation.grupo_id, invitation.sender_id):
                self.member_repo.save(
                    models.Member(grupo_id=invitation.grupo_id, usuario_id=invitation.sender_id),
                    commit=False,
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(invitation)
        logger.info("invitation %s -> %s id=%s by user id=%s", current, requested, invitation.id, caller.id)
        return invitation

    def delete(self, invitation_id: int, caller: models.User) -> None:
        invitation = self.get(invitation_id)
        self._check_sender_or_admin(invitation, caller, "delete")
        self.invitation_repo.delete(invitation)
        logger.info("invitation deleted id=%s by user id=%s", invitation_id, caller.id)
