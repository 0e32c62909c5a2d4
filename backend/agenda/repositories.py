"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
careers, groups, members, invitations). Repositories return SQLModel
objects and commit where appropriate; `save(..., commit=False)` lets a
service group several writes into one transaction.
"""

from typing import Dict, Iterable, List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import func, or_
from . import models
from .utils.pagination import ListParams


class Repository:
    """Shared CRUD and paginated listing for one model.

    Subclasses set `model`, the allow-listed `sort_fields` and the default
    ordering applied when the client does not request one.
    """
    model = None
    sort_fields: Tuple[str, ...] = ()
    default_sort = "id"
    default_order = "asc"

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        """Get a row by primary key, or `None`."""
        return self.session.get(self.model, obj_id)

    def save(self, obj, commit: bool = True):
        """Add or update `obj`; commit and refresh unless `commit` is False."""
        self.session.add(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.commit()

    def page(self, conditions: List, params: ListParams) -> Tuple[list, int]:
        """Return one page of rows matching `conditions` and the total count."""
        count_stmt = select(func.count()).select_from(self.model)
        stmt = select(self.model)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)
        total = self.session.exec(count_stmt).one()
        sort_field = params.sort_by if params.sort_by in self.sort_fields else self.default_sort
        order = params.sort_order or self.default_order
        column = getattr(self.model, sort_field)
        stmt = stmt.order_by(column.desc() if order == "desc" else column.asc(), self.model.id)
        rows = self.session.exec(stmt.offset(params.offset).limit(params.limit)).all()
        return rows, total

    def _count(self, *conditions) -> int:
        stmt = select(func.count()).select_from(self.model).where(*conditions)
        return self.session.exec(stmt).one()


def _contains(term: str, *columns):
    pattern = f"%{term.strip()}%"
    return or_(*[c.ilike(pattern) for c in columns])


class UserRepository(Repository):
    """CRUD operations for `User` objects."""
    model = models.User
    sort_fields = ("nombres", "apellidos", "correo", "rol", "created_at")
    default_sort = "nombres"

    def get_by_correo(self, correo: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.correo) == correo.strip().lower())
        return self.session.exec(stmt).first()

    def list(self, params: ListParams, rol: Optional[str] = None,
             carrera_id: Optional[int] = None, search: Optional[str] = None):
        conditions = []
        if rol:
            conditions.append(models.User.rol == rol)
        if carrera_id:
            conditions.append(models.User.carrera_id == carrera_id)
        if search:
            conditions.append(_contains(search, models.User.nombres, models.User.apellidos, models.User.correo))
        return self.page(conditions, params)

    def count_for_career(self, career_id: int) -> int:
        return self._count(models.User.carrera_id == career_id)

    def counts_by_career(self, career_ids: Iterable[int]) -> Dict[int, int]:
        """Map each career id to its number of enrolled users."""
        ids = list(career_ids)
        if not ids:
            return {}
        stmt = (
            select(models.User.carrera_id, func.count())
            .where(models.User.carrera_id.in_(ids))
            .group_by(models.User.carrera_id)
        )
        return {career_id: n for career_id, n in self.session.exec(stmt).all()}


class CareerRepository(Repository):
    """CRUD operations for `Career` objects."""
    model = models.Career
    sort_fields = ("nombre", "codigo", "created_at")
    default_sort = "nombre"

    def get_by_codigo(self, codigo: int) -> Optional[models.Career]:
        stmt = select(models.Career).where(models.Career.codigo == codigo)
        return self.session.exec(stmt).first()

    def list(self, params: ListParams, search: Optional[str] = None):
        conditions = []
        if search:
            conditions.append(_contains(search, models.Career.nombre, models.Career.descripcion))
        return self.page(conditions, params)


class GroupRepository(Repository):
    """CRUD operations for `Group` objects."""
    model = models.Group
    sort_fields = ("nombre", "tipo", "estado", "created_at")
    default_sort = "nombre"

    def list(self, params: ListParams, estado: Optional[str] = None, tipo: Optional[str] = None,
             creador_id: Optional[int] = None, search: Optional[str] = None):
        conditions = []
        if estado:
            conditions.append(models.Group.estado == estado)
        if tipo:
            conditions.append(models.Group.tipo == tipo)
        if creador_id:
            conditions.append(models.Group.creador_id == creador_id)
        if search:
            conditions.append(_contains(search, models.Group.nombre, models.Group.descripcion))
        return self.page(conditions, params)

    def count_created_by(self, user_id: int) -> int:
        return self._count(models.Group.creador_id == user_id)


class MemberRepository(Repository):
    """CRUD operations for `Member` rows."""
    model = models.Member
    sort_fields = ("fecha", "usuario_id", "grupo_id")
    default_sort = "fecha"

    def get_for(self, group_id: int, user_id: int) -> Optional[models.Member]:
        """Return the membership of `user_id` in `group_id`, if any."""
        stmt = select(models.Member).where(
            models.Member.grupo_id == group_id,
            models.Member.usuario_id == user_id
        )
        return self.session.exec(stmt).first()

    def list(self, params: ListParams, grupo_id: Optional[int] = None, usuario_id: Optional[int] = None):
        conditions = []
        if grupo_id:
            conditions.append(models.Member.grupo_id == grupo_id)
        if usuario_id:
            conditions.append(models.Member.usuario_id == usuario_id)
        return self.page(conditions, params)

    def list_for_group(self, group_id: int) -> List[models.Member]:
        stmt = select(models.Member).where(models.Member.grupo_id == group_id).order_by(models.Member.fecha, models.Member.id)
        return self.session.exec(stmt).all()

    def count_for_group(self, group_id: int) -> int:
        return self._count(models.Member.grupo_id == group_id)

    def count_for_user(self, user_id: int) -> int:
        return self._count(models.Member.usuario_id == user_id)

    def counts_by_group(self, group_ids: Iterable[int]) -> Dict[int, int]:
        """Map each group id to its number of members."""
        ids = list(group_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Member.grupo_id, func.count())
            .where(models.Member.grupo_id.in_(ids))
            .group_by(models.Member.grupo_id)
        )
        return {group_id: n for group_id, n in self.session.exec(stmt).all()}


class InvitationRepository(Repository):
    """CRUD operations for `Invitation` rows."""
    model = models.Invitation
    sort_fields = ("fecha", "estado", "grupo_id", "sender_id")
    default_sort = "fecha"
    default_order = "desc"

    def find_for(self, group_id: int, receiver: str) -> Optional[models.Invitation]:
        """Return any invitation addressed to `receiver` for `group_id`."""
        stmt = select(models.Invitation).where(
            models.Invitation.grupo_id == group_id,
            func.lower(models.Invitation.receiver) == receiver.strip().lower()
        )
        return self.session.exec(stmt).first()

    def list(self, params: ListParams, estado: Optional[str] = None, grupo_id: Optional[int] = None,
             sender_id: Optional[int] = None, receiver: Optional[str] = None):
        conditions = []
        if estado:
            conditions.append(models.Invitation.estado == estado)
        if grupo_id:
            conditions.append(models.Invitation.grupo_id == grupo_id)
        if sender_id:
            conditions.append(models.Invitation.sender_id == sender_id)
        if receiver:
            conditions.append(func.lower(models.Invitation.receiver) == receiver.strip().lower())
        return self.page(conditions, params)

    def count_for_group(self, group_id: int) -> int:
        return self._count(models.Invitation.grupo_id == group_id)

    def count_sent_by(self, user_id: int) -> int:
        return self._count(models.Invitation.sender_id == user_id)
