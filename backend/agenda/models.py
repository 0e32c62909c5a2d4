"""SQLModel data models.

This module defines the directory's database tables using SQLModel.
Column names follow the public API field names (`nombres`, `correo`,
`grupo_id`, ...) so rows serialise directly into responses.
"""

from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import BigInteger, Column, UniqueConstraint
from datetime import datetime, date, timezone

ROLE_ADMIN = "admin"
ROLE_FACULTY = "profesor"
ROLE_STUDENT = "estudiante"
ROLE_OFFICE = "oficina"
ROLES = (ROLE_ADMIN, ROLE_FACULTY, ROLE_STUDENT, ROLE_OFFICE)

INVITATION_PENDING = "pendiente"
INVITATION_ACCEPTED = "aceptada"
INVITATION_REJECTED = "rechazada"
INVITATION_STATES = (INVITATION_PENDING, INVITATION_ACCEPTED, INVITATION_REJECTED)
TERMINAL_INVITATION_STATES = (INVITATION_ACCEPTED, INVITATION_REJECTED)

GROUP_STATES = ("activo", "inactivo")
GROUP_TYPES = ("academico", "social", "deportivo", "cultural")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Career(SQLModel, table=True):
    """An academic program ("carrera") users may be enrolled in.

    `codigo` is the program's unique numeric code.
    """
    __tablename__ = "carreras"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    codigo: int = Field(sa_column=Column(BigInteger, unique=True, nullable=False, index=True))
    descripcion: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    """A directory user.

    Fields:
    - `correo`: unique institutional email, used as the login name
    - `rol`: one of `ROLES`
    - `password_hash`: optional; accounts provisioned through federated
      login have none
    """
    __tablename__ = "usuarios"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombres: str = Field(index=True)
    apellidos: str = ""
    correo: str = Field(index=True, nullable=False, unique=True)
    rol: str = Field(default=ROLE_STUDENT, index=True)
    carrera_id: Optional[int] = Field(default=None, foreign_key="carreras.id", index=True)
    fecha: Optional[date] = None
    nivel: Optional[int] = None
    celular: Optional[str] = None
    telefono: Optional[str] = None
    carnet: Optional[str] = None
    password_hash: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.nombres} {self.apellidos}".strip()

    def public(self) -> dict:
        """Return the user's fields without credentials."""
        return self.model_dump(exclude={"password_hash"})


class Group(SQLModel, table=True):
    """A named collection of users, owned by its creator."""
    __tablename__ = "grupos"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    creador_id: int = Field(foreign_key="usuarios.id", index=True)
    descripcion: Optional[str] = None
    estado: str = "activo"
    tipo: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Member(SQLModel, table=True):
    """Membership of one user in one group; unique per (group, user)."""
    __tablename__ = "miembros"
    __table_args__ = (UniqueConstraint("grupo_id", "usuario_id", name="uq_miembro_grupo_usuario"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    grupo_id: int = Field(foreign_key="grupos.id", index=True)
    usuario_id: int = Field(foreign_key="usuarios.id", index=True)
    fecha: datetime = Field(default_factory=utcnow)


class Invitation(SQLModel, table=True):
    """An offer sent by an existing user to an email address to join a group.

    `receiver` is an email and does not need to belong to a registered
    user. `estado` moves from pending to accepted or rejected and never
    leaves a terminal state.
    """
    __tablename__ = "invitaciones"

    id: Optional[int] = Field(default=None, primary_key=True)
    grupo_id: int = Field(foreign_key="grupos.id", index=True)
    sender_id: int = Field(foreign_key="usuarios.id", index=True)
    receiver: str = Field(index=True)
    estado: str = Field(default=INVITATION_PENDING, index=True)
    fecha: datetime = Field(default_factory=utcnow)
