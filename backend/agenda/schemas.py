"""Pydantic request schemas used by the API.

Schemas validate every payload before any persistence call. Validation
failures surface as 400 responses with one entry per offending field
(see `agenda.exception_handlers`).
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

Role = Literal["admin", "profesor", "estudiante", "oficina"]
GroupState = Literal["activo", "inactivo"]
GroupType = Literal["academico", "social", "deportivo", "cultural"]
InvitationState = Literal["pendiente", "aceptada", "rechazada"]

MAX_EMAIL_LENGTH = 50


def _normalise_email(value: str, max_length: int = MAX_EMAIL_LENGTH) -> str:
    value = value.strip().lower()
    if len(value) > max_length:
        raise ValueError(f"must be at most {max_length} characters")
    return value


class UserFields(BaseModel):
    """Optional user profile fields shared by create and update payloads."""
    fecha: Optional[date] = None
    nivel: Optional[int] = Field(default=None, ge=1, le=5)
    celular: Optional[str] = Field(default=None, min_length=8, max_length=50)
    telefono: Optional[str] = Field(default=None, min_length=8, max_length=50)
    carnet: Optional[str] = Field(default=None, min_length=10, max_length=50)
    carrera_id: Optional[int] = Field(default=None, gt=0)


class UserCreate(UserFields):
    """Payload for registration and admin user creation."""
    nombres: str = Field(min_length=2, max_length=50)
    apellidos: str = Field(min_length=2, max_length=50)
    correo: EmailStr
    rol: Role = "estudiante"
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)

    @field_validator("correo")
    @classmethod
    def _check_correo(cls, v: str) -> str:
        return _normalise_email(v)


class ProfileUpdate(UserFields):
    """Self-service profile changes; the role cannot be changed here."""
    nombres: Optional[str] = Field(default=None, min_length=2, max_length=50)
    apellidos: Optional[str] = Field(default=None, min_length=2, max_length=50)
    correo: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)

    @field_validator("correo")
    @classmethod
    def _check_correo(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_email(v) if v is not None else v


class UserUpdate(ProfileUpdate):
    """Admin changes to any user, including the role."""
    rol: Optional[Role] = None


class CareerCreate(BaseModel):
    nombre: str = Field(min_length=3, max_length=100)
    codigo: int = Field(ge=10, le=9999999999)
    descripcion: Optional[str] = Field(default=None, max_length=500)


class CareerUpdate(BaseModel):
    nombre: Optional[str] = Field(default=None, min_length=3, max_length=100)
    codigo: Optional[int] = Field(default=None, ge=10, le=9999999999)
    descripcion: Optional[str] = Field(default=None, max_length=500)


class GroupCreate(BaseModel):
    nombre: str = Field(min_length=3, max_length=100)
    creador_id: int = Field(gt=0)
    descripcion: Optional[str] = Field(default=None, max_length=500)
    estado: GroupState = "activo"
    tipo: Optional[GroupType] = None


class GroupUpdate(BaseModel):
    """Group changes; the creator is fixed at creation time."""
    nombre: Optional[str] = Field(default=None, min_length=3, max_length=100)
    descripcion: Optional[str] = Field(default=None, max_length=500)
    estado: Optional[GroupState] = None
    tipo: Optional[GroupType] = None


class MemberCreate(BaseModel):
    grupo_id: int = Field(gt=0)
    usuario_id: int = Field(gt=0)


class GroupMemberAdd(BaseModel):
    """Body of the nested `POST /grupos/{id}/miembros` route."""
    usuario_id: int = Field(gt=0)


class InvitationCreate(BaseModel):
    """A new invitation always starts pending."""
    grupo_id: int = Field(gt=0)
    sender_id: int = Field(gt=0)
    receiver: EmailStr
    fecha: Optional[datetime] = None
    estado: Literal["pendiente"] = "pendiente"

    @field_validator("receiver")
    @classmethod
    def _check_receiver(cls, v: str) -> str:
        v = _normalise_email(v, max_length=100)
        if len(v) < 4:
            raise ValueError("must be at least 4 characters")
        return v


class InvitationUpdate(BaseModel):
    estado: InvitationState


class LoginIn(BaseModel):
    """Login payload; `password` is only checked for accounts that have one."""
    correo: EmailStr
    password: Optional[str] = None

    @field_validator("correo")
    @classmethod
    def _check_correo(cls, v: str) -> str:
        return v.strip().lower()


class FederatedLoginIn(BaseModel):
    """Identity token issued by the external provider."""
    credential: str = Field(min_length=1)
