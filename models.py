"""Modelos de datos persistentes.

Incluye operadores del panel, solicitudes de acceso al panel externo y los
mensajes del chat público.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from sqlalchemy import Column, Text
from sqlmodel import SQLModel, Field


# utcnow: Instante actual en UTC con zona horaria (el almacén rechaza valores naive).
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    ADMIN = 'admin'
    USER = 'user'


class RequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


# Estados que bloquean la reutilización del nombre de usuario.
ACTIVE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


class User(SQLModel, table=True):
    """Representa un operador autenticable con rol.

    Campos:
      username: Nombre único (distingue mayúsculas).
      password: Hash bcrypt, nunca se expone.
      role: admin | user.
    """
    __tablename__ = 'users'

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=255, unique=True, index=True)
    password: str = Field(max_length=255)
    role: str = Field(default=Role.USER.value, max_length=16, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class PanelRequest(SQLModel, table=True):
    """Solicitud de alta de una cuenta en el panel externo.

    `active_username` replica `username` mientras la solicitud está pendiente
    o aprobada y queda en NULL al rechazarse; su restricción UNIQUE es la que
    impide dos solicitudes activas con el mismo nombre.
    """
    __tablename__ = 'panel_requests'

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=255, index=True)
    password: str = Field(max_length=255)
    status: str = Field(default=RequestStatus.PENDING.value, max_length=16, index=True)
    active_username: Optional[str] = Field(default=None, max_length=255, unique=True, nullable=True)
    user_ip: Optional[str] = Field(default=None, max_length=45)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    approved_at: Optional[datetime] = None
    admin_notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))


class ChatMessage(SQLModel, table=True):
    """Mensaje inmutable del chat público.

    Guarda la IP cruda (solo servidor) y su forma enmascarada (la que se muestra).
    """
    __tablename__ = 'chat_messages'

    id: Optional[int] = Field(default=None, primary_key=True)
    user_ip: str = Field(max_length=45)
    masked_ip: str = Field(max_length=64)
    message: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, index=True)
