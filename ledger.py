"""Servicio de alto nivel para solicitudes de acceso al panel externo."""

import logging
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from database import Database
from errors import (
    InvalidStatus,
    NotFound,
    PasswordMismatch,
    PasswordTooShort,
    UsernameConflict,
    UsernameTooShort,
)
from models import ACTIVE_STATUSES, PanelRequest, RequestStatus, utcnow
from privacy import mask_ip
from security import PasswordHasher

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3


def _active_key(username: str, status: str) -> Optional[str]:
    return username if status in ACTIVE_STATUSES else None


# to_public_dict: Serializa una solicitud sin el hash de contraseña ni la IP cruda.
def to_public_dict(request: PanelRequest) -> dict:
    return {
        "id": request.id,
        "username": request.username,
        "status": request.status,
        "masked_ip": mask_ip(request.user_ip),
        "created_at": request.created_at,
        "approved_at": request.approved_at,
        "admin_notes": request.admin_notes,
    }


class RequestLedger:
    """Agrupa alta, consulta y cambio de estado de solicitudes.

    La autorización de list_all/update_status la aplica quien llama.
    """
    def __init__(self, db: Database, hasher: PasswordHasher):
        self.db = db
        self.hasher = hasher

    def submit(self, username: str, password: str, confirm_password: str, source_ip: str) -> dict:
        """Registra una solicitud pendiente y retorna la IP enmascarada.

        Orden de validación: coincidencia de contraseñas, longitud mínima y
        nombre de usuario (se guarda tal cual, sin recortar). El chequeo previo
        de conflicto da un error claro; la restricción UNIQUE sobre active_username es la garantía atómica.
        """
        if password != confirm_password:
            raise PasswordMismatch()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise PasswordTooShort()
        username = username or ''
        if len(username.strip()) < MIN_USERNAME_LENGTH:
            raise UsernameTooShort()

        with self.db.session() as s:
            statement = select(PanelRequest).where(
                PanelRequest.username == username,
                PanelRequest.status.in_(ACTIVE_STATUSES),
            )
            if s.exec(statement).first():
                logger.info("Panel request for %r rejected: username active", username)
                raise UsernameConflict()
            request = PanelRequest(
                username=username,
                password=self.hasher.hash(password),
                status=RequestStatus.PENDING.value,
                active_username=username,
                user_ip=source_ip,
            )
            s.add(request)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                logger.info("Panel request for %r lost the uniqueness race", username)
                raise UsernameConflict()
            s.refresh(request)
        masked = mask_ip(source_ip)
        logger.info("Panel request %s submitted for %r from %s", request.id, username, masked)
        return {"id": request.id, "maskedIp": masked}

    def list_all(self) -> List[dict]:
        """Lista todas las solicitudes, más recientes primero, con IP enmascarada."""
        with self.db.session() as s:
            statement = select(PanelRequest).order_by(
                PanelRequest.created_at.desc(), PanelRequest.id.desc()
            )
            rows = s.exec(statement).all()
        return [to_public_dict(r) for r in rows]

    def update_status(self, request_id: int, status: str, admin_notes: Optional[str] = None) -> PanelRequest:
        """Fija estado y notas; approved_at se marca al salir de pending.

        No se exige monotonía: volver a pending está permitido y limpia
        approved_at. Reactivar un nombre ya activo en otra solicitud lanza
        UsernameConflict.
        """
        valid = {st.value for st in RequestStatus}
        if status not in valid:
            raise InvalidStatus()

        with self.db.session() as s:
            request = s.get(PanelRequest, request_id)
            if request is None:
                raise NotFound("Panel request not found")
            previous = request.status
            request.status = status
            request.admin_notes = admin_notes
            request.approved_at = utcnow() if status != RequestStatus.PENDING.value else None
            request.active_username = _active_key(request.username, status)
            s.add(request)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                raise UsernameConflict()
            s.refresh(request)

        if previous != RequestStatus.PENDING.value and status == RequestStatus.PENDING.value:
            logger.warning("Panel request %s moved back from %s to pending", request_id, previous)
        logger.info("Panel request %s: %s -> %s", request_id, previous, status)
        return request

    def stats(self) -> dict:
        """Cuenta solicitudes por estado para la consola de administración."""
        with self.db.session() as s:
            rows = s.exec(
                select(PanelRequest.status, func.count(PanelRequest.id)).group_by(PanelRequest.status)
            ).all()
        counts = {st.value: 0 for st in RequestStatus}
        for status, count in rows:
            counts[status] = count
        counts["total"] = sum(counts.values())
        return counts
