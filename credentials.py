"""Almacén de credenciales de operadores y arranque del admin por defecto."""

import logging
from sqlmodel import select

from database import Database
from errors import InvalidCredentials
from models import User, Role
from security import PasswordHasher

logger = logging.getLogger(__name__)

# Credenciales conocidas del primer arranque: deben cambiarse de inmediato.
DEFAULT_ADMIN_USERNAME = 'admin'
DEFAULT_ADMIN_PASSWORD = 'admin123'


class CredentialStore:
    """Verifica usuarios contra el hash almacenado."""
    def __init__(self, db: Database, hasher: PasswordHasher):
        self.db = db
        self.hasher = hasher
        # Hash de relleno: un usuario inexistente cuesta lo mismo que uno real.
        self._dummy_hash = hasher.hash(DEFAULT_ADMIN_PASSWORD)

    def hash(self, password: str) -> str:
        return self.hasher.hash(password)

    def verify(self, username: str, password: str) -> dict:
        """Devuelve {id, username, role} o lanza InvalidCredentials.

        Usuario inexistente y contraseña errónea producen el mismo error.
        """
        with self.db.session() as s:
            user = s.exec(select(User).where(User.username == username)).first()
        if user is None:
            self.hasher.verify(password, self._dummy_hash)
        if user is None or not self.hasher.verify(password, user.password):
            logger.info("Failed login for %r", username)
            raise InvalidCredentials()
        return {"id": user.id, "username": user.username, "role": user.role}

    def ensure_default_admin(self) -> bool:
        """Crea el admin por defecto si no existe ningún usuario con rol admin.

        Si el nombre por defecto ya pertenece a otra cuenta no se crea nada.
        Retorna True cuando se ha creado.
        """
        with self.db.session() as s:
            admin = s.exec(select(User).where(User.role == Role.ADMIN.value)).first()
            if admin:
                return False
            taken = s.exec(select(User).where(User.username == DEFAULT_ADMIN_USERNAME)).first()
            if taken:
                logger.warning(
                    "No admin user exists and %r is taken by a %s account; skipping default admin",
                    DEFAULT_ADMIN_USERNAME, taken.role,
                )
                return False
            s.add(User(
                username=DEFAULT_ADMIN_USERNAME,
                password=self.hasher.hash(DEFAULT_ADMIN_PASSWORD),
                role=Role.ADMIN.value,
            ))
            s.commit()
        logger.warning(
            "Created default admin user %r with the well-known default password; change it now",
            DEFAULT_ADMIN_USERNAME,
        )
        return True
