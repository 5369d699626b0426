"""Funciones de seguridad: hashing de contraseñas y tokens de sesión.

Se utiliza bcrypt vía passlib para almacenar contraseñas y PyJWT para firmar
tokens HS256 que transportan {id, username, role} con caducidad.
"""

import logging
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt

from errors import TokenExpired, TokenInvalid

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("id", "username", "role", "exp")


class PasswordHasher:
    """Hash lento y con sal (bcrypt) compartido por usuarios y solicitudes."""
    def __init__(self, rounds: int = 12):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    # hash: Genera hash bcrypt de una contraseña en texto plano.
    def hash(self, password: str) -> str:
        return self.context.hash(_truncate(password))

    # verify: Verifica si la contraseña suministrada coincide con el hash.
    def verify(self, password: str, password_hash: str) -> bool:
        return self.context.verify(_truncate(password), password_hash)


# Truncar password a 72 bytes para compatibilidad bcrypt
def _truncate(password: str) -> str:
    return password.encode('utf-8')[:72].decode('utf-8', errors='ignore')


class SessionIssuer:
    """Emite y verifica tokens de sesión firmados con el secreto del proceso.

    El rol viaja dentro del token: la firma es obligatoria en verify(), por lo
    que editar el rol invalida el token. No hay rotación del secreto ni lista
    de revocación.
    """
    def __init__(self, secret: str, algorithm: str = 'HS256', ttl: timedelta = timedelta(hours=24)):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    # issue: Crea un JWT con id, username y rol, expirando tras `ttl`.
    def issue(self, user_id: int, username: str, role: str, now: datetime = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "username": username,
            "role": role,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    # verify: Decodifica el JWT y retorna la identidad o lanza TokenExpired/TokenInvalid.
    def verify(self, token: str) -> dict:
        try:
            data = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": list(REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.PyJWTError as exc:
            logger.info("Rejected session token: %s", exc.__class__.__name__)
            raise TokenInvalid()
        return {"id": data["id"], "username": data["username"], "role": data["role"]}
