"""Módulo de acceso a la base de datos.

Define el cliente del almacén (motor con pool y ciclo de vida explícito) y
utilidades de sesión para realizar operaciones CRUD. La instancia se crea en
app.create_app y se inyecta en los servicios; no hay motor global.
"""

import logging
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

import models  # noqa: F401  registra las tablas en SQLModel.metadata
from errors import InternalError

logger = logging.getLogger(__name__)


class Database:
    """Cliente del almacén relacional.

    init() crea las tablas si no existen, session() entrega una sesión y
    dispose() libera el pool al apagar el proceso.
    """
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.engine = create_engine(url, echo=echo, pool_pre_ping=True, connect_args=connect_args)

    # init: Crea todas las tablas definidas en los modelos si no existen.
    def init(self):
        SQLModel.metadata.create_all(self.engine)
        logger.info("Schema ready on %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session(self):
        """Context manager para manejar sesiones.

        Al salir realiza rollback si hubo excepción y cierra la sesión. Los
        errores de SQLAlchemy no capturados por el servicio se convierten en
        InternalError para no filtrar detalles al cliente.
        """
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Store operation failed")
            raise InternalError() from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self):
        self.engine.dispose()
        logger.info("Store connection pool disposed")
