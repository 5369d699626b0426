"""Aplicación FastAPI principal: login de administradores, solicitudes de panel y chat.

Los servicios (almacén, credenciales, ledger, chat y emisor de sesiones) se
construyen en create_app y viajan en app.state; los endpoints los reciben por
dependencias.
"""

import logging
import sys
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from chat import ChatLog, to_public_dict as chat_to_dict
from config import Settings, get_settings
from credentials import CredentialStore
from database import Database
from errors import Forbidden, PanelError, TokenMissing
from ledger import RequestLedger, to_public_dict as request_to_dict
from models import Role
from security import PasswordHasher, SessionIssuer

logger = logging.getLogger(__name__)

SESSION_COOKIE = 'token'

router = APIRouter()
bearer = HTTPBearer(auto_error=False)

# ---------------------------- Schemas ----------------------------
class LoginPayload(BaseModel):
    """Payload para inicio de sesión de administradores."""
    username: str
    password: str

class PanelRequestPayload(BaseModel):
    """Payload público para solicitar una cuenta en el panel."""
    username: str
    password: str
    confirmPassword: str

class StatusPayload(BaseModel):
    """Payload para que un admin cambie el estado de una solicitud."""
    status: str
    admin_notes: Optional[str] = None

class ChatPayload(BaseModel):
    """Payload para publicar un mensaje en el chat."""
    message: str = ''

# ----------------------- Service Dependencies --------------------

def get_ledger(request: Request) -> RequestLedger:
    return request.app.state.ledger

def get_chat(request: Request) -> ChatLog:
    return request.app.state.chat

def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials

def get_issuer(request: Request) -> SessionIssuer:
    return request.app.state.issuer

# client_ip: IP del emisor; con TRUST_PROXY se usa el primer salto de X-Forwarded-For.
def client_ip(request: Request) -> str:
    if request.app.state.settings.trust_proxy:
        forwarded = request.headers.get('x-forwarded-for', '')
        if forwarded:
            return forwarded.split(',')[0].strip()
    return request.client.host if request.client else ''

# ----------------------- Auth Dependencies -----------------------

def session_token(request: Request,
                  credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[str]:
    """Token de la cabecera Authorization o, si falta, de la cookie de sesión."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE)


def get_current_user(token: Optional[str] = Depends(session_token),
                     issuer: SessionIssuer = Depends(get_issuer)) -> dict:
    """Obtiene la identidad firmada del token o lanza 401 (sin token) / 403 (inválido)."""
    if not token:
        raise TokenMissing()
    return issuer.verify(token)


def require_role(role: str):
    """Genera dependencia que valida que la sesión tenga el rol requerido."""
    def checker(user: dict = Depends(get_current_user)):
        if user['role'] != role:
            raise Forbidden()
        return user
    return checker

# --------------------------- Auth Routes -------------------------
@router.post('/api/login')
def login(payload: LoginPayload, response: Response, request: Request,
          credentials: CredentialStore = Depends(get_credentials),
          issuer: SessionIssuer = Depends(get_issuer)):
    """Autentica un administrador, devuelve el token y lo fija como cookie HttpOnly."""
    user = credentials.verify(payload.username, payload.password)
    if user['role'] != Role.ADMIN.value:
        logger.info("Login refused for non-admin %r", user['username'])
        raise Forbidden()
    token = issuer.issue(user['id'], user['username'], user['role'])
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        secure=request.app.state.settings.secure_cookies,
        samesite='lax',
        max_age=int(issuer.ttl.total_seconds()),
    )
    logger.info("Admin %r logged in", user['username'])
    return {"token": token, "user": user}

@router.post('/api/logout')
def logout(response: Response):
    """Elimina la cookie de sesión; el token sigue siendo válido hasta expirar."""
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out successfully"}

# ------------------------ Panel Requests -------------------------
@router.post('/api/panel-request')
def submit_panel_request(payload: PanelRequestPayload, request: Request,
                         ledger: RequestLedger = Depends(get_ledger)):
    """Alta pública de una solicitud; solo se devuelve la IP enmascarada."""
    result = ledger.submit(payload.username, payload.password, payload.confirmPassword, client_ip(request))
    return {"message": "Panel request submitted successfully", "maskedIp": result["maskedIp"]}

@router.get('/api/admin/panel-requests')
def list_panel_requests(admin: dict = Depends(require_role(Role.ADMIN.value)),
                        ledger: RequestLedger = Depends(get_ledger)):
    """Lista todas las solicitudes, más recientes primero (solo admin)."""
    return ledger.list_all()

@router.put('/api/admin/panel-requests/{request_id}')
def update_panel_request(request_id: int, payload: StatusPayload,
                         admin: dict = Depends(require_role(Role.ADMIN.value)),
                         ledger: RequestLedger = Depends(get_ledger)):
    """Aprueba, rechaza o devuelve a pendiente una solicitud (solo admin)."""
    updated = ledger.update_status(request_id, payload.status, payload.admin_notes)
    logger.info("Admin %r set panel request %s to %s", admin['username'], request_id, payload.status)
    return {"message": "Panel request updated successfully", "request": request_to_dict(updated)}

# ----------------------------- Chat ------------------------------
@router.get('/api/chat/messages')
def chat_messages(limit: Optional[int] = Query(None, ge=1, le=200),
                  chat: ChatLog = Depends(get_chat)):
    """Últimos mensajes en orden cronológico; el cliente vuelve a consultar periódicamente."""
    return [chat_to_dict(m) for m in chat.recent(limit)]

@router.post('/api/chat/messages')
def send_chat_message(payload: ChatPayload, request: Request, chat: ChatLog = Depends(get_chat)):
    """Publica un mensaje anónimo identificado por la IP enmascarada."""
    result = chat.post(payload.message, client_ip(request))
    return {"message": "Message sent successfully", "maskedIp": result["maskedIp"]}

# ---------------------------- Console ----------------------------
@router.get('/admin')
def admin_console(token: Optional[str] = Depends(session_token),
                  issuer: SessionIssuer = Depends(get_issuer),
                  ledger: RequestLedger = Depends(get_ledger)):
    """Modelo de la consola: datos completos solo con sesión admin válida."""
    user = None
    if token:
        try:
            user = issuer.verify(token)
        except PanelError:
            user = None
    if not user or user['role'] != Role.ADMIN.value:
        empty = {"total": 0, "pending": 0, "approved": 0, "rejected": 0}
        return {"authenticated": False, "user": None, "panelRequests": [], "stats": empty}
    return {
        "authenticated": True,
        "user": user,
        "panelRequests": ledger.list_all(),
        "stats": ledger.stats(),
    }

# -------------------------- Utility ------------------------------
@router.get('/health')
def health():
    """Verificación básica de salud."""
    return {"status": "ok"}

# -------------------------- Factory ------------------------------

def configure_logging(level: str = 'INFO'):
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(settings: Settings = None) -> FastAPI:
    """Construye la aplicación con sus servicios inyectados en app.state."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    db = Database(settings.database_url)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    app = FastAPI(title="Panel Request API", version="0.1.0")
    app.state.settings = settings
    app.state.db = db
    app.state.credentials = CredentialStore(db, hasher)
    app.state.ledger = RequestLedger(db, hasher)
    app.state.chat = ChatLog(db, max_length=settings.chat_max_length,
                             history_limit=settings.chat_history_limit)
    app.state.issuer = SessionIssuer(settings.jwt_secret, settings.jwt_algorithm,
                                     timedelta(hours=settings.session_ttl_hours))
    app.include_router(router)

    @app.on_event("startup")
    def on_startup():
        """Inicializa el esquema y crea el admin por defecto si falta."""
        db.init()
        app.state.credentials.ensure_default_admin()

    @app.on_event("shutdown")
    def on_shutdown():
        db.dispose()

    @app.exception_handler(PanelError)
    async def panel_error_handler(request: Request, exc: PanelError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == '__main__':
    main()
