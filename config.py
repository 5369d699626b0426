"""Módulo de configuración del panel de solicitudes.

Proporciona lectura de variables de entorno y la construcción de la URL del
almacén relacional (SQLite local por defecto, MySQL si se define DB_HOST).
"""

import os
from pathlib import Path
from functools import lru_cache
from urllib.parse import quote_plus
from dotenv import load_dotenv

TRUE_VALUES = ('1', 'true', 'yes', 'on')


# build_database_url: Construye la URL SQLAlchemy a partir de las variables DB_*.
# Sin host configurado se usa un archivo SQLite junto al módulo.
def build_database_url(host: str, user: str, password: str, name: str, base_dir: Path) -> str:
    if not host:
        return f"sqlite:///{base_dir / (name + '.db')}"
    credentials = quote_plus(user)
    if password:
        credentials += ':' + quote_plus(password)
    return f"mysql+pymysql://{credentials}@{host}/{name}"


def env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in TRUE_VALUES


# get_settings: Devuelve (cacheado) la instancia única de Settings.
@lru_cache
def get_settings():
    return Settings()


class Settings:
    """Agrupa todos los parámetros de configuración usados en la aplicación.

    Se inicializa leyendo variables de entorno; cada valor tiene un default
    pensado para desarrollo local. JWT_SECRET debe cambiarse en producción:
    no existe rotación ni revocación de tokens.
    """
    def __init__(self):
        # Cargar .env local (aislado al directorio del módulo)
        base_dir = Path(__file__).resolve().parent
        load_dotenv(base_dir / '.env')

        self.db_host = os.getenv('DB_HOST', '')
        self.db_user = os.getenv('DB_USER', 'root')
        self.db_password = os.getenv('DB_PASSWORD', '')
        self.db_name = os.getenv('DB_NAME', 'pterodactyl_panel')
        self.database_url = os.getenv('PANEL_DB_URL') or build_database_url(
            self.db_host, self.db_user, self.db_password, self.db_name, base_dir
        )

        self.jwt_secret = os.getenv('JWT_SECRET', 'your-secret-key')
        self.jwt_algorithm = os.getenv('JWT_ALG', 'HS256')
        self.session_ttl_hours = int(os.getenv('SESSION_TTL_HOURS', '24'))
        self.bcrypt_rounds = int(os.getenv('BCRYPT_ROUNDS', '12'))

        self.chat_history_limit = int(os.getenv('CHAT_HISTORY_LIMIT', '50'))
        # 0 = sin límite en servidor (el cliente corta en 500 caracteres)
        self.chat_max_length = int(os.getenv('CHAT_MAX_LENGTH', '0'))

        # Servidor HTTP
        self.host = os.getenv('HOST', '0.0.0.0')
        self.port = int(os.getenv('PORT', '3000'))
        self.env_mode = os.getenv('ENV_MODE', 'development').lower()
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.trust_proxy = env_flag('TRUST_PROXY')

    @property
    def secure_cookies(self) -> bool:
        return self.env_mode == 'production'
