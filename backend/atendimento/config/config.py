import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# Prioridade: .env.local (desenvolvimento) > .env (produção)
root_path = Path(__file__).resolve().parents[3]
env_local = root_path / '.env.local'
env_prod = root_path / '.env'

if env_local.exists():
    load_dotenv(str(env_local), override=True)
elif env_prod.exists():
    load_dotenv(str(env_prod), override=True)
else:
    _dotenv_path = find_dotenv(usecwd=True)
    if _dotenv_path:
        load_dotenv(_dotenv_path, override=False)


def _env_bool(name, default='false'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


class Config:
    """Configuração base da aplicação."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or os.environ.get('FLASK_SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("Nenhuma variável de ambiente SECRET_KEY ou FLASK_SECRET_KEY foi definida.")

    DATABASE_URL = os.environ.get('DATABASE_URL')

    # Verificar se é SQLite pela URL ou pela variável USE_SQLITE_LOCALLY
    USE_SQLITE_ENV = _env_bool('USE_SQLITE_LOCALLY')
    if USE_SQLITE_ENV or (DATABASE_URL and DATABASE_URL.startswith('sqlite')):
        USE_SQLITE_LOCALLY = True
    elif DATABASE_URL:
        USE_SQLITE_LOCALLY = False
    else:
        USE_SQLITE_LOCALLY = True

    SQLITE_PATH = os.environ.get('SQLITE_PATH')
    DB_POOL_MIN = int(os.environ.get('DB_POOL_MIN', '2'))
    DB_POOL_MAX = int(os.environ.get('DB_POOL_MAX', '20'))

    FLASK_ENV = os.environ.get('FLASK_ENV', 'production')
    DEBUG = _env_bool('DEBUG')
    APP_VERSION = os.environ.get('APP_VERSION', 'unknown')

    LOG_DIR = os.environ.get('LOG_DIR')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_ROTATION_ENABLED = _env_bool('LOG_ROTATION_ENABLED', 'true')
    LOG_RETENTION_DAYS = int(os.environ.get('LOG_RETENTION_DAYS', '14'))

    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    XP_GRANT_RATE_LIMIT = os.environ.get('XP_GRANT_RATE_LIMIT', '10 per minute')

    GAMIFICATION_CACHE_TTL = int(os.environ.get('GAMIFICATION_CACHE_TTL', '300'))
    SEED_ACHIEVEMENTS = _env_bool('SEED_ACHIEVEMENTS', 'true')

    PERMANENT_SESSION_LIFETIME = 60 * 60 * 24 * 7
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', 'true') if not USE_SQLITE_LOCALLY else False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
