from flask import g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address


def rate_limit_key():
    """Limita por usuário autenticado; sem sessão, por IP."""
    return g.get('user_email') or get_remote_address()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100 per minute"],
    strategy="fixed-window",
    headers_enabled=True,
)


def init_limiter(app):
    """
    Inicializa o Flask-Limiter com limite global de 100 requisições/minuto por IP.
    A rota de concessão de XP avulso tem limite próprio por usuário.
    """
    app.config.setdefault('RATELIMIT_STORAGE_URI', 'memory://')
    limiter.init_app(app)
    app.logger.info("Extensão Limiter inicializada (limite global: 100 req/min).")
