"""
Decorators de acesso para a API de gamificação.

A autenticação em si é externa: o provedor de login grava em sessão
`user = {'email': ..., 'name': ..., 'perfil_acesso': ...}` e o
`before_request` de `create_app` copia esses dados para `g`.
"""

from functools import wraps

from flask import g, jsonify, request, session

from ..config.logging_config import security_logger
from ..constants import PERFIS_COM_GESTAO


def load_logged_in_user():
    """Carrega g.user, g.user_email e g.perfil a partir da sessão."""
    user = session.get('user') or {}
    g.user = user
    g.user_email = user.get('email')
    g.perfil = {
        'nome': user.get('name', g.user_email),
        'perfil_acesso': user.get('perfil_acesso'),
    } if g.user_email else None


def login_required(f):
    """Protege rotas que exigem login. Responde 401 em JSON."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('user_email'):
            security_logger.info(f'Login required: anonymous access to {request.path}')
            return jsonify({'ok': False, 'error': 'Não autenticado', 'error_type': 'authentication_error'}), 401
        return f(*args, **kwargs)
    return decorated_function


def permission_required(required_profiles):
    """Decorator para proteger rotas por Perfil de Acesso."""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            user_perfil = g.perfil.get('perfil_acesso') if g.perfil else None
            if user_perfil is None or user_perfil not in required_profiles:
                security_logger.warning(
                    f'Access denied for user {g.user_email} with role {user_perfil} trying to access {request.path}'
                )
                return jsonify({
                    'ok': False,
                    'error': 'Acesso negado. Você não tem permissão para esta funcionalidade.',
                    'error_type': 'permission_error'
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def management_required(f):
    """Atalho para rotas restritas a Administrador, Gerente ou Coordenador."""
    return permission_required(PERFIS_COM_GESTAO)(f)
