"""
Decoradores e utilitários para tratamento de erros robusto
"""

import functools

from flask import current_app, jsonify, request

from ..config.logging_config import api_logger
from .exceptions import (
    AtendimentoException,
    AuthorizationError,
    ConflictError,
    QuotaExceededError,
    ResourceNotFoundError,
    ValidationError,
)


def _error_response(exc: AtendimentoException, error_type: str, status: int):
    return jsonify({
        'ok': False,
        'error': exc.message,
        'error_type': error_type,
        'details': exc.details,
    }), status


def handle_api_errors(f):
    """
    Decorator para tratamento consistente de erros em endpoints de API.
    Captura exceções e retorna respostas JSON padronizadas.
    """
    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            api_logger.warning(f"Validation error in {f.__name__}: {e.message}")
            return _error_response(e, 'validation_error', 400)
        except AuthorizationError as e:
            api_logger.warning(f"Permission denied in {f.__name__}: {e.message}")
            return _error_response(e, 'permission_error', 403)
        except ResourceNotFoundError as e:
            api_logger.warning(f"Resource not found in {f.__name__}: {e.message}")
            return _error_response(e, 'not_found', 404)
        except ConflictError as e:
            api_logger.warning(f"Conflict in {f.__name__}: {e.message}")
            return _error_response(e, 'conflict', 409)
        except QuotaExceededError as e:
            api_logger.warning(f"Quota exceeded in {f.__name__}: {e.message}")
            response, status = _error_response(e, 'quota_exceeded', 429)
            if e.retry_after:
                response.headers['Retry-After'] = str(e.retry_after)
            return response, status
        except Exception as e:
            api_logger.error(f"Unexpected error in {f.__name__}: {str(e)}", exc_info=True)

            if current_app.config.get('DEBUG'):
                return jsonify({
                    'ok': False,
                    'error': str(e),
                    'error_type': 'internal_error',
                    'debug_info': {
                        'function': f.__name__,
                        'exception_type': type(e).__name__
                    }
                }), 500

            return jsonify({
                'ok': False,
                'error': 'Erro interno do servidor',
                'error_type': 'internal_error'
            }), 500

    return decorated_function


def get_json_body():
    """Retorna o corpo JSON da requisição ou lança ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Corpo da requisição deve ser um objeto JSON")
    return data


def require_fields(*required_fields):
    """
    Decorator para validar campos obrigatórios em requisições JSON.

    Uso:
        @require_fields('attendant_id', 'rating')
        def minha_rota():
            ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated_function(*args, **kwargs):
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({
                    'ok': False,
                    'error': 'Content-Type deve ser application/json',
                    'error_type': 'validation_error'
                }), 400

            missing_fields = [field for field in required_fields if data.get(field) in (None, '')]
            if missing_fields:
                return jsonify({
                    'ok': False,
                    'error': f'Campos obrigatórios ausentes: {", ".join(missing_fields)}',
                    'error_type': 'validation_error',
                    'missing_fields': missing_fields
                }), 400

            return f(*args, **kwargs)

        return decorated_function
    return decorator
