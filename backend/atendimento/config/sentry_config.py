"""
Configuração do Sentry para monitoramento de erros em produção.

Sentry captura automaticamente:
- Exceções não tratadas
- Erros de HTTP (5xx)
- Breadcrumbs (logs de contexto)
"""

import os

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration


def init_sentry(app):
    """
    Inicializa o Sentry para monitoramento de erros.

    Args:
        app: Instância do Flask app

    Configuração:
        SENTRY_DSN: URL do projeto Sentry
        FLASK_ENV: Ambiente (development, staging, production)
    """
    sentry_dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')

    if not sentry_dsn:
        app.logger.info("Sentry não configurado (SENTRY_DSN não definido)")
        return False

    environment = app.config.get('FLASK_ENV', 'production')

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=None, event_level='ERROR'),
        ],
        traces_sample_rate=0.1,
        environment=environment,
        release=app.config.get('APP_VERSION', 'unknown'),
        send_default_pii=False,
        max_breadcrumbs=50,
        before_send=before_send_filter,
    )

    app.logger.info(f"Sentry inicializado: environment={environment}, traces_sample_rate=0.1")
    return True


def before_send_filter(event, hint):
    """
    Filtro de eventos antes de enviar para o Sentry.

    Remove cabeçalhos sensíveis e descarta erros de cliente
    (validação, conflito, cota) que não indicam falha do sistema.
    """
    exc_info = hint.get('exc_info') if hint else None
    if exc_info:
        from ..common.exceptions import ConflictError, QuotaExceededError, ResourceNotFoundError, ValidationError
        if isinstance(exc_info[1], (ValidationError, ConflictError, QuotaExceededError, ResourceNotFoundError)):
            return None

    if 'request' in event:
        headers = event['request'].get('headers', {})
        if 'Authorization' in headers:
            headers['Authorization'] = '[Filtered]'
        if 'Cookie' in headers:
            headers['Cookie'] = '[Filtered]'

    return event


def capture_exception(exception, context=None):
    """
    Captura uma exceção manualmente e envia para o Sentry.

    Args:
        exception: Exceção a ser capturada
        context: Contexto adicional (dict)
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in (context or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)

