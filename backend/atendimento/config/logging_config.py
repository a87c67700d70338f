import logging
import os
from logging.handlers import TimedRotatingFileHandler

from flask import g, has_app_context

LOGGER_NAMES = ['app', 'api', 'database', 'gamification', 'security']


class ContextFilter(logging.Filter):
    """Filtro para adicionar contexto do Flask aos logs.
    Preenche 'user_email' e 'user_profile' mesmo fora de app context.
    """

    def filter(self, record):
        user_email = None
        perfil = None
        if has_app_context():
            user_email = g.get('user_email')
            perfil = g.get('perfil')

        if user_email:
            record.user_email = user_email
            if isinstance(perfil, dict):
                perfil_acesso = perfil.get('perfil_acesso', 'unknown')
                nome = perfil.get('nome', user_email)
                record.user_profile = f"{nome} ({perfil_acesso})"
            else:
                record.user_profile = user_email
        else:
            record.user_email = 'system'
            record.user_profile = 'system'
        return True


def _replace_handlers(logger, handlers, log_level):
    for old in list(logger.handlers):
        if getattr(old, '_atendimento_handler', False):
            logger.removeHandler(old)
            old.close()
    logger.setLevel(log_level)
    for handler in handlers:
        logger.addHandler(handler)


def setup_logging(app):
    """Configura o sistema de logs para a aplicação."""

    default_dir = os.path.join(os.path.dirname(__file__), '..', 'logs')
    log_dir = app.config.get('LOG_DIR') or default_dir
    os.makedirs(log_dir, exist_ok=True)

    log_level_str = app.config.get('LOG_LEVEL', 'INFO')
    log_level = getattr(logging, str(log_level_str).upper(), logging.INFO)

    log_format = '%(asctime)s - %(levelname)s - %(user_email)s - %(user_profile)s - %(name)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    formatter = logging.Formatter(log_format, date_format)

    rotation_enabled = bool(app.config.get('LOG_ROTATION_ENABLED', True))
    retention_days = int(app.config.get('LOG_RETENTION_DAYS', 14))

    if rotation_enabled:
        file_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'app.log'), when='midnight', backupCount=retention_days, encoding='utf-8'
        )
        error_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'errors.log'), when='midnight', backupCount=retention_days, encoding='utf-8'
        )
    else:
        file_handler = logging.FileHandler(os.path.join(log_dir, 'app.log'), encoding='utf-8')
        error_handler = logging.FileHandler(os.path.join(log_dir, 'errors.log'), encoding='utf-8')
    error_handler.setLevel(logging.ERROR)

    console_handler = logging.StreamHandler()

    handlers = [file_handler, error_handler, console_handler]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        handler._atendimento_handler = True

    _replace_handlers(app.logger, handlers, log_level)
    for name in LOGGER_NAMES:
        named_logger = logging.getLogger(name)
        _replace_handlers(named_logger, handlers, log_level)
        named_logger.propagate = False

    app.logger.info('Sistema de logging configurado com sucesso')


def get_logger(name):
    """Obtém um logger com o nome especificado"""
    return logging.getLogger(name)


api_logger = get_logger('api')
db_logger = get_logger('database')
gamification_logger = get_logger('gamification')
security_logger = get_logger('security')
app_logger = get_logger('app')
