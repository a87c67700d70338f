import json

import click
from flask import Flask, jsonify
from flask.cli import with_appcontext
from werkzeug.middleware.proxy_fix import ProxyFix

from .config.logging_config import setup_logging
from .core.extensions import init_limiter


def create_app(test_config=None):
    app = Flask(__name__)

    app.wsgi_app = ProxyFix(
        app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1
    )

    from .config import Config
    app.config.from_object(Config)

    if test_config is not None:
        app.config.from_mapping(test_config)

    setup_logging(app)

    from .config.sentry_config import init_sentry
    init_sentry(app)

    init_limiter(app)

    from .core.container import ServiceContainer
    from .core.service_registry import register_all_services
    container = ServiceContainer(app)
    register_all_services(app, container, clock=app.config.get('GAMIFICATION_CLOCK'))

    from .database import schema
    schema.init_app(app)
    app.cli.add_command(process_achievements_command)

    if app.config.get('USE_SQLITE_LOCALLY', False):
        # Em desenvolvimento/testes o schema é criado automaticamente
        schema.init_db(container.db, seed_achievements=app.config.get('SEED_ACHIEVEMENTS', True))

    from .security.auth import load_logged_in_user
    app.before_request(load_logged_in_user)

    from .modules.gamification.api.routes import gamification_api_bp
    app.register_blueprint(gamification_api_bp)

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({
            'ok': False,
            'error': f'Limite de requisições excedido: {e.description}',
            'error_type': 'rate_limit'
        }), 429

    app.logger.info("Aplicação de gamificação inicializada")
    return app


@click.command('process-achievements')
@click.option('--season-id', type=int, default=None, help='Processa apenas a temporada informada.')
@click.option('--attendant-id', default=None, help='Processa apenas um atendente.')
@click.option('--force', is_flag=True, default=False, help='Reprocessa conquistas já desbloqueadas.')
@with_appcontext
def process_achievements_command(season_id, attendant_id, force):
    """Executa o processamento retroativo de conquistas."""
    from .core.container import get_container

    processor = get_container().retroactive_processor
    if attendant_id:
        result = processor.process_attendant(attendant_id, season_id=season_id, force_reprocess=force)
    elif season_id is not None:
        result = processor.process_season(season_id, force_reprocess=force)
    else:
        result = processor.process_all(force_reprocess=force)
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
