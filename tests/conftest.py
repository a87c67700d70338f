"""
Conftest.py: Configuração global de testes para pytest.

Contém fixtures reutilizáveis para:
- Criação de app Flask em modo de teste (um banco SQLite temporário por teste)
- Relógio controlável injetado em todos os serviços
- Cliente HTTP de teste com perfis de gestão e de atendente
- Atalhos para criar atendentes, temporadas e conquistas
"""

import os
from datetime import datetime, timedelta

import pytest

# Forçar ambiente de teste ANTES de qualquer import do projeto
os.environ["USE_SQLITE_LOCALLY"] = "True"
os.environ["FLASK_ENV"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-do-not-use-in-production"
os.environ["SENTRY_DSN"] = ""
os.environ["DEBUG"] = "False"


class FrozenClock:
    """Relógio de teste: devolve sempre o mesmo instante até ser movido."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, moment):
        self.now = moment

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Catalog:
    """Manipula o catálogo de conquistas direto no banco."""

    def __init__(self, db):
        self.db = db

    def clear(self):
        with self.db.transaction() as tx:
            tx.execute("DELETE FROM conquistas_config")

    def add(self, achievement_id, xp, criteria, title=None, active=True):
        with self.db.transaction() as tx:
            tx.execute(
                "INSERT INTO conquistas_config (id, titulo, descricao, xp, ativa, criterio) VALUES (%s, %s, %s, %s, %s, %s)",
                (achievement_id, title or achievement_id, '', xp, active, criteria)
            )

    def only(self, *achievements):
        """Substitui o catálogo pelas conquistas informadas: (id, xp, criterio)."""
        self.clear()
        for achievement_id, xp, criteria in achievements:
            self.add(achievement_id, xp, criteria)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 15, 12, 0, 0))


@pytest.fixture
def app(tmp_path, clock):
    """Cria uma instância da aplicação Flask para testes."""
    from backend.atendimento import create_app

    test_config = {
        "TESTING": True,
        "USE_SQLITE_LOCALLY": True,
        "SQLITE_PATH": str(tmp_path / "gamificacao_test.db"),
        "SECRET_KEY": "test-secret-key-do-not-use-in-production",
        "RATELIMIT_ENABLED": False,
        "SENTRY_DSN": None,
        "LOG_DIR": str(tmp_path / "logs"),
        "LOG_ROTATION_ENABLED": False,
        "GAMIFICATION_CLOCK": clock,
        "GAMIFICATION_CACHE_TTL": 300,
        "SEED_ACHIEVEMENTS": True,
    }

    app = create_app(test_config=test_config)

    yield app

    app.service_container.db.close()


@pytest.fixture
def services(app):
    """ServiceContainer da aplicação de teste."""
    return app.service_container


@pytest.fixture
def client(app):
    """Cria um cliente de teste HTTP."""
    with app.test_client() as client:
        yield client


@pytest.fixture
def runner(app):
    """Cria um runner para testar CLI commands."""
    return app.test_cli_runner()


@pytest.fixture
def authenticated_client(client, app):
    """Cliente de teste com sessão autenticada como gestor (Administrador)."""
    with client.session_transaction() as sess:
        sess["user"] = {
            "email": "admin@admin.com",
            "name": "Administrador",
            "perfil_acesso": "Administrador",
        }
    return client


@pytest.fixture
def atendente_client(client, app):
    """Cliente de teste com sessão autenticada como atendente (sem gestão)."""
    with client.session_transaction() as sess:
        sess["user"] = {
            "email": "atendente@test.com",
            "name": "Atendente Teste",
            "perfil_acesso": "Atendente",
        }
    return client


@pytest.fixture
def make_attendant(services, clock):
    """Cria atendentes na tabela do colaborador externo."""
    from backend.atendimento.modules.gamification.infra import repository

    def _make(attendant_id, nome=None, ativo=True):
        with services.db.transaction() as tx:
            repository.insert_attendant(tx, attendant_id, nome or attendant_id, ativo=ativo, now=clock())
        return attendant_id

    return _make


@pytest.fixture
def make_season(services):
    """Cria temporadas pelo SeasonService (validações incluídas)."""

    def _make(name, start, end, active=True, multiplier=1.0):
        return services.season_service.create({
            "name": name,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "active": active,
            "xp_multiplier": multiplier,
        })

    return _make


@pytest.fixture
def catalog(services):
    return Catalog(services.db)
