"""
Testes unitários para o ServiceContainer.
"""

import pytest
from flask import Flask

from backend.atendimento.core.container import ServiceContainer, get_container


class TestServiceContainer:
    """Registro, resolução e override de serviços."""

    def test_resolve_e_acesso_por_atributo(self):
        container = ServiceContainer()
        ledger = object()
        container.register("xp_ledger", ledger)

        assert container.resolve("xp_ledger") is ledger
        assert container.xp_ledger is ledger

    def test_servico_desconhecido(self):
        container = ServiceContainer()
        with pytest.raises(KeyError):
            container.resolve("nao_existe")
        with pytest.raises(AttributeError):
            container.nao_existe

    def test_override_substitui_servico_registrado(self):
        container = ServiceContainer()
        container.register("xp_ledger", object())
        fake = object()

        container.override("xp_ledger", fake)

        assert container.xp_ledger is fake

    def test_override_de_servico_nao_registrado(self):
        container = ServiceContainer()
        with pytest.raises(KeyError):
            container.override("xp_ledger", object())
        assert container.registered_services() == []

    def test_registra_config_da_aplicacao(self):
        app = Flask(__name__)
        container = ServiceContainer(app)
        container.register("event_bus", object())

        assert container.registered_services() == ["config", "event_bus"]
        assert container.config is app.config
        with app.app_context():
            assert get_container() is container

    def test_aplicacao_sem_container(self):
        app = Flask(__name__)
        with app.app_context():
            with pytest.raises(RuntimeError):
                get_container()
