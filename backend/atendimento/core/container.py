"""
Service Container: Dependency Injection simplificada para Flask.

Desacopla a lógica de negócio do contexto Flask (g, session, current_app):
cada serviço recebe seus colaboradores explicitamente e o container guarda
uma instância de cada por aplicação.

Uso:
    # No startup (create_app):
    container = ServiceContainer(app)

    # Em routes/blueprints:
    container = get_container()
    ledger = container.xp_ledger

    # Em testes:
    container.override("xp_ledger", ledger_fake)
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("app")


class ServiceContainer:
    """
    Container de serviços para Dependency Injection.

    Guarda uma instância por serviço (singleton por aplicação) e permite
    substituí-la em testes.
    """

    def __init__(self, app=None):
        self._singletons: dict[str, Any] = {}
        self._app = app

        if app:
            self.register("config", app.config)
            app.service_container = self

    def register(self, name: str, instance: Any) -> None:
        self._singletons[name] = instance
        logger.debug(f"Serviço registrado (singleton): {name}")

    def resolve(self, name: str) -> Any:
        """
        Resolve (obtém) um serviço pelo nome.

        Raises:
            KeyError: Se o serviço não estiver registrado
        """
        if name in self._singletons:
            return self._singletons[name]
        raise KeyError(f"Serviço '{name}' não registrado no container")

    def override(self, name: str, instance: Any) -> None:
        """Override para testes, substitui um serviço existente."""
        if name not in self._singletons:
            raise KeyError(f"Serviço '{name}' não registrado no container")
        self._singletons[name] = instance

    def __getattr__(self, name: str) -> Any:
        """Permite acesso por atributo: container.xp_ledger."""
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self.resolve(name)
        except KeyError as exc:
            raise AttributeError(f"Serviço '{name}' não encontrado no container") from exc

    def registered_services(self) -> list[str]:
        return sorted(self._singletons)


def get_container() -> ServiceContainer:
    """Obtém o ServiceContainer da aplicação Flask atual."""
    from flask import current_app

    container = getattr(current_app, "service_container", None)
    if container is None:
        raise RuntimeError(
            "ServiceContainer não inicializado. Certifique-se de chamar ServiceContainer(app) no create_app()."
        )
    return container
