"""
Service Registry: Registra todos os services no Container.

Centraliza a montagem do grafo de serviços da gamificação durante o startup,
injetando banco, relógio e EventBus em cada componente.

Uso:
    # Em create_app:
    from .core.service_registry import register_all_services
    register_all_services(app, container)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ..database import Database
from .event_handlers import register_event_handlers
from .events import EventBus

if TYPE_CHECKING:
    from flask import Flask

    from .container import ServiceContainer

logger = logging.getLogger("app")


def register_all_services(app: Flask, container: ServiceContainer, clock=None) -> None:
    """
    Registra todos os services no ServiceContainer.

    Args:
        app: Instância do Flask
        container: ServiceContainer já inicializado
        clock: Callable que retorna o "agora" (padrão datetime.now)
    """
    _register_core_services(app, container, clock or datetime.now)
    _register_gamification_services(app, container)

    register_event_handlers(container.event_bus, container.unlock_coordinator)

    registered = container.registered_services()
    logger.info(f"ServiceContainer: {len(registered)} serviços registrados")
    logger.debug(f"Serviços: {', '.join(registered)}")


def _register_core_services(app: Flask, container: ServiceContainer, clock) -> None:
    container.register("clock", clock)
    container.register("db", Database.from_config(app.config))
    container.register("event_bus", EventBus())


def _register_gamification_services(app: Flask, container: ServiceContainer) -> None:
    from ..modules.gamification.application.achievement_catalog import AchievementCatalog
    from ..modules.gamification.application.achievement_evaluator import AchievementEvaluator
    from ..modules.gamification.application.grant_guard import GrantGuard
    from ..modules.gamification.application.ranking_service import RankingService
    from ..modules.gamification.application.retroactive import RetroactiveProcessor
    from ..modules.gamification.application.season_service import SeasonService
    from ..modules.gamification.application.settings_service import SettingsService
    from ..modules.gamification.application.unlock_coordinator import UnlockCoordinator
    from ..modules.gamification.application.xp_ledger import XpLedger

    db = container.db
    clock = container.clock
    event_bus = container.event_bus

    settings = SettingsService(db, cache_ttl=app.config.get('GAMIFICATION_CACHE_TTL', 300), clock=clock)
    seasons = SeasonService(db, clock=clock, event_bus=event_bus)
    ledger = XpLedger(db, seasons, settings, clock=clock, event_bus=event_bus)
    ranking = RankingService(db, seasons, clock=clock)
    evaluator = AchievementEvaluator(db, seasons, ranking, clock=clock)
    coordinator = UnlockCoordinator(db, evaluator, ledger, clock=clock, event_bus=event_bus)
    processor = RetroactiveProcessor(db, seasons, ranking, coordinator, clock=clock)
    grant_guard = GrantGuard(db, seasons, ledger, settings, clock=clock, event_bus=event_bus)
    catalog = AchievementCatalog(db)

    container.register("settings_service", settings)
    container.register("season_service", seasons)
    container.register("xp_ledger", ledger)
    container.register("ranking_service", ranking)
    container.register("achievement_evaluator", evaluator)
    container.register("unlock_coordinator", coordinator)
    container.register("retroactive_processor", processor)
    container.register("grant_guard", grant_guard)
    container.register("achievement_catalog", catalog)
