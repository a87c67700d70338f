"""
Event Handlers: Reações a eventos de domínio.

Registrados no EventBus durante o startup via `register_event_handlers`.
Handlers nunca podem falhar o fluxo principal: o EventBus loga e segue.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..config.logging_config import gamification_logger
from .events import AvaliacaoRegistrada, ConquistaDesbloqueada, TemporadaAlterada, XpConcedido

if TYPE_CHECKING:
    from ..modules.gamification.application.unlock_coordinator import UnlockCoordinator
    from .events import EventBus


def make_live_achievement_check(coordinator: UnlockCoordinator):
    """Verificação de conquistas vitalícias após cada avaliação ou concessão de XP."""

    def handle_live_achievement_check(event: AvaliacaoRegistrada | XpConcedido) -> None:
        outcomes = coordinator.check_and_unlock(event.atendente_id)
        if outcomes:
            gamification_logger.info(
                f"Verificação ao vivo: {len(outcomes)} conquista(s) desbloqueada(s) para {event.atendente_id}"
            )

    return handle_live_achievement_check


def handle_log_conquista_desbloqueada(event: ConquistaDesbloqueada) -> None:
    escopo = f"temporada {event.temporada_id}" if event.temporada_id else "vitalícia"
    gamification_logger.info(
        f"Conquista '{event.conquista_id}' desbloqueada por {event.atendente_id} ({escopo}, +{event.xp_ganho} XP)"
    )


def handle_log_temporada_alterada(event: TemporadaAlterada) -> None:
    gamification_logger.info(f"Temporada {event.temporada_id}: {event.acao}")


def register_event_handlers(event_bus: EventBus, coordinator: UnlockCoordinator) -> None:
    """Registra todos os handlers no EventBus."""
    live_check = make_live_achievement_check(coordinator)
    event_bus.register(AvaliacaoRegistrada, live_check)
    event_bus.register(XpConcedido, live_check)

    event_bus.register(ConquistaDesbloqueada, handle_log_conquista_desbloqueada)
    event_bus.register(TemporadaAlterada, handle_log_temporada_alterada)

    total = sum(len(event_bus.get_handlers(t)) for t in (AvaliacaoRegistrada, XpConcedido, ConquistaDesbloqueada, TemporadaAlterada))
    gamification_logger.debug(f"EventBus: {total} handlers registrados")
