"""
Event Bus: Sistema de eventos de domínio.

Event Bus leve e in-process: ações da gamificação (avaliação registrada,
XP concedido, conquista desbloqueada, temporada alterada) disparam reações
em outros pontos (verificação de conquistas, auditoria em log) sem
acoplamento direto entre os serviços.

Uso:
    from backend.atendimento.core.events import EventBus, AvaliacaoRegistrada

    event_bus = EventBus()

    @event_bus.on(AvaliacaoRegistrada)
    def handle_avaliacao(event: AvaliacaoRegistrada):
        ...

    event_bus.emit(AvaliacaoRegistrada(atendente_id="a-1", avaliacao_id=10, nota=5))
"""

from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("app")

T = TypeVar("T", bound="DomainEvent")


@dataclass
class DomainEvent:
    """
    Classe base para eventos de domínio.

    Todos os eventos devem herdar desta classe.
    """

    timestamp: float = field(default_factory=time.time, init=False)
    event_id: str = field(default_factory=lambda: f"{time.time_ns()}", init=False)

    @property
    def event_name(self) -> str:
        return self.__class__.__name__


# ──────────────────────────────────────────────
# Eventos de domínio da gamificação
# ──────────────────────────────────────────────


@dataclass
class AvaliacaoRegistrada(DomainEvent):
    """Emitido depois que uma avaliação e seu evento de XP foram gravados."""

    atendente_id: str = ""
    avaliacao_id: int = 0
    nota: int = 0
    pontos: int = 0


@dataclass
class XpConcedido(DomainEvent):
    """Emitido depois de uma concessão de XP avulso."""

    atendente_id: str = ""
    concessao_id: int = 0
    pontos: int = 0
    concedido_por: str = ""


@dataclass
class ConquistaDesbloqueada(DomainEvent):
    """Emitido quando uma conquista é desbloqueada (uma única vez por escopo)."""

    atendente_id: str = ""
    conquista_id: str = ""
    temporada_id: int | None = None
    xp_ganho: int = 0


@dataclass
class TemporadaAlterada(DomainEvent):
    """Emitido quando uma temporada é criada, editada, ativada, desativada ou excluída."""

    temporada_id: int = 0
    acao: str = ""


# ──────────────────────────────────────────────
# Event Bus
# ──────────────────────────────────────────────


class EventBus:
    """
    Event Bus in-process.

    Handlers são executados sincronamente; erros em handlers são logados
    e NÃO propagados (não afetam o fluxo principal).
    """

    def __init__(self, max_history: int = 500):
        self._handlers: dict[type, list[Callable]] = {}
        self._history: list[DomainEvent] = []
        self._max_history = max_history
        self._enabled: bool = True

    def on(self, event_type: type[T]) -> Callable:
        """Decorator para registrar um handler de evento."""

        def decorator(func: Callable[[T], Any]) -> Callable[[T], Any]:
            self.register(event_type, func)
            return func

        return decorator

    def register(self, event_type: type[DomainEvent], handler: Callable) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Event handler registrado: {event_type.__name__} → {getattr(handler, '__name__', handler)}")

    def emit(self, event: DomainEvent) -> None:
        if not self._enabled:
            return

        event_name = event.event_name
        handlers = self._handlers.get(type(event), [])

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        if not handlers:
            logger.debug(f"Evento emitido sem handlers: {event_name}")
            return

        logger.debug(f"Evento emitido: {event_name} → {len(handlers)} handler(s)")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Erro no handler {getattr(handler, '__name__', handler)} para {event_name}: {e}\n{traceback.format_exc()}"
                )

    def get_handlers(self, event_type: type) -> list[Callable]:
        return self._handlers.get(event_type, [])

    def get_history(self, event_type: type | None = None, limit: int = 50) -> list[dict]:
        """
        Retorna histórico de eventos recentes.

        Args:
            event_type: Filtrar por tipo (None = todos)
            limit: Número máximo de eventos
        """
        events = self._history
        if event_type:
            events = [e for e in events if isinstance(e, event_type)]

        return [
            {
                "event_id": e.event_id,
                "event_name": e.event_name,
                "timestamp": e.timestamp,
                "data": {k: v for k, v in e.__dict__.items() if k not in ("timestamp", "event_id")},
            }
            for e in events[-limit:]
        ]

    def clear_handlers(self) -> None:
        self._handlers.clear()

    def clear_history(self) -> None:
        self._history.clear()

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        """Desabilita o Event Bus (útil para testes ou manutenção)."""
        self._enabled = False
