"""
Livro-razão de XP (append-only).

Cada mudança de XP vira exatamente um evento imutável, com os pontos
efetivos calculados uma única vez na criação. O XP atual de um atendente é
sempre a soma dos seus eventos; não existe contador armazenado.
"""

from __future__ import annotations

from datetime import datetime

from ....common.exceptions import ResourceNotFoundError, ValidationError
from ....common.validation import sanitize_string, validate_integer
from ....config.logging_config import gamification_logger
from ....core.events import AvaliacaoRegistrada
from ..domain.levels import level_summary
from ..domain.models import Evaluation, XpEvent, XpEventType
from ..domain.multiplier import combined_multiplier, effective_points
from ..infra import repository


class XpLedger:

    def __init__(self, db, seasons, settings, clock=datetime.now, event_bus=None):
        self.db = db
        self.seasons = seasons
        self.settings = settings
        self.clock = clock
        self.event_bus = event_bus

    def build_event(self, tx, attendant_id, base_points, event_type, reason, date=None, related_id=None) -> XpEvent:
        """Monta (sem gravar) o evento: resolve a temporada na data e aplica os multiplicadores."""
        try:
            event_type = XpEventType(event_type)
        except ValueError:
            raise ValidationError(f"Tipo de evento de XP inválido: {event_type}")
        moment = date or self.clock()
        season = self.seasons.resolve_active(moment, tx=tx)
        settings = self.settings.get_settings(tx=tx)
        season_multiplier = season.xp_multiplier if season else None
        return XpEvent(
            id=None,
            attendant_id=attendant_id,
            base_points=int(base_points),
            multiplier=combined_multiplier(settings.global_multiplier, season_multiplier),
            points=effective_points(base_points, settings.global_multiplier, season_multiplier),
            reason=reason,
            type=event_type,
            date=moment,
            season_id=season.id if season else None,
            related_id=None if related_id is None else str(related_id),
        )

    def append_event(self, tx, event: XpEvent) -> XpEvent:
        saved = repository.insert_xp_event(tx, event, self.clock())
        gamification_logger.debug(
            f"XP registrado: {saved.attendant_id} {saved.type.value} {saved.base_points}×{saved.multiplier}={saved.points} "
            f"(temporada={saved.season_id})"
        )
        return saved

    def append(self, attendant_id, base_points, event_type, reason, date=None, related_id=None, tx=None) -> XpEvent:
        """
        Registra um evento de XP.

        Args:
            attendant_id: Atendente que recebe o XP
            base_points: Pontos antes dos multiplicadores (pode ser negativo)
            event_type: EVALUATION, ACHIEVEMENT ou MANUAL_GRANT
            reason: Texto livre de motivo
            date: Data do evento (define a temporada); padrão agora
            related_id: Id da avaliação, conquista desbloqueada ou concessão de origem
            tx: Transação externa para gravar atomicamente com outras escritas
        """
        if tx is not None:
            return self.append_event(tx, self.build_event(tx, attendant_id, base_points, event_type, reason, date, related_id))
        with self.db.transaction() as own_tx:
            return self.append_event(
                own_tx, self.build_event(own_tx, attendant_id, base_points, event_type, reason, date, related_id)
            )

    def total_xp(self, attendant_id, season_id=None) -> int:
        with self.db.read() as tx:
            return repository.sum_points(tx, attendant_id, season_id)

    def history(self, attendant_id, season_id=None, limit=100) -> list[XpEvent]:
        with self.db.read() as tx:
            return repository.list_xp_events(tx, attendant_id, season_id, limit)

    def xp_summary(self, attendant_id, season_id=None) -> dict:
        """XP total, XP da temporada (informada ou atual) e nível."""
        with self.db.read() as tx:
            if not repository.attendant_exists(tx, attendant_id):
                raise ResourceNotFoundError('Atendente', attendant_id)
            season = self.seasons.get(season_id, tx=tx) if season_id is not None else self.seasons.resolve_active(tx=tx)
            total = repository.sum_points(tx, attendant_id)
            season_xp = repository.sum_points(tx, attendant_id, season.id) if season else 0
        return {
            'attendant_id': attendant_id,
            'total_xp': total,
            'season_id': season.id if season else None,
            'season_xp': season_xp,
            **{k: v for k, v in level_summary(total).items() if k != 'xp'},
        }

    def record_evaluation(self, attendant_id, rating, date=None, comment=None) -> tuple[Evaluation, XpEvent]:
        """
        Ingestão de avaliação: grava a avaliação e o evento EVALUATION na mesma transação.
        A verificação de conquistas roda depois, via AvaliacaoRegistrada.
        """
        rating = validate_integer(rating, min_value=1, max_value=5)
        if comment is not None:
            comment = sanitize_string(str(comment), max_length=2000, allow_empty=True) or None
        moment = date or self.clock()

        with self.db.transaction() as tx:
            if not repository.attendant_exists(tx, attendant_id):
                raise ResourceNotFoundError('Atendente', attendant_id)
            base_points = self.settings.get_settings(tx=tx).points_for(rating)
            evaluation_id = repository.insert_evaluation(tx, attendant_id, rating, moment, comment)
            event = self.append(
                attendant_id, base_points, XpEventType.EVALUATION,
                f"Avaliação de {rating} estrela(s)", date=moment, related_id=evaluation_id, tx=tx
            )

        evaluation = Evaluation(id=evaluation_id, attendant_id=attendant_id, rating=rating, date=moment, comment=comment)
        gamification_logger.info(f"Avaliação {evaluation_id} registrada para {attendant_id}: nota {rating}, {event.points} XP")
        if self.event_bus is not None:
            self.event_bus.emit(AvaliacaoRegistrada(
                atendente_id=attendant_id, avaliacao_id=evaluation_id, nota=rating, pontos=event.points
            ))
        return evaluation, event
