"""
Registro de temporadas.

Garante que temporadas ativas não se sobreponham e resolve qual temporada
está ativa em um instante. Todas as escritas acontecem em transação com lock
de escrita, então dois administradores não conseguem ativar temporadas
sobrepostas ao mesmo tempo.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from ....common.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from ....common.validation import parse_datetime, sanitize_string, validate_boolean, validate_float
from ....config.logging_config import gamification_logger
from ....core.events import TemporadaAlterada
from ..domain import seasons as season_rules
from ..domain.models import Season
from ..infra import repository


def _conflict_payload(conflicts):
    return [
        {
            'id': s.id,
            'name': s.name,
            'start_date': s.start_date.isoformat(),
            'end_date': s.end_date.isoformat(),
        }
        for s in conflicts
    ]


class SeasonService:

    def __init__(self, db, clock=datetime.now, event_bus=None):
        self.db = db
        self.clock = clock
        self.event_bus = event_bus

    def _emit(self, season_id, acao):
        if self.event_bus is not None:
            self.event_bus.emit(TemporadaAlterada(temporada_id=season_id, acao=acao))

    # ──────────────────────────────────────────
    # Consultas
    # ──────────────────────────────────────────

    @staticmethod
    def validate_no_overlap(candidate: Season, existing_active) -> bool:
        return season_rules.validate_no_overlap(candidate, existing_active)

    def resolve_active(self, now: datetime | None = None, tx=None) -> Season | None:
        """Temporada ativa em `now` (ou None). Nunca lança por sobreposição."""
        moment = now or self.clock()
        if tx is not None:
            candidates = repository.active_seasons_at(tx, moment)
        else:
            with self.db.read() as read_tx:
                candidates = repository.active_seasons_at(read_tx, moment)
        if len(candidates) > 1:
            gamification_logger.warning(
                f"Mais de uma temporada ativa em {moment}: {[s.id for s in candidates]}; usando a de início mais recente"
            )
        return season_rules.resolve_active(candidates, moment)

    def get(self, season_id, tx=None) -> Season:
        if tx is not None:
            season = repository.get_season(tx, season_id)
        else:
            with self.db.read() as read_tx:
                season = repository.get_season(read_tx, season_id)
        if season is None:
            raise ResourceNotFoundError('Temporada', season_id)
        return season

    def list_all(self) -> list[Season]:
        with self.db.read() as tx:
            return repository.list_seasons(tx)

    def describe(self, season: Season) -> dict:
        return season_rules.describe(season, self.clock())

    def overview(self) -> dict:
        """Temporada atual, próxima e anterior, com status e progresso."""
        now = self.clock()
        all_seasons = self.list_all()
        active = self.resolve_active(now)
        following = season_rules.find_next(all_seasons, now)
        previous = season_rules.find_previous(all_seasons, now)
        return {
            'active': self.describe(active) if active else None,
            'next': self.describe(following) if following else None,
            'previous': self.describe(previous) if previous else None,
            'seasons': [self.describe(s) for s in all_seasons],
        }

    # ──────────────────────────────────────────
    # Escritas
    # ──────────────────────────────────────────

    def _parse(self, data: dict, base: Season | None = None) -> Season:
        if data.get('name') is not None:
            name = sanitize_string(str(data['name']), max_length=120, allow_empty=True)
        else:
            name = base.name if base else ''

        dates = {}
        for field_name in ('start_date', 'end_date'):
            raw = data.get(field_name)
            if raw is not None:
                dates[field_name] = parse_datetime(raw, field_name)
            elif base is not None:
                dates[field_name] = getattr(base, field_name)
            else:
                raise ValidationError(f"Campo '{field_name}' é obrigatório", {'field': field_name})

        multiplier = data.get('xp_multiplier')
        season = Season(
            id=base.id if base else None,
            name=name,
            start_date=dates['start_date'],
            end_date=dates['end_date'],
            active=validate_boolean(data['active']) if 'active' in data else (base.active if base else False),
            xp_multiplier=validate_float(multiplier) if multiplier is not None else (base.xp_multiplier if base else 1.0),
        )
        season_rules.validate_season_fields(season.name, season.start_date, season.end_date, season.xp_multiplier)
        return season

    def _ensure_no_overlap(self, tx, candidate: Season, force=False, now=None) -> list[Season]:
        conflicts = season_rules.find_overlapping(candidate, repository.list_seasons(tx, active_only=True))
        if conflicts and not force:
            raise ConflictError(
                "Já existe temporada ativa no período informado",
                conflicts=_conflict_payload(conflicts)
            )
        for conflict in conflicts:
            repository.set_season_active(tx, conflict.id, False, now or self.clock())
        return conflicts

    def create(self, data: dict) -> Season:
        candidate = self._parse(data)
        now = self.clock()
        with self.db.transaction() as tx:
            if candidate.active:
                self._ensure_no_overlap(tx, candidate)
            season_id = repository.insert_season(tx, candidate, now)
        season = replace(candidate, id=season_id)
        gamification_logger.info(f"Temporada criada: {season.id} '{season.name}' (ativa={season.active})")
        self._emit(season.id, 'criada')
        return season

    def update(self, season_id, data: dict) -> Season:
        now = self.clock()
        with self.db.transaction() as tx:
            current = repository.get_season(tx, season_id)
            if current is None:
                raise ResourceNotFoundError('Temporada', season_id)
            candidate = self._parse(data, base=current)
            if candidate.active:
                self._ensure_no_overlap(tx, candidate)
            repository.update_season(tx, candidate, now)
        gamification_logger.info(f"Temporada atualizada: {season_id}")
        self._emit(season_id, 'atualizada')
        return candidate

    def activate(self, season_id, force=False) -> dict:
        """
        Ativa uma temporada.

        Com sobreposição, lança ConflictError listando as temporadas conflitantes;
        com `force=True`, desativa as conflitantes na mesma transação.
        """
        now = self.clock()
        with self.db.transaction() as tx:
            season = repository.get_season(tx, season_id)
            if season is None:
                raise ResourceNotFoundError('Temporada', season_id)
            candidate = replace(season, active=True)
            deactivated = self._ensure_no_overlap(tx, candidate, force=force, now=now)
            repository.set_season_active(tx, season_id, True, now)
        if deactivated:
            gamification_logger.warning(
                f"Temporada {season_id} ativada com force; desativadas: {[s.id for s in deactivated]}"
            )
        gamification_logger.info(f"Temporada ativada: {season_id}")
        self._emit(season_id, 'ativada')
        return {'season': candidate, 'deactivated': _conflict_payload(deactivated)}

    def deactivate(self, season_id) -> Season:
        now = self.clock()
        with self.db.transaction() as tx:
            season = repository.get_season(tx, season_id)
            if season is None:
                raise ResourceNotFoundError('Temporada', season_id)
            repository.set_season_active(tx, season_id, False, now)
        gamification_logger.info(f"Temporada desativada: {season_id}")
        self._emit(season_id, 'desativada')
        return replace(season, active=False)

    def delete(self, season_id, force=False) -> dict:
        """
        Exclui uma temporada.

        Temporada ativa, com eventos de XP ou com conquistas no seu escopo só é
        excluída com `force=True`, que remove em cascata os eventos e as
        conquistas do escopo da temporada (com seus eventos pareados).
        """
        with self.db.transaction() as tx:
            season = repository.get_season(tx, season_id)
            if season is None:
                raise ResourceNotFoundError('Temporada', season_id)
            event_count = repository.count_season_events(tx, season_id)
            unlock_count = repository.count_season_unlocks(tx, season_id)
            if not force:
                if season.active:
                    raise ConflictError(
                        "Não é possível excluir uma temporada ativa",
                        details={'season_id': season_id, 'active': True}
                    )
                if event_count:
                    raise ConflictError(
                        "Temporada possui eventos de XP",
                        details={'season_id': season_id, 'xp_events': event_count}
                    )
                if unlock_count:
                    # Os eventos pareados podem estar marcados com outra temporada
                    raise ConflictError(
                        "Temporada possui conquistas desbloqueadas no seu escopo",
                        details={'season_id': season_id, 'unlocks': unlock_count}
                    )
            removed = repository.delete_season_cascade(tx, season_id)
        gamification_logger.warning(
            f"Temporada excluída: {season_id} (force={force}, eventos removidos={removed['xp_events_deleted']})"
        )
        self._emit(season_id, 'excluida')
        return {'season_id': season_id, **removed}
