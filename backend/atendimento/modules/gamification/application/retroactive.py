"""
Processamento retroativo de conquistas.

Reavalia atendentes (um, os de uma temporada ou todos) contra o catálogo de
conquistas. Cada atendente é processado isoladamente: falhas são logadas e
coletadas no resultado, sem interromper o lote. Reexecutar sem dados novos
não gera desbloqueios, pois todo desbloqueio passa pelo UnlockCoordinator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ....common.exceptions import ResourceNotFoundError
from ....config.logging_config import gamification_logger
from ....config.sentry_config import capture_exception
from ..domain.criteria import get_rule
from ..domain.models import UnlockOutcome, UnlockStatus
from ..infra import repository


@dataclass
class AttendantProcessResult:
    attendant_id: str
    season_id: int | None = None
    unlocked: list[UnlockOutcome] = field(default_factory=list)
    already_unlocked: int = 0
    error: str | None = None

    @property
    def xp_awarded(self) -> int:
        return sum(o.xp_awarded for o in self.unlocked)

    def to_dict(self) -> dict:
        return {
            'attendant_id': self.attendant_id,
            'season_id': self.season_id,
            'achievements_unlocked': [o.achievement_id for o in self.unlocked],
            'unlocks': [o.to_dict() for o in self.unlocked],
            'already_unlocked': self.already_unlocked,
            'xp_awarded': self.xp_awarded,
            'error': self.error,
        }


@dataclass
class BatchProcessResult:
    season_id: int | None = None
    season_name: str | None = None
    force_reprocess: bool = False
    attendant_results: list[AttendantProcessResult] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def attendants_processed(self) -> int:
        return sum(1 for r in self.attendant_results if r.error is None)

    @property
    def achievements_unlocked(self) -> int:
        return sum(len(r.unlocked) for r in self.attendant_results)

    @property
    def xp_awarded(self) -> int:
        return sum(r.xp_awarded for r in self.attendant_results)

    def to_dict(self) -> dict:
        return {
            'season_id': self.season_id,
            'season_name': self.season_name,
            'force_reprocess': self.force_reprocess,
            'attendants_processed': self.attendants_processed,
            'achievements_unlocked': self.achievements_unlocked,
            'xp_awarded': self.xp_awarded,
            'attendant_results': [r.to_dict() for r in self.attendant_results],
            'errors': self.errors,
        }


class RetroactiveProcessor:

    def __init__(self, db, seasons, ranking, coordinator, clock=datetime.now):
        self.db = db
        self.seasons = seasons
        self.ranking = ranking
        self.coordinator = coordinator
        self.clock = clock

    def _attempts(self, attendant_id, achievements, season_id):
        """Pares (conquista, escopo) a tentar para o atendente."""
        attempts = []
        for achievement in achievements:
            rule = get_rule(achievement.criteria_key)
            if rule is None:
                continue
            if season_id is not None:
                attempts.append((achievement.id, season_id))
            elif rule.season_only:
                # No modo vitalício, conquistas de temporada viram uma tentativa por temporada vencida
                for won in self.ranking.seasons_won_by(attendant_id):
                    attempts.append((achievement.id, won))
            else:
                attempts.append((achievement.id, None))
        return attempts

    def _process(self, attendant_id, season_id, force_reprocess) -> AttendantProcessResult:
        result = AttendantProcessResult(attendant_id=attendant_id, season_id=season_id)
        with self.db.read() as tx:
            achievements = repository.list_achievements(tx)

        attempts = self._attempts(attendant_id, achievements, season_id)
        replaced = set()
        pending = list(attempts)
        # Repete enquanto houver desbloqueios (XP de conquista pode liberar critério de XP)
        for _ in range(len(attempts) + 1):
            unlocked_this_pass = 0
            still_pending = []
            for achievement_id, scope in pending:
                replace_existing = force_reprocess and (achievement_id, scope) not in replaced
                outcome = self.coordinator.try_unlock(
                    attendant_id, achievement_id, season_id=scope, replace_existing=replace_existing
                )
                if replace_existing:
                    replaced.add((achievement_id, scope))
                if outcome.status == UnlockStatus.UNLOCKED:
                    result.unlocked.append(outcome)
                    unlocked_this_pass += 1
                elif outcome.status == UnlockStatus.ALREADY_UNLOCKED:
                    result.already_unlocked += 1
                else:
                    still_pending.append((achievement_id, scope))
            pending = still_pending
            if not unlocked_this_pass or not pending:
                break
        return result

    def _process_isolated(self, attendant_id, season_id, force_reprocess, batch: BatchProcessResult):
        try:
            attendant_result = self._process(attendant_id, season_id, force_reprocess)
        except Exception as e:
            gamification_logger.error(
                f"Falha ao processar conquistas de {attendant_id} (temporada={season_id}): {e}", exc_info=True
            )
            capture_exception(e, {'attendant_id': attendant_id, 'season_id': season_id})
            attendant_result = AttendantProcessResult(attendant_id=attendant_id, season_id=season_id, error=str(e))
            batch.errors.append({'attendant_id': attendant_id, 'error': str(e)})
        batch.attendant_results.append(attendant_result)

    def process_attendant(self, attendant_id, season_id=None, force_reprocess=False) -> AttendantProcessResult:
        with self.db.read() as tx:
            if not repository.attendant_exists(tx, attendant_id):
                raise ResourceNotFoundError('Atendente', attendant_id)
        if season_id is not None:
            self.seasons.get(season_id)
        result = self._process(attendant_id, season_id, force_reprocess)
        gamification_logger.info(
            f"Processamento de {attendant_id} (temporada={season_id}): "
            f"{len(result.unlocked)} desbloqueio(s), {result.xp_awarded} XP"
        )
        return result

    def process_season(self, season_id, attendant_ids=None, force_reprocess=False) -> BatchProcessResult:
        """
        Processa as conquistas de uma temporada.

        Sem `attendant_ids`, processa quem tem avaliações na janela da temporada
        ou eventos de XP marcados com ela.
        """
        season = self.seasons.get(season_id)
        if attendant_ids is None:
            with self.db.read() as tx:
                attendant_ids = repository.attendants_active_in_season(tx, season)

        batch = BatchProcessResult(season_id=season.id, season_name=season.name, force_reprocess=force_reprocess)
        for attendant_id in attendant_ids:
            self._process_isolated(attendant_id, season.id, force_reprocess, batch)
        self._log_batch(f"temporada {season.id} '{season.name}'", batch)
        return batch

    def process_all(self, force_reprocess=False) -> BatchProcessResult:
        """Job retroativo completo: escopo vitalício de todos os atendentes ativos."""
        with self.db.read() as tx:
            attendant_ids = repository.list_active_attendant_ids(tx)

        batch = BatchProcessResult(force_reprocess=force_reprocess)
        for attendant_id in attendant_ids:
            self._process_isolated(attendant_id, None, force_reprocess, batch)
        self._log_batch("todos os atendentes", batch)
        return batch

    def _log_batch(self, label, batch: BatchProcessResult):
        gamification_logger.info(
            f"Processamento retroativo ({label}): {batch.attendants_processed} atendente(s), "
            f"{batch.achievements_unlocked} desbloqueio(s), {batch.xp_awarded} XP, {len(batch.errors)} erro(s)"
        )
