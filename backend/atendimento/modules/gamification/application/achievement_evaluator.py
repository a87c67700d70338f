"""
Avaliador de conquistas.

Monta o recorte de estatísticas de um atendente (vitalício ou de uma
temporada) e aplica a regra da tabela de critérios correspondente à
conquista. Não grava nada.
"""

from __future__ import annotations

from datetime import datetime

from ....common.exceptions import ResourceNotFoundError
from ....config.logging_config import gamification_logger
from ..domain.criteria import get_rule
from ..domain.models import AchievementConfig, AttendantStats
from ..infra import repository


class AchievementEvaluator:

    def __init__(self, db, seasons, ranking, clock=datetime.now):
        self.db = db
        self.seasons = seasons
        self.ranking = ranking
        self.clock = clock

    def build_stats(self, attendant_id, season_id=None, tx=None) -> AttendantStats:
        if tx is None:
            with self.db.read() as read_tx:
                return self.build_stats(attendant_id, season_id, tx=read_tx)

        if season_id is None:
            evaluations = repository.list_evaluations(tx, attendant_id)
            return AttendantStats(
                attendant_id=attendant_id,
                ratings=tuple(e.rating for e in evaluations),
                total_xp=repository.sum_points(tx, attendant_id),
            )

        season = self.seasons.get(season_id, tx=tx)
        evaluations = repository.list_evaluations(tx, attendant_id, season.start_date, season.end_date)
        winner = self.ranking.season_winner(season_id, tx=tx)
        return AttendantStats(
            attendant_id=attendant_id,
            ratings=tuple(e.rating for e in evaluations),
            total_xp=repository.sum_points(tx, attendant_id, season_id),
            season_id=season_id,
            seasons_won=(season_id,) if winner == attendant_id else (),
        )

    def is_eligible(self, attendant_id, achievement: AchievementConfig, season_id=None, tx=None, stats=None) -> bool:
        """Elegível = conquista ativa, critério conhecido e regra satisfeita no recorte."""
        if not achievement.active:
            return False
        rule = get_rule(achievement.criteria_key)
        if rule is None:
            gamification_logger.warning(
                f"Conquista '{achievement.id}' usa critério desconhecido '{achievement.criteria_key}'"
            )
            return False
        if rule.season_only and season_id is None:
            return False
        if stats is None:
            stats = self.build_stats(attendant_id, season_id, tx=tx)
        return rule.check(stats)

    def achievement_status(self, attendant_id) -> list[dict]:
        """
        Para cada conquista ativa: desbloqueada?, quando, XP ganho e progresso (0 a 100).

        O status principal vem do escopo vitalício; desbloqueios por temporada
        aparecem em `season_unlocks`. Critérios exclusivos de temporada
        (campeão) contam como desbloqueados quando há ao menos uma temporada.
        """
        with self.db.read() as tx:
            if not repository.attendant_exists(tx, attendant_id):
                raise ResourceNotFoundError('Atendente', attendant_id)
            achievements = repository.list_achievements(tx)
            unlocks = repository.list_unlocks(tx, attendant_id)
            stats = self.build_stats(attendant_id, tx=tx)

        status = []
        for achievement in achievements:
            rule = get_rule(achievement.criteria_key)
            mine = [u for u in unlocks if u.achievement_id == achievement.id]
            lifetime = next((u for u in mine if u.season_id is None), None)
            seasonal = [u for u in mine if u.season_id is not None]

            if rule is not None and rule.season_only:
                first = seasonal[0] if seasonal else None
                progress = 100.0 if seasonal else 0.0
            else:
                first = lifetime
                if lifetime is not None:
                    progress = 100.0
                else:
                    progress = rule.progress(stats) if rule is not None else 0.0

            status.append({
                **achievement.to_dict(),
                'unlocked': first is not None,
                'unlocked_at': first.unlocked_at.isoformat() if first else None,
                'xp_gained': first.xp_gained if first else 0,
                'times_unlocked': len(mine),
                'season_ids': [u.season_id for u in seasonal],
                'season_unlocks': [
                    {'season_id': u.season_id, 'unlocked_at': u.unlocked_at.isoformat(), 'xp_gained': u.xp_gained}
                    for u in seasonal
                ],
                'progress': progress,
            })
        return status
