"""
Coordenador de desbloqueios.

Garante no máximo um desbloqueio por (atendente, conquista, escopo), mesmo
com verificações concorrentes: o índice único `uq_conquista_atendente_escopo`
decide quem grava. O desbloqueio e o evento de XP ACHIEVEMENT são gravados na
mesma transação; quem perde a corrida recebe ALREADY_UNLOCKED.
"""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime

import psycopg2

from ....common.exceptions import ResourceNotFoundError
from ....config.logging_config import gamification_logger
from ....core.events import ConquistaDesbloqueada
from ....database import is_unique_violation
from ..domain.criteria import get_rule
from ..domain.models import UnlockedAchievement, UnlockOutcome, UnlockStatus, XpEventType
from ..infra import repository


class UnlockCoordinator:

    def __init__(self, db, evaluator, ledger, clock=datetime.now, event_bus=None):
        self.db = db
        self.evaluator = evaluator
        self.ledger = ledger
        self.clock = clock
        self.event_bus = event_bus

    def try_unlock(self, attendant_id, achievement_id, season_id=None, replace_existing=False) -> UnlockOutcome:
        """
        Tenta desbloquear uma conquista para o atendente no escopo informado.

        Args:
            attendant_id: Atendente
            achievement_id: Id da conquista (conquistas_config.id)
            season_id: None para escopo vitalício, ou id da temporada
            replace_existing: Reprocessamento forçado; remove o desbloqueio anterior
                e o evento de XP pareado na mesma transação antes de regravar

        Returns:
            UnlockOutcome com status UNLOCKED, ALREADY_UNLOCKED ou NOT_ELIGIBLE
        """
        outcome = UnlockOutcome(UnlockStatus.NOT_ELIGIBLE, attendant_id, achievement_id, season_id)
        try:
            with self.db.transaction() as tx:
                achievement = repository.get_achievement(tx, achievement_id)
                if achievement is None:
                    raise ResourceNotFoundError('Conquista', achievement_id)

                existing = repository.get_unlock(tx, attendant_id, achievement_id, season_id)
                if existing is not None and not replace_existing:
                    return replace(outcome, status=UnlockStatus.ALREADY_UNLOCKED, unlocked=existing)

                # Elegibilidade reavaliada dentro da transação de escrita
                if not self.evaluator.is_eligible(attendant_id, achievement, season_id, tx=tx):
                    return outcome

                if existing is not None:
                    repository.delete_achievement_event(tx, existing.id)
                    repository.delete_unlock(tx, existing.id)
                    gamification_logger.info(
                        f"Reprocessamento: desbloqueio {existing.id} de '{achievement_id}' removido para {attendant_id}"
                    )

                now = self.clock()
                event = self.ledger.build_event(
                    tx, attendant_id, achievement.xp, XpEventType.ACHIEVEMENT,
                    f"Conquista desbloqueada: {achievement.title}", date=now
                )
                unlock_id = repository.insert_unlock(tx, attendant_id, achievement_id, season_id, now, event.points)
                saved_event = self.ledger.append_event(tx, replace(event, related_id=str(unlock_id)))
        except (sqlite3.IntegrityError, psycopg2.IntegrityError) as e:
            if not is_unique_violation(e):
                raise
            gamification_logger.debug(
                f"Desbloqueio concorrente de '{achievement_id}' para {attendant_id} (escopo={season_id}): já gravado"
            )
            return replace(outcome, status=UnlockStatus.ALREADY_UNLOCKED)

        unlocked = UnlockedAchievement(
            id=unlock_id,
            attendant_id=attendant_id,
            achievement_id=achievement_id,
            season_id=season_id,
            unlocked_at=now,
            xp_gained=saved_event.points,
        )
        gamification_logger.info(
            f"Conquista '{achievement_id}' desbloqueada para {attendant_id} (escopo={season_id}, +{saved_event.points} XP)"
        )
        if self.event_bus is not None:
            self.event_bus.emit(ConquistaDesbloqueada(
                atendente_id=attendant_id, conquista_id=achievement_id,
                temporada_id=season_id, xp_ganho=saved_event.points
            ))
        return replace(outcome, status=UnlockStatus.UNLOCKED, unlocked=unlocked, xp_event=saved_event)

    def reset(self, attendant_id, achievement_id, season_id=None) -> UnlockedAchievement:
        """Reset administrativo: remove o desbloqueio e o evento de XP pareado."""
        with self.db.transaction() as tx:
            existing = repository.get_unlock(tx, attendant_id, achievement_id, season_id)
            if existing is None:
                raise ResourceNotFoundError('Conquista desbloqueada', f"{attendant_id}/{achievement_id}")
            repository.delete_achievement_event(tx, existing.id)
            repository.delete_unlock(tx, existing.id)
        gamification_logger.warning(
            f"Conquista '{achievement_id}' resetada para {attendant_id} (escopo={season_id})"
        )
        return existing

    def check_and_unlock(self, attendant_id) -> list[UnlockOutcome]:
        """
        Caminho ao vivo: tenta todas as conquistas vitalícias ainda não obtidas.
        Repete enquanto houver desbloqueios, já que o XP de uma conquista pode
        satisfazer um critério de XP de outra.
        """
        with self.db.read() as tx:
            achievements = [
                a for a in repository.list_achievements(tx)
                if get_rule(a.criteria_key) is not None and not get_rule(a.criteria_key).season_only
            ]

        unlocked = []
        done = set()
        for _ in range(len(achievements) + 1):
            with self.db.read() as tx:
                done.update(u.achievement_id for u in repository.list_unlocks(tx, attendant_id, any_scope=False))
            new_this_pass = 0
            for achievement in achievements:
                if achievement.id in done:
                    continue
                outcome = self.try_unlock(attendant_id, achievement.id)
                if outcome.status == UnlockStatus.UNLOCKED:
                    unlocked.append(outcome)
                    done.add(achievement.id)
                    new_this_pass += 1
            if not new_this_pass:
                break
        return unlocked
