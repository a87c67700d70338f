"""
Catálogo de conquistas (administração).

Mudanças de XP ou de critério não alteram desbloqueios já gravados; para
recalcular as recompensas use o reprocessamento com `force_reprocess`.
"""

from __future__ import annotations

import re
from dataclasses import replace

from ....common.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from ....common.validation import sanitize_string, validate_boolean, validate_integer
from ....config.logging_config import gamification_logger
from ..domain.criteria import CRITERIA_RULES
from ..domain.models import AchievementConfig
from ..infra import repository

ACHIEVEMENT_ID_RE = re.compile(r'^[a-z0-9][a-z0-9_-]{0,63}$')


class AchievementCatalog:

    def __init__(self, db):
        self.db = db

    def list_all(self, active_only=False) -> list[AchievementConfig]:
        with self.db.read() as tx:
            return repository.list_achievements(tx, active_only=active_only)

    def get(self, achievement_id) -> AchievementConfig:
        with self.db.read() as tx:
            achievement = repository.get_achievement(tx, achievement_id)
        if achievement is None:
            raise ResourceNotFoundError('Conquista', achievement_id)
        return achievement

    def _parse(self, data: dict, base: AchievementConfig | None = None) -> AchievementConfig:
        title = data.get('title')
        if title is not None:
            title = sanitize_string(str(title), max_length=100, min_length=1)
        elif base is None:
            raise ValidationError("Título da conquista é obrigatório", {'field': 'title'})

        description = data.get('description')
        if description is not None:
            description = sanitize_string(str(description), max_length=500, allow_empty=True)

        xp = data.get('xp')
        if xp is not None:
            xp = validate_integer(xp, min_value=0)
        elif base is None:
            raise ValidationError("XP da conquista é obrigatório", {'field': 'xp'})

        criteria_key = data.get('criteria_key')
        if criteria_key is not None and criteria_key not in CRITERIA_RULES:
            raise ValidationError(
                f"Critério desconhecido: {criteria_key}",
                {'field': 'criteria_key', 'allowed': sorted(CRITERIA_RULES)}
            )
        if criteria_key is None and base is None:
            raise ValidationError("Critério da conquista é obrigatório", {'field': 'criteria_key'})

        return AchievementConfig(
            id=base.id if base else data.get('id'),
            title=title if title is not None else base.title,
            description=description if description is not None else (base.description if base else ''),
            xp=xp if xp is not None else base.xp,
            active=validate_boolean(data['active']) if 'active' in data else (base.active if base else True),
            criteria_key=criteria_key or base.criteria_key,
        )

    def create(self, data: dict, created_by: str) -> AchievementConfig:
        achievement_id = data.get('id')
        if not isinstance(achievement_id, str) or not ACHIEVEMENT_ID_RE.match(achievement_id):
            raise ValidationError(
                "Id da conquista deve usar letras minúsculas, números, '-' ou '_'", {'field': 'id'}
            )
        achievement = self._parse(data)
        with self.db.transaction() as tx:
            if repository.get_achievement(tx, achievement_id) is not None:
                raise ConflictError(f"Id de conquista já está em uso: {achievement_id}")
            repository.insert_achievement(tx, achievement)
        gamification_logger.info(
            f"Conquista criada por {created_by}: {achievement_id} ({achievement.criteria_key}, {achievement.xp} XP)"
        )
        return achievement

    def update(self, achievement_id, data: dict) -> AchievementConfig:
        if 'id' in data and data['id'] != achievement_id:
            raise ValidationError("Id da conquista não pode ser alterado", {'field': 'id'})
        with self.db.transaction() as tx:
            current = repository.get_achievement(tx, achievement_id)
            if current is None:
                raise ResourceNotFoundError('Conquista', achievement_id)
            achievement = self._parse(data, base=current)
            repository.update_achievement(tx, achievement)
        gamification_logger.info(f"Conquista atualizada: {achievement_id}")
        return achievement

    def toggle(self, achievement_id) -> AchievementConfig:
        with self.db.transaction() as tx:
            current = repository.get_achievement(tx, achievement_id)
            if current is None:
                raise ResourceNotFoundError('Conquista', achievement_id)
            toggled = replace(current, active=not current.active)
            repository.update_achievement(tx, toggled)
        gamification_logger.info(f"Conquista {achievement_id} {'ativada' if toggled.active else 'desativada'}")
        return toggled
