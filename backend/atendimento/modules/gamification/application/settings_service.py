"""
Configurações da gamificação guardadas no banco (singletons `main`):
tabela de pontos por nota, multiplicador global e limites de XP avulso.

Leituras passam por um TTLCache; toda escrita invalida o cache.
"""

from __future__ import annotations

from datetime import datetime
from threading import Lock

from cachetools import TTLCache

from ....common.exceptions import ValidationError
from ....common.validation import validate_boolean, validate_float, validate_integer
from ....config.logging_config import gamification_logger
from ..domain.models import GamificationSettings, GrantLimits
from ..infra import repository

_SETTINGS_KEY = 'settings'
_LIMITS_KEY = 'grant_limits'

_LIMIT_FIELDS = (
    'daily_points_limit',
    'daily_grants_limit',
    'min_points_per_grant',
    'max_points_per_grant',
    'max_grants_per_attendant_per_day',
    'cooldown_minutes',
)


class SettingsService:

    def __init__(self, db, cache_ttl: int = 300, clock=datetime.now):
        self.db = db
        self.clock = clock
        self._cache = TTLCache(maxsize=8, ttl=cache_ttl)
        self._lock = Lock()

    def _cached(self, key, loader, tx=None):
        with self._lock:
            value = self._cache.get(key)
        if value is not None:
            return value
        if tx is not None:
            value = loader(tx)
        else:
            with self.db.read() as read_tx:
                value = loader(read_tx)
        with self._lock:
            self._cache[key] = value
        return value

    def invalidate(self):
        with self._lock:
            self._cache.clear()

    def get_settings(self, tx=None) -> GamificationSettings:
        return self._cached(_SETTINGS_KEY, repository.get_settings, tx)

    def get_grant_limits(self, tx=None) -> GrantLimits:
        return self._cached(_LIMITS_KEY, repository.get_grant_limits, tx)

    def update_settings(self, data: dict) -> GamificationSettings:
        """
        Atualiza a tabela nota→pontos e/ou o multiplicador global.

        Args:
            data: {'rating_points': {'1': -5, ..., '5': 5}, 'global_multiplier': 1.0}
        """
        current = self.get_settings()
        rating_points = list(current.rating_points)

        raw_points = data.get('rating_points')
        if raw_points is not None:
            if not isinstance(raw_points, dict):
                raise ValidationError("rating_points deve ser um objeto {nota: pontos}")
            for key, value in raw_points.items():
                rating = validate_integer(key, min_value=1, max_value=5)
                rating_points[rating - 1] = validate_integer(value, min_value=-10000, max_value=10000)

        global_multiplier = current.global_multiplier
        if data.get('global_multiplier') is not None:
            global_multiplier = validate_float(data['global_multiplier'], min_value=0)
            if global_multiplier <= 0:
                raise ValidationError("Multiplicador global deve ser maior que zero")

        settings = GamificationSettings(rating_points=tuple(rating_points), global_multiplier=global_multiplier)
        with self.db.transaction() as tx:
            repository.save_settings(tx, settings, self.clock())
        self.invalidate()
        gamification_logger.info(f"Configuração de gamificação atualizada: {settings.to_dict()}")
        return settings

    def update_grant_limits(self, data: dict, updated_by: str) -> GrantLimits:
        current = self.get_grant_limits().to_dict()
        for field_name in _LIMIT_FIELDS:
            if data.get(field_name) is not None:
                current[field_name] = validate_integer(data[field_name], min_value=0)
        if 'require_justification' in data:
            current['require_justification'] = validate_boolean(data['require_justification'])

        limits = GrantLimits(**current)
        if limits.min_points_per_grant < 1:
            raise ValidationError("Pontos mínimos por concessão devem ser pelo menos 1")
        if limits.min_points_per_grant > limits.max_points_per_grant:
            raise ValidationError(
                "Pontos mínimos por concessão não podem exceder o máximo",
                {'min_points_per_grant': limits.min_points_per_grant, 'max_points_per_grant': limits.max_points_per_grant}
            )

        with self.db.transaction() as tx:
            repository.save_grant_limits(tx, limits, updated_by, self.clock())
        self.invalidate()
        gamification_logger.info(f"Limites de XP avulso atualizados por {updated_by}: {limits.to_dict()}")
        return limits
