"""
Regras puras de temporadas: resolução da temporada ativa, sobreposição e status.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from ....common.exceptions import ValidationError
from ....constants import DURACAO_MINIMA_TEMPORADA_DIAS
from .models import Season, SeasonStatus


def intervals_overlap(a: Season, b: Season) -> bool:
    """Intervalos fechados [início, fim] se sobrepõem."""
    return a.start_date <= b.end_date and b.start_date <= a.end_date


def find_overlapping(candidate: Season, existing_active: Iterable[Season]) -> list[Season]:
    return [
        season for season in existing_active
        if season.active and season.id != candidate.id and intervals_overlap(candidate, season)
    ]


def validate_no_overlap(candidate: Season, existing_active: Iterable[Season]) -> bool:
    return not find_overlapping(candidate, existing_active)


def resolve_active(seasons: Iterable[Season], now: datetime) -> Season | None:
    """
    Temporada ativa em `now`.

    Se, por violação de integridade, mais de uma temporada ativa contiver `now`,
    vence a de início mais recente (empate resolvido pelo maior id).
    """
    candidates = [s for s in seasons if s.active and s.contains(now)]
    if not candidates:
        return None
    return max(candidates, key=lambda s: (s.start_date, s.id or 0))


def validate_season_fields(name, start_date: datetime, end_date: datetime, xp_multiplier) -> None:
    if not name or not str(name).strip():
        raise ValidationError("Nome da temporada é obrigatório", {'field': 'name'})
    if start_date >= end_date:
        raise ValidationError("Data de início deve ser anterior à data de fim", {'field': 'start_date'})
    if end_date - start_date < timedelta(days=DURACAO_MINIMA_TEMPORADA_DIAS):
        raise ValidationError(
            f"Temporada deve ter pelo menos {DURACAO_MINIMA_TEMPORADA_DIAS} dia(s) de duração",
            {'field': 'end_date'}
        )
    if xp_multiplier is None or xp_multiplier <= 0:
        raise ValidationError("Multiplicador de XP deve ser maior que zero", {'field': 'xp_multiplier'})


def season_status(season: Season, now: datetime) -> SeasonStatus:
    if now < season.start_date:
        return SeasonStatus.UPCOMING
    if now > season.end_date:
        return SeasonStatus.ENDED
    return SeasonStatus.ACTIVE


def days_remaining(season: Season, now: datetime) -> int:
    if now >= season.end_date:
        return 0
    return math.ceil((season.end_date - now).total_seconds() / 86400)


def progress_percent(season: Season, now: datetime) -> float:
    total = (season.end_date - season.start_date).total_seconds()
    if total <= 0 or now <= season.start_date:
        return 0.0
    if now >= season.end_date:
        return 100.0
    return round((now - season.start_date).total_seconds() / total * 100, 2)


def find_next(seasons: Iterable[Season], now: datetime) -> Season | None:
    upcoming = [s for s in seasons if s.start_date > now]
    return min(upcoming, key=lambda s: s.start_date) if upcoming else None


def find_previous(seasons: Iterable[Season], now: datetime) -> Season | None:
    ended = [s for s in seasons if s.end_date < now]
    return max(ended, key=lambda s: s.end_date) if ended else None


def describe(season: Season, now: datetime) -> dict:
    data = season.to_dict()
    data.update({
        "status": season_status(season, now).value,
        "days_remaining": days_remaining(season, now),
        "progress": progress_percent(season, now),
    })
    return data
