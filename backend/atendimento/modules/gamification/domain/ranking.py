"""
Ordenação do ranking de uma temporada.

Desempate: maior total de pontos; depois quem pontuou primeiro na temporada;
por último o id do atendente. As medalhas dos três primeiros são apenas rótulos
de exibição.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ....constants import MEDALHAS_RANKING
from .models import LeaderboardEntry


def _sort_key(row):
    attendant_id, total, first_event_at = row
    return (-total, first_event_at or datetime.max, str(attendant_id))


def rank(rows: Iterable[tuple[str, int, datetime | None]], limit: int | None = None) -> list[LeaderboardEntry]:
    ordered = sorted(rows, key=_sort_key)
    if limit is not None:
        ordered = ordered[:limit]
    entries = []
    for index, (attendant_id, total, first_event_at) in enumerate(ordered):
        medal = MEDALHAS_RANKING[index] if index < len(MEDALHAS_RANKING) else None
        entries.append(LeaderboardEntry(
            position=index + 1,
            attendant_id=attendant_id,
            total_points=int(total),
            first_event_at=first_event_at,
            medal=medal,
        ))
    return entries


def single_top_scorer(rows: Iterable[tuple[str, int, datetime | None]]) -> str | None:
    """Atendente com a maior pontuação, desde que ninguém empate com ele."""
    totals = sorted(((int(total), attendant_id) for attendant_id, total, _ in rows), reverse=True)
    if not totals:
        return None
    if len(totals) > 1 and totals[0][0] == totals[1][0]:
        return None
    return totals[0][1]
