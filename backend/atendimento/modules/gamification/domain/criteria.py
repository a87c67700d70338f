"""
Tabela de critérios de conquistas.

Cada chave de critério (campo `criterio` de `conquistas_config`) aponta para uma
regra com duas funções puras sobre `AttendantStats`: `check` (elegível?) e
`progress` (0 a 100). As mesmas regras valem para o recorte vitalício e para
o recorte de uma temporada; regras marcadas `season_only` só fazem sentido
dentro de uma temporada.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal

from .models import AttendantStats


@dataclass(frozen=True)
class CriteriaRule:
    key: str
    check: Callable[[AttendantStats], bool]
    progress: Callable[[AttendantStats], float]
    season_only: bool = False


def _ratio(value, target) -> float:
    if target <= 0:
        return 100.0
    return round(min(100.0, max(0.0, value / target * 100)), 2)


def max_five_star_streak(ratings: Iterable[int]) -> int:
    """Maior sequência de notas 5 consecutivas (qualquer nota diferente zera o contador)."""
    best = current = 0
    for rating in ratings:
        if rating == 5:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def evaluation_count(threshold: int) -> CriteriaRule:
    return CriteriaRule(
        key=f"evaluations_{threshold}",
        check=lambda s: s.evaluation_count >= threshold,
        progress=lambda s: _ratio(s.evaluation_count, threshold),
    )


def xp_threshold(threshold: int) -> CriteriaRule:
    return CriteriaRule(
        key=f"xp_{threshold}",
        check=lambda s: s.total_xp >= threshold,
        progress=lambda s: _ratio(s.total_xp, threshold),
    )


def five_star_streak(length: int) -> CriteriaRule:
    return CriteriaRule(
        key=f"five_star_streak_{length}",
        check=lambda s: max_five_star_streak(s.ratings) >= length,
        progress=lambda s: _ratio(max_five_star_streak(s.ratings), length),
    )


def five_star_count(threshold: int) -> CriteriaRule:
    return CriteriaRule(
        key=f"five_star_count_{threshold}",
        check=lambda s: s.ratings.count(5) >= threshold,
        progress=lambda s: _ratio(s.ratings.count(5), threshold),
    )


def average_at_least(key: str, minimum: str, min_samples: int) -> CriteriaRule:
    """Média >= `minimum` com pelo menos `min_samples` avaliações (comparação exata)."""
    limit = Decimal(minimum)

    def check(stats):
        if stats.evaluation_count < min_samples:
            return False
        return Decimal(sum(stats.ratings)) >= limit * stats.evaluation_count

    def progress(stats):
        if check(stats):
            return 100.0
        # Enquanto não há amostras suficientes, o progresso é o das amostras
        if stats.evaluation_count < min_samples:
            return _ratio(stats.evaluation_count, min_samples)
        return round(min(99.0, stats.average_rating / float(limit) * 100), 2)

    return CriteriaRule(key=key, check=check, progress=progress)


def positive_ratio(key: str, percent: int, min_samples: int) -> CriteriaRule:
    """Ao menos `percent`% das avaliações com nota 4 ou 5, com `min_samples` avaliações."""

    def positives(stats):
        return sum(1 for r in stats.ratings if r >= 4)

    def check(stats):
        if stats.evaluation_count < min_samples:
            return False
        return positives(stats) * 100 >= percent * stats.evaluation_count

    def progress(stats):
        if check(stats):
            return 100.0
        if stats.evaluation_count < min_samples:
            return _ratio(stats.evaluation_count, min_samples)
        return round(min(99.0, positives(stats) / stats.evaluation_count * 100 / percent * 100), 2)

    return CriteriaRule(key=key, check=check, progress=progress)


def season_winner() -> CriteriaRule:
    return CriteriaRule(
        key="season_winner",
        check=lambda s: s.season_id is not None and s.season_id in s.seasons_won,
        progress=lambda s: 100.0 if s.season_id is not None and s.season_id in s.seasons_won else 0.0,
        season_only=True,
    )


def _build_rules(*rules: CriteriaRule) -> dict[str, CriteriaRule]:
    return {rule.key: rule for rule in rules}


CRITERIA_RULES: dict[str, CriteriaRule] = _build_rules(
    *(evaluation_count(n) for n in (1, 10, 50, 100, 250, 500)),
    *(xp_threshold(n) for n in (100, 1000, 5000, 10000)),
    *(five_star_streak(n) for n in (3, 5, 10)),
    five_star_count(50),
    average_at_least("high_average_45_50", "4.5", 50),
    average_at_least("perfect_average_25", "5.0", 25),
    positive_ratio("positive_ratio_90_10", 90, 10),
    season_winner(),
)


def get_rule(criteria_key: str) -> CriteriaRule | None:
    return CRITERIA_RULES.get(criteria_key)
