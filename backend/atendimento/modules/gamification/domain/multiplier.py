"""
Cálculo de pontos efetivos.

Regra: pontos = arredondar(base × multiplicador_global × multiplicador_temporada),
calculado uma única vez, na criação do evento de XP. O arredondamento é
"meio para cima" (floor(x + 0.5)), inclusive para valores negativos:
-2.5 vira -2 e 2.5 vira 3.
"""

from decimal import ROUND_FLOOR, Decimal


def _to_decimal(value) -> Decimal:
    return Decimal(str(value))


def combined_multiplier(global_multiplier, season_multiplier=None) -> float:
    season = 1 if season_multiplier is None else season_multiplier
    return float(_to_decimal(global_multiplier) * _to_decimal(season))


def round_half_up(value) -> int:
    return int((_to_decimal(value) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def effective_points(base_points: int, global_multiplier=1.0, season_multiplier=None) -> int:
    """Pontos efetivos de um evento. Sem temporada ativa o multiplicador da temporada é 1."""
    season = 1 if season_multiplier is None else season_multiplier
    exact = Decimal(int(base_points)) * _to_decimal(global_multiplier) * _to_decimal(season)
    return round_half_up(exact)
