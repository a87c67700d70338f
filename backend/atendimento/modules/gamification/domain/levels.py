"""Níveis derivados do XP total: nível = floor(sqrt(xp / 100)) + 1."""

import math

XP_BASE_NIVEL = 100


def level_for_xp(xp: int) -> int:
    if xp <= 0:
        return 1
    return math.isqrt(xp // XP_BASE_NIVEL) + 1


def xp_for_level(level: int) -> int:
    if level <= 1:
        return 0
    return (level - 1) ** 2 * XP_BASE_NIVEL


def level_summary(xp: int) -> dict:
    level = level_for_xp(xp)
    current_floor = xp_for_level(level)
    next_floor = xp_for_level(level + 1)
    span = next_floor - current_floor
    into_level = max(0, xp - current_floor)
    return {
        "level": level,
        "xp": xp,
        "xp_current_level": current_floor,
        "xp_next_level": next_floor,
        "xp_to_next_level": max(0, next_floor - xp),
        "progress": round(into_level / span * 100, 2) if span else 0.0,
    }
