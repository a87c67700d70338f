"""
Tipos de valor do motor de gamificação.

Todos são imutáveis: uma vez lidos do banco ou calculados, são repassados
entre os componentes sem que ninguém os altere.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from ....constants import ESCOPO_GERAL


class XpEventType(str, Enum):
    EVALUATION = "EVALUATION"
    ACHIEVEMENT = "ACHIEVEMENT"
    MANUAL_GRANT = "MANUAL_GRANT"


class UnlockStatus(str, Enum):
    UNLOCKED = "UNLOCKED"
    ALREADY_UNLOCKED = "ALREADY_UNLOCKED"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"


class SeasonStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


def scope_key(season_id: int | None) -> str:
    """Chave de escopo usada na unicidade de conquistas (vitalícia ou por temporada)."""
    if season_id is None:
        return ESCOPO_GERAL
    return f"temporada:{season_id}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Season:
    id: int | None
    name: str
    start_date: datetime
    end_date: datetime
    active: bool = False
    xp_multiplier: float = 1.0

    def contains(self, moment: datetime) -> bool:
        return self.start_date <= moment <= self.end_date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "active": self.active,
            "xp_multiplier": self.xp_multiplier,
        }


@dataclass(frozen=True)
class XpEvent:
    id: int | None
    attendant_id: str
    base_points: int
    multiplier: float
    points: int
    reason: str
    type: XpEventType
    date: datetime
    season_id: int | None = None
    related_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["date"] = _iso(self.date)
        return data


@dataclass(frozen=True)
class Evaluation:
    id: int | None
    attendant_id: str
    rating: int
    date: datetime
    comment: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attendant_id": self.attendant_id,
            "rating": self.rating,
            "date": _iso(self.date),
            "comment": self.comment,
        }


@dataclass(frozen=True)
class AchievementConfig:
    id: str
    title: str
    description: str
    xp: int
    active: bool
    criteria_key: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UnlockedAchievement:
    id: int | None
    attendant_id: str
    achievement_id: str
    season_id: int | None
    unlocked_at: datetime
    xp_gained: int

    @property
    def scope(self) -> str:
        return scope_key(self.season_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attendant_id": self.attendant_id,
            "achievement_id": self.achievement_id,
            "season_id": self.season_id,
            "unlocked_at": _iso(self.unlocked_at),
            "xp_gained": self.xp_gained,
        }


@dataclass(frozen=True)
class AttendantStats:
    """Recorte das avaliações e do XP de um atendente (vitalício ou de uma temporada)."""

    attendant_id: str
    ratings: tuple[int, ...] = ()
    total_xp: int = 0
    season_id: int | None = None
    seasons_won: tuple[int, ...] = ()

    @property
    def evaluation_count(self) -> int:
        return len(self.ratings)

    @property
    def average_rating(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(self.ratings) / len(self.ratings)


@dataclass(frozen=True)
class GamificationSettings:
    rating_points: tuple[int, int, int, int, int] = (-5, -2, 1, 3, 5)
    global_multiplier: float = 1.0

    def points_for(self, rating: int) -> int:
        return self.rating_points[rating - 1]

    def to_dict(self) -> dict:
        return {
            "rating_points": {str(n): self.rating_points[n - 1] for n in range(1, 6)},
            "global_multiplier": self.global_multiplier,
        }


@dataclass(frozen=True)
class XpType:
    id: int | None
    name: str
    description: str
    points: int
    category: str
    active: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class GrantLimits:
    daily_points_limit: int = 1000
    daily_grants_limit: int = 50
    min_points_per_grant: int = 1
    max_points_per_grant: int = 500
    max_grants_per_attendant_per_day: int = 10
    cooldown_minutes: int = 0
    require_justification: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class GrantQuotaState:
    granter_id: str
    day: str
    points_granted: int = 0
    grants_count: int = 0
    limits: GrantLimits = field(default_factory=GrantLimits)

    @property
    def points_remaining(self) -> int:
        return max(0, self.limits.daily_points_limit - self.points_granted)

    @property
    def grants_remaining(self) -> int:
        return max(0, self.limits.daily_grants_limit - self.grants_count)

    def to_dict(self) -> dict:
        return {
            "granter_id": self.granter_id,
            "day": self.day,
            "points_granted": self.points_granted,
            "grants_count": self.grants_count,
            "points_remaining": self.points_remaining,
            "grants_remaining": self.grants_remaining,
            "limits": self.limits.to_dict(),
        }


@dataclass(frozen=True)
class UnlockOutcome:
    status: UnlockStatus
    attendant_id: str
    achievement_id: str
    season_id: int | None = None
    unlocked: UnlockedAchievement | None = None
    xp_event: XpEvent | None = None

    @property
    def xp_awarded(self) -> int:
        return self.xp_event.points if self.xp_event else 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "attendant_id": self.attendant_id,
            "achievement_id": self.achievement_id,
            "season_id": self.season_id,
            "xp_awarded": self.xp_awarded,
            "unlocked_at": _iso(self.unlocked.unlocked_at) if self.unlocked else None,
        }


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    attendant_id: str
    total_points: int
    first_event_at: datetime | None = None
    medal: str | None = None

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "attendant_id": self.attendant_id,
            "total_points": self.total_points,
            "first_event_at": _iso(self.first_event_at),
            "medal": self.medal,
        }
