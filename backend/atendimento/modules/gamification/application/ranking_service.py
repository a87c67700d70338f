"""
Ranking por temporada, derivado da soma dos pontos dos eventos de XP
marcados com a temporada.
"""

from __future__ import annotations

from datetime import datetime

from ....common.validation import validate_integer
from ....constants import LEADERBOARD_LIMITE_MAXIMO, LEADERBOARD_LIMITE_PADRAO
from ..domain import ranking
from ..domain.models import LeaderboardEntry
from ..infra import repository


class RankingService:

    def __init__(self, db, seasons, clock=datetime.now):
        self.db = db
        self.seasons = seasons
        self.clock = clock

    def leaderboard(self, season_id=None, limit=LEADERBOARD_LIMITE_PADRAO) -> dict:
        """
        Ranking de uma temporada (padrão: a temporada ativa agora).

        Returns:
            {'season': Season | None, 'entries': [LeaderboardEntry, ...]}
        """
        limit = validate_integer(limit, min_value=1, max_value=LEADERBOARD_LIMITE_MAXIMO)
        with self.db.read() as tx:
            if season_id is None:
                season = self.seasons.resolve_active(tx=tx)
            else:
                season = self.seasons.get(season_id, tx=tx)
            if season is None:
                return {'season': None, 'entries': []}
            rows = repository.season_totals(tx, season.id)
        return {'season': season, 'entries': ranking.rank(rows, limit)}

    def attendant_position(self, season_id, attendant_id) -> LeaderboardEntry | None:
        with self.db.read() as tx:
            self.seasons.get(season_id, tx=tx)
            rows = repository.season_totals(tx, season_id)
        for entry in ranking.rank(rows):
            if entry.attendant_id == attendant_id:
                return entry
        return None

    def season_winner(self, season_id, tx=None) -> str | None:
        """Único primeiro colocado de uma temporada já encerrada (empate = sem campeão)."""
        if tx is None:
            with self.db.read() as read_tx:
                return self.season_winner(season_id, tx=read_tx)
        season = self.seasons.get(season_id, tx=tx)
        if season.end_date >= self.clock():
            return None
        return ranking.single_top_scorer(repository.season_totals(tx, season_id))

    def seasons_won_by(self, attendant_id, tx=None) -> tuple[int, ...]:
        if tx is None:
            with self.db.read() as read_tx:
                return self.seasons_won_by(attendant_id, tx=read_tx)
        now = self.clock()
        won = []
        for season in repository.list_seasons(tx):
            if season.end_date >= now:
                continue
            if ranking.single_top_scorer(repository.season_totals(tx, season.id)) == attendant_id:
                won.append(season.id)
        return tuple(sorted(won))
