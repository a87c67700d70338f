"""
Testes unitários da tabela de critérios de conquistas.
"""

import pytest

from backend.atendimento.database.schema import CONQUISTAS_PADRAO
from backend.atendimento.modules.gamification.domain.criteria import (
    CRITERIA_RULES,
    get_rule,
    max_five_star_streak,
)
from backend.atendimento.modules.gamification.domain.models import AttendantStats


def stats(ratings=(), total_xp=0, season_id=None, seasons_won=()):
    return AttendantStats(
        attendant_id="a-1", ratings=tuple(ratings), total_xp=total_xp,
        season_id=season_id, seasons_won=tuple(seasons_won),
    )


class TestStreak:

    def test_sequencia_zera_em_nota_diferente(self):
        assert max_five_star_streak([5, 5, 4, 5, 5, 5]) == 3
        assert max_five_star_streak([5, 5, 4, 5, 5]) == 2

    def test_sem_notas_cinco(self):
        assert max_five_star_streak([]) == 0
        assert max_five_star_streak([1, 2, 3, 4]) == 0

    def test_regras_de_sequencia(self):
        ratings = [5, 5, 4, 5, 5, 5]
        assert get_rule("five_star_streak_3").check(stats(ratings))
        assert not get_rule("five_star_streak_5").check(stats(ratings))
        assert get_rule("five_star_streak_5").progress(stats(ratings)) == 60.0


class TestCounts:

    def test_quantidade_de_avaliacoes(self):
        rule = get_rule("evaluations_10")
        assert not rule.check(stats([3] * 9))
        assert rule.check(stats([3] * 10))
        assert rule.progress(stats([3] * 5)) == 50.0

    def test_primeira_avaliacao(self):
        assert not get_rule("evaluations_1").check(stats())
        assert get_rule("evaluations_1").check(stats([1]))

    def test_xp_acumulado(self):
        rule = get_rule("xp_1000")
        assert not rule.check(stats(total_xp=999))
        assert rule.check(stats(total_xp=1000))
        assert rule.progress(stats(total_xp=-50)) == 0.0

    def test_quantidade_de_cinco_estrelas(self):
        rule = get_rule("five_star_count_50")
        assert rule.check(stats([5] * 50 + [1] * 10))
        assert not rule.check(stats([5] * 49 + [4]))


class TestAverages:

    def test_media_alta_exige_amostras_minimas(self):
        """Média 5.0 com 49 avaliações ainda não conta para 4.5 em 50+."""
        rule = get_rule("high_average_45_50")
        assert not rule.check(stats([5] * 49))
        assert rule.progress(stats([5] * 49)) == 98.0

    def test_media_exatamente_no_limite(self):
        ratings = [5] * 25 + [4] * 25
        assert get_rule("high_average_45_50").check(stats(ratings))

    def test_media_abaixo_do_limite(self):
        ratings = [5] * 24 + [4] * 26
        rule = get_rule("high_average_45_50")
        assert not rule.check(stats(ratings))
        assert rule.progress(stats(ratings)) < 100.0

    def test_perfeicao(self):
        rule = get_rule("perfect_average_25")
        assert rule.check(stats([5] * 25))
        assert not rule.check(stats([5] * 24 + [4]))

    def test_proporcao_positiva(self):
        rule = get_rule("positive_ratio_90_10")
        assert rule.check(stats([5] * 9 + [1]))
        assert not rule.check(stats([5] * 8 + [1, 2]))
        assert not rule.check(stats([5] * 9))  # só 9 avaliações


class TestSeasonWinner:

    def test_somente_no_escopo_da_temporada(self):
        rule = get_rule("season_winner")
        assert rule.season_only
        assert rule.check(stats(season_id=3, seasons_won=[3]))
        assert not rule.check(stats(season_id=3, seasons_won=[2]))
        assert not rule.check(stats(seasons_won=[3]))


class TestCatalog:

    @pytest.mark.parametrize("achievement", CONQUISTAS_PADRAO, ids=lambda a: a[0])
    def test_todo_criterio_do_catalogo_tem_regra(self, achievement):
        assert achievement[4] in CRITERIA_RULES

    def test_criterio_desconhecido(self):
        assert get_rule("nao_existe") is None

    def test_progresso_limitado_a_100(self):
        for rule in CRITERIA_RULES.values():
            value = rule.progress(stats([5] * 600, total_xp=20000, season_id=1, seasons_won=[1]))
            assert 0.0 <= value <= 100.0
