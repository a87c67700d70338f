"""
Testes unitários do cálculo de pontos efetivos.
"""

import pytest

from backend.atendimento.modules.gamification.domain.multiplier import (
    combined_multiplier,
    effective_points,
    round_half_up,
)


class TestRoundHalfUp:

    @pytest.mark.parametrize("value, expected", [
        (2.5, 3),
        (2.4, 2),
        (7.5, 8),
        (-2.5, -2),
        (-7.5, -7),
        (-2.6, -3),
        (0, 0),
    ])
    def test_meio_arredonda_para_cima(self, value, expected):
        assert round_half_up(value) == expected


class TestEffectivePoints:

    def test_sem_temporada_usa_apenas_multiplicador_global(self):
        assert effective_points(5, 1.0, None) == 5
        assert effective_points(5, 2.0, None) == 10

    def test_multiplicador_de_temporada(self):
        """5 × 1.5 = 7.5 arredonda para 8."""
        assert effective_points(5, 1.0, 1.5) == 8

    def test_pontos_negativos_com_multiplicador(self):
        """-5 × 1.5 = -7.5 arredonda para -7 (meio para cima)."""
        assert effective_points(-5, 1.0, 1.5) == -7

    def test_multiplicadores_combinados(self):
        assert effective_points(10, 1.2, 1.5) == 18

    def test_sem_erro_de_ponto_flutuante(self):
        """3 × 1.1 é exatamente 3.3, não 3.3000000000000003."""
        assert effective_points(3, 1.1) == 3
        assert effective_points(5, 1.1) == 6  # 5.5

    def test_zero_pontos(self):
        assert effective_points(0, 1.0, 3.0) == 0


class TestCombinedMultiplier:

    def test_produto_exato(self):
        assert combined_multiplier(1.2, 1.5) == 1.8

    def test_sem_temporada(self):
        assert combined_multiplier(1.0) == 1.0
        assert combined_multiplier(2.0, None) == 2.0
