"""
Testes unitários do ranking e dos níveis.
"""

from datetime import datetime

from backend.atendimento.modules.gamification.domain.levels import level_for_xp, level_summary, xp_for_level
from backend.atendimento.modules.gamification.domain.ranking import rank, single_top_scorer


class TestRank:

    def test_ordena_por_total(self):
        rows = [("b", 10, datetime(2024, 1, 2)), ("a", 30, datetime(2024, 1, 3)), ("c", 20, datetime(2024, 1, 1))]
        entries = rank(rows)
        assert [e.attendant_id for e in entries] == ["a", "c", "b"]
        assert [e.position for e in entries] == [1, 2, 3]
        assert [e.medal for e in entries] == ["ouro", "prata", "bronze"]

    def test_empate_desfeito_por_quem_pontuou_primeiro(self):
        rows = [("b", 50, datetime(2024, 1, 5)), ("a", 50, datetime(2024, 1, 9))]
        assert [e.attendant_id for e in rank(rows)] == ["b", "a"]

    def test_empate_total_desfeito_pelo_id(self):
        moment = datetime(2024, 1, 5)
        rows = [("z", 50, moment), ("m", 50, moment)]
        assert [e.attendant_id for e in rank(rows)] == ["m", "z"]

    def test_limite_e_sem_medalha_apos_terceiro(self):
        rows = [(f"a{i}", 100 - i, datetime(2024, 1, 1)) for i in range(6)]
        entries = rank(rows, limit=4)
        assert len(entries) == 4
        assert entries[3].medal is None

    def test_pontuacao_negativa(self):
        rows = [("a", -5, datetime(2024, 1, 1)), ("b", 0, datetime(2024, 1, 2))]
        assert rank(rows)[0].attendant_id == "b"


class TestSingleTopScorer:

    def test_campeao_unico(self):
        rows = [("a", 30, None), ("b", 20, None)]
        assert single_top_scorer(rows) == "a"

    def test_empate_no_topo_sem_campeao(self):
        rows = [("a", 30, datetime(2024, 1, 1)), ("b", 30, datetime(2024, 1, 2)), ("c", 10, None)]
        assert single_top_scorer(rows) is None

    def test_sem_pontuacao(self):
        assert single_top_scorer([]) is None

    def test_unico_participante(self):
        assert single_top_scorer([("a", 5, None)]) == "a"


class TestLevels:

    def test_niveis(self):
        assert level_for_xp(0) == 1
        assert level_for_xp(-20) == 1
        assert level_for_xp(99) == 1
        assert level_for_xp(100) == 2
        assert level_for_xp(399) == 2
        assert level_for_xp(400) == 3
        assert xp_for_level(3) == 400

    def test_resumo(self):
        summary = level_summary(250)
        assert summary["level"] == 2
        assert summary["xp_current_level"] == 100
        assert summary["xp_next_level"] == 400
        assert summary["xp_to_next_level"] == 150
        assert summary["progress"] == 50.0
