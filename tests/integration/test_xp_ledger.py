"""
Testes de integração do livro-razão de XP e da ingestão de avaliações.
"""

from datetime import datetime

import pytest

from backend.atendimento.common.exceptions import ResourceNotFoundError, ValidationError
from backend.atendimento.core.events import AvaliacaoRegistrada
from backend.atendimento.modules.gamification.domain.models import XpEventType

MARCO_INICIO = datetime(2024, 3, 1)
MARCO_FIM = datetime(2024, 3, 31, 23, 59, 59)


@pytest.fixture
def ledger(services):
    return services.xp_ledger


@pytest.fixture
def atendente(make_attendant):
    return make_attendant("a-1", "Ana")


class TestRecordEvaluation:

    def test_pontos_por_nota_sem_temporada(self, ledger, atendente, catalog):
        catalog.clear()
        _, event = ledger.record_evaluation(atendente, 4)
        assert event.type == XpEventType.EVALUATION
        assert event.base_points == 3
        assert event.points == 3
        assert event.season_id is None
        assert ledger.total_xp(atendente) == 3

    def test_multiplicador_da_temporada(self, ledger, atendente, catalog, make_season):
        catalog.clear()
        season = make_season("Março", MARCO_INICIO, MARCO_FIM, multiplier=1.5)

        evaluation, event = ledger.record_evaluation(atendente, 5, comment="Ótimo atendimento")

        assert evaluation.rating == 5
        assert event.season_id == season.id
        assert event.multiplier == 1.5
        assert event.points == 8
        assert event.related_id == str(evaluation.id)
        assert ledger.total_xp(atendente, season_id=season.id) == 8

    def test_nota_baixa_com_multiplicador(self, ledger, atendente, catalog, make_season):
        catalog.clear()
        make_season("Março", MARCO_INICIO, MARCO_FIM, multiplier=1.5)
        _, event = ledger.record_evaluation(atendente, 1)
        assert event.points == -7

    def test_temporada_resolvida_pela_data_da_avaliacao(self, ledger, atendente, catalog, make_season):
        catalog.clear()
        make_season("Março", MARCO_INICIO, MARCO_FIM, multiplier=2.0)
        _, event = ledger.record_evaluation(atendente, 5, date=datetime(2024, 2, 20))
        assert event.season_id is None
        assert event.points == 5

    def test_eventos_antigos_nao_mudam_com_a_configuracao(self, services, ledger, atendente, catalog):
        catalog.clear()
        ledger.record_evaluation(atendente, 5)
        services.settings_service.update_settings({"global_multiplier": 2.0})
        ledger.record_evaluation(atendente, 5)

        points = [e.points for e in ledger.history(atendente)]
        assert sorted(points) == [5, 10]
        assert ledger.total_xp(atendente) == 15

    def test_atendente_desconhecido(self, ledger):
        with pytest.raises(ResourceNotFoundError):
            ledger.record_evaluation("nao-existe", 5)

    @pytest.mark.parametrize("rating", [0, 6, "cinco", None])
    def test_nota_invalida(self, ledger, atendente, rating):
        with pytest.raises(ValidationError):
            ledger.record_evaluation(atendente, rating)

    def test_emite_evento_de_dominio(self, services, ledger, atendente, catalog):
        catalog.clear()
        evaluation, _ = ledger.record_evaluation(atendente, 3)
        history = services.event_bus.get_history(event_type=AvaliacaoRegistrada)
        assert history[-1]["data"]["avaliacao_id"] == evaluation.id
        assert history[-1]["data"]["pontos"] == 1


class TestLiveAchievementCheck:

    def test_primeira_avaliacao_desbloqueia_conquista(self, ledger, atendente):
        ledger.record_evaluation(atendente, 5)

        events = ledger.history(atendente)
        achievement_events = [e for e in events if e.type == XpEventType.ACHIEVEMENT]
        assert len(achievement_events) == 1
        assert achievement_events[0].base_points == 10
        assert ledger.total_xp(atendente) == 15

    def test_conquista_recebe_multiplicador_da_temporada(self, ledger, atendente, make_season):
        season = make_season("Março", MARCO_INICIO, MARCO_FIM, multiplier=1.5)
        ledger.record_evaluation(atendente, 5)

        achievement = [e for e in ledger.history(atendente) if e.type == XpEventType.ACHIEVEMENT][0]
        assert achievement.points == 15
        assert achievement.season_id == season.id
        assert ledger.total_xp(atendente) == 8 + 15

    def test_conquista_de_xp_encadeada(self, ledger, atendente, catalog):
        """O XP de uma conquista pode liberar outra conquista de XP na mesma verificação."""
        catalog.only(("primeira", 100, "evaluations_1"), ("cem-xp", 10, "xp_100"))
        ledger.record_evaluation(atendente, 5)

        reasons = sorted(e.reason for e in ledger.history(atendente) if e.type == XpEventType.ACHIEVEMENT)
        assert len(reasons) == 2
        assert ledger.total_xp(atendente) == 5 + 100 + 10

    def test_segunda_avaliacao_nao_repete_conquista(self, ledger, atendente):
        ledger.record_evaluation(atendente, 5)
        ledger.record_evaluation(atendente, 5)
        achievement_events = [e for e in ledger.history(atendente) if e.type == XpEventType.ACHIEVEMENT]
        assert len(achievement_events) == 1


class TestSummary:

    def test_resumo_com_nivel(self, ledger, atendente, catalog, make_season):
        catalog.clear()
        season = make_season("Março", MARCO_INICIO, MARCO_FIM, multiplier=1.0)
        for _ in range(30):
            ledger.record_evaluation(atendente, 4)

        summary = ledger.xp_summary(atendente)
        assert summary["total_xp"] == 90
        assert summary["season_id"] == season.id
        assert summary["season_xp"] == 90
        assert summary["level"] == 1

    def test_resumo_de_atendente_desconhecido(self, ledger):
        with pytest.raises(ResourceNotFoundError):
            ledger.xp_summary("nao-existe")

    def test_append_direto_exige_tipo_valido(self, ledger, atendente):
        with pytest.raises(ValidationError):
            ledger.append(atendente, 10, "BONUS", "tipo inválido")
