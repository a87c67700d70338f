"""
Testes de integração do processamento retroativo de conquistas.
"""

import json
from datetime import datetime

import pytest

from backend.atendimento.common.exceptions import ResourceNotFoundError
from backend.atendimento.modules.gamification.domain.models import XpEventType

FEVEREIRO = (datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59, 59))


@pytest.fixture
def processor(services):
    return services.retroactive_processor


@pytest.fixture
def historico(services, make_attendant, make_season, catalog):
    """
    Temporada de fevereiro já encerrada (o relógio está em 15/03) com
    avaliações gravadas antes de existir o catálogo de conquistas.
    """
    catalog.clear()
    season = make_season("Fevereiro", *FEVEREIRO)
    make_attendant("a-1", "Ana")
    make_attendant("a-2", "Bruno")
    make_attendant("a-3", "Carla", ativo=False)
    ledger = services.xp_ledger
    for day in (5, 6, 7):
        ledger.record_evaluation("a-1", 5, date=datetime(2024, 2, day, 10))
    ledger.record_evaluation("a-2", 4, date=datetime(2024, 2, 8, 10))
    ledger.record_evaluation("a-3", 5, date=datetime(2024, 2, 9, 10))
    catalog.add("primeira", 10, "evaluations_1")
    catalog.add("trinca", 100, "five_star_streak_3")
    catalog.add("campeao", 1000, "season_winner")
    return season


def _unlocks(services, attendant_id):
    with services.db.read() as tx:
        return tx.query(
            "SELECT conquista_id, escopo FROM conquistas_desbloqueadas WHERE atendente_id = %s ORDER BY conquista_id, escopo",
            (attendant_id,)
        )


class TestProcessAll:

    def test_desbloqueia_conquistas_vitalicias(self, services, processor, historico):
        batch = processor.process_all()

        assert batch.errors == []
        assert batch.attendants_processed == 2  # a-3 está inativa
        by_attendant = {r.attendant_id: r for r in batch.attendant_results}
        assert sorted(o.achievement_id for o in by_attendant["a-1"].unlocked) == ["campeao", "primeira", "trinca"]
        assert [o.achievement_id for o in by_attendant["a-2"].unlocked] == ["primeira"]

    def test_campeao_expandido_para_a_temporada_vencida(self, services, processor, historico):
        processor.process_all()
        rows = _unlocks(services, "a-1")
        assert {"conquista_id": "campeao", "escopo": f"temporada:{historico.id}"} in rows

    def test_idempotente(self, services, processor, historico):
        processor.process_all()
        total = services.xp_ledger.total_xp("a-1")

        second = processor.process_all()

        assert second.achievements_unlocked == 0
        assert second.xp_awarded == 0
        assert services.xp_ledger.total_xp("a-1") == total

    def test_reprocessamento_forcado_nao_duplica(self, services, processor, historico):
        processor.process_all()
        total = services.xp_ledger.total_xp("a-1")
        unlocks = _unlocks(services, "a-1")

        batch = processor.process_all(force_reprocess=True)

        assert batch.errors == []
        assert _unlocks(services, "a-1") == unlocks
        assert services.xp_ledger.total_xp("a-1") == total
        achievement_events = [
            e for e in services.xp_ledger.history("a-1") if e.type == XpEventType.ACHIEVEMENT
        ]
        assert len(achievement_events) == len(unlocks)

    def test_falha_de_um_atendente_nao_interrompe_o_lote(self, services, processor, historico, monkeypatch):
        coordinator = services.unlock_coordinator
        original = coordinator.try_unlock

        def flaky(attendant_id, *args, **kwargs):
            if attendant_id == "a-1":
                raise RuntimeError("falha simulada")
            return original(attendant_id, *args, **kwargs)

        monkeypatch.setattr(coordinator, "try_unlock", flaky)
        batch = processor.process_all()

        assert batch.errors == [{"attendant_id": "a-1", "error": "falha simulada"}]
        assert batch.attendants_processed == 1
        assert batch.achievements_unlocked == 1
        assert batch.to_dict()["attendant_results"][0]["error"] == "falha simulada"


class TestProcessSeason:

    def test_conquistas_no_escopo_da_temporada(self, services, processor, historico):
        batch = processor.process_season(historico.id)

        assert batch.season_name == "Fevereiro"
        # a-3 é inativa, mas avaliou na temporada
        assert sorted(r.attendant_id for r in batch.attendant_results) == ["a-1", "a-2", "a-3"]
        scope = f"temporada:{historico.id}"
        assert {row["escopo"] for row in _unlocks(services, "a-1")} == {scope}
        assert sorted(row["conquista_id"] for row in _unlocks(services, "a-1")) == ["campeao", "primeira", "trinca"]

    def test_empate_no_topo_sem_campeao(self, services, processor, historico):
        services.xp_ledger.record_evaluation("a-2", 5, date=datetime(2024, 2, 20, 10))
        services.xp_ledger.record_evaluation("a-2", 5, date=datetime(2024, 2, 21, 10))
        services.xp_ledger.append("a-2", 2, XpEventType.MANUAL_GRANT, "ajuste", date=datetime(2024, 2, 22, 10))

        processor.process_season(historico.id)

        assert "campeao" not in [row["conquista_id"] for row in _unlocks(services, "a-1")]
        assert "campeao" not in [row["conquista_id"] for row in _unlocks(services, "a-2")]

    def test_temporada_em_andamento_nao_tem_campeao(self, services, processor, make_season, make_attendant, catalog):
        catalog.only(("campeao", 1000, "season_winner"))
        season = make_season("Março", datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59))
        make_attendant("a-9")
        services.xp_ledger.record_evaluation("a-9", 5)

        batch = processor.process_season(season.id)

        assert batch.achievements_unlocked == 0

    def test_lista_explicita_de_atendentes(self, processor, historico):
        batch = processor.process_season(historico.id, attendant_ids=["a-2"])
        assert [r.attendant_id for r in batch.attendant_results] == ["a-2"]

    def test_temporada_inexistente(self, processor):
        with pytest.raises(ResourceNotFoundError):
            processor.process_season(999)


class TestProcessAttendant:

    def test_um_atendente(self, processor, historico):
        result = processor.process_attendant("a-2")
        assert [o.achievement_id for o in result.unlocked] == ["primeira"]
        assert result.xp_awarded == 10

    def test_cadeia_de_xp(self, services, processor, make_attendant, catalog):
        catalog.clear()
        make_attendant("a-5")
        services.xp_ledger.record_evaluation("a-5", 5)
        catalog.add("cem-xp", 10, "xp_100")
        catalog.add("primeira", 100, "evaluations_1")

        result = processor.process_attendant("a-5")

        assert sorted(o.achievement_id for o in result.unlocked) == ["cem-xp", "primeira"]

    def test_atendente_inexistente(self, processor):
        with pytest.raises(ResourceNotFoundError):
            processor.process_attendant("nao-existe")


class TestCli:

    def test_comando_process_achievements(self, runner, historico):
        result = runner.invoke(args=["process-achievements"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["attendants_processed"] == 2
        assert data["achievements_unlocked"] == 4

    def test_comando_por_temporada(self, runner, historico):
        result = runner.invoke(args=["process-achievements", "--season-id", str(historico.id)])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["season_id"] == historico.id
