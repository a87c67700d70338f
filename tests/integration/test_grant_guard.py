"""
Testes de integração da guarda de concessões de XP avulso.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from backend.atendimento.common.exceptions import (
    ConflictError,
    QuotaExceededError,
    ResourceNotFoundError,
    ValidationError,
)
from backend.atendimento.core.events import XpConcedido
from backend.atendimento.modules.gamification.domain.models import XpEventType

GESTOR = "gestor@test.com"
ELOGIO = 1  # tipo padrão "Elogio do Cliente", 50 pontos


@pytest.fixture
def guard(services):
    return services.grant_guard


@pytest.fixture
def temporada(make_season, catalog):
    catalog.clear()
    return make_season("Março", datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59))


@pytest.fixture
def atendentes(make_attendant):
    return [make_attendant(f"a-{i}") for i in range(1, 21)]


def _tipo(guard, points, name=None):
    return guard.create_type({"name": name or f"Tipo {points}", "points": points, "category": "desempenho"}, GESTOR).id


class TestGrant:

    def test_concessao_grava_evento_manual(self, services, guard, temporada, atendentes):
        result = guard.grant("a-1", ELOGIO, GESTOR, justification="Elogio no chat")

        assert result.xp_event.type == XpEventType.MANUAL_GRANT
        assert result.xp_event.base_points == 50
        assert result.xp_event.season_id == temporada.id
        assert result.xp_event.related_id == str(result.grant_id)
        assert result.quota.points_granted == 50
        assert result.quota.grants_remaining == 49
        assert services.xp_ledger.total_xp("a-1") == 50

        grants = guard.history(granted_by=GESTOR)
        assert grants[0]["xp_event_id"] == result.xp_event.id
        assert grants[0]["justification"] == "Elogio no chat"

    def test_multiplicador_afeta_pontos_mas_nao_a_cota(self, services, guard, make_season, atendentes, catalog):
        catalog.clear()
        make_season("Março", datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59), multiplier=2.0)
        result = guard.grant("a-1", ELOGIO, GESTOR)

        assert result.xp_event.points == 100
        assert guard.daily_usage(GESTOR).points_granted == 50

    def test_sem_temporada_ativa(self, guard, atendentes):
        with pytest.raises(ConflictError):
            guard.grant("a-1", ELOGIO, GESTOR)

    def test_atendente_ou_tipo_inexistente(self, guard, temporada, atendentes):
        with pytest.raises(ResourceNotFoundError):
            guard.grant("nao-existe", ELOGIO, GESTOR)
        with pytest.raises(ResourceNotFoundError):
            guard.grant("a-1", 999, GESTOR)

    def test_tipo_inativo(self, guard, temporada, atendentes):
        guard.toggle_type(ELOGIO)
        with pytest.raises(ValidationError):
            guard.grant("a-1", ELOGIO, GESTOR)

    def test_pontos_fora_da_faixa(self, guard, temporada, atendentes):
        grande = _tipo(guard, 600)
        with pytest.raises(ValidationError):
            guard.grant("a-1", grande, GESTOR)

    def test_justificativa_obrigatoria(self, services, guard, temporada, atendentes):
        services.settings_service.update_grant_limits({"require_justification": True}, GESTOR)
        with pytest.raises(ValidationError):
            guard.grant("a-1", ELOGIO, GESTOR)
        assert guard.grant("a-1", ELOGIO, GESTOR, justification="Cliente elogiou").grant_id

    def test_emite_xp_concedido_e_verifica_conquistas(self, services, guard, temporada, atendentes, catalog):
        catalog.only(("cem-xp", 10, "xp_100"))
        cem = _tipo(guard, 100)

        guard.grant("a-1", cem, GESTOR)

        history = services.event_bus.get_history(event_type=XpConcedido)
        assert history[-1]["data"]["atendente_id"] == "a-1"
        assert services.xp_ledger.total_xp("a-1") == 110


class TestQuotas:

    def test_limite_diario_de_pontos(self, guard, temporada, atendentes):
        grande = _tipo(guard, 490)
        vinte = _tipo(guard, 20)
        guard.grant("a-1", grande, GESTOR)
        guard.grant("a-2", grande, GESTOR)

        with pytest.raises(QuotaExceededError) as exc_info:
            guard.grant("a-3", ELOGIO, GESTOR)

        error = exc_info.value
        assert error.limit_name == "daily_points"
        assert error.limit == 1000
        assert error.current == 980
        assert error.requested == 50
        assert error.retry_after == 12 * 3600

        assert guard.grant("a-3", vinte, GESTOR).quota.points_remaining == 0

    def test_cota_e_por_concedente(self, guard, temporada, atendentes):
        grande = _tipo(guard, 500)
        guard.grant("a-1", grande, GESTOR)
        guard.grant("a-2", grande, GESTOR)
        assert guard.grant("a-3", grande, "outro@test.com").grant_id

    def test_limite_diario_de_concessoes(self, services, guard, temporada, atendentes):
        services.settings_service.update_grant_limits({"daily_grants_limit": 2}, GESTOR)
        guard.grant("a-1", ELOGIO, GESTOR)
        guard.grant("a-2", ELOGIO, GESTOR)
        with pytest.raises(QuotaExceededError) as exc_info:
            guard.grant("a-3", ELOGIO, GESTOR)
        assert exc_info.value.limit_name == "daily_grants"

    def test_limite_por_atendente_vale_para_todos_os_concedentes(self, services, guard, temporada, atendentes):
        services.settings_service.update_grant_limits({"max_grants_per_attendant_per_day": 1}, GESTOR)
        guard.grant("a-1", ELOGIO, GESTOR)
        with pytest.raises(QuotaExceededError) as exc_info:
            guard.grant("a-1", ELOGIO, "outro@test.com")
        assert exc_info.value.limit_name == "attendant_daily_grants"

    def test_cooldown(self, services, guard, temporada, atendentes, clock):
        services.settings_service.update_grant_limits({"cooldown_minutes": 30}, GESTOR)
        guard.grant("a-1", ELOGIO, GESTOR)

        clock.advance(minutes=10)
        with pytest.raises(QuotaExceededError) as exc_info:
            guard.grant("a-1", ELOGIO, GESTOR)
        assert exc_info.value.limit_name == "cooldown"
        assert exc_info.value.retry_after == 20 * 60

        assert guard.grant("a-2", ELOGIO, GESTOR).grant_id
        clock.advance(minutes=20)
        assert guard.grant("a-1", ELOGIO, GESTOR).grant_id

    def test_cota_renova_no_dia_seguinte(self, guard, temporada, atendentes, clock):
        grande = _tipo(guard, 500)
        guard.grant("a-1", grande, GESTOR)
        guard.grant("a-2", grande, GESTOR)

        clock.advance(days=1)

        assert guard.daily_usage(GESTOR).points_granted == 0
        assert guard.grant("a-3", grande, GESTOR).quota.points_granted == 500

    def test_concessoes_simultaneas_respeitam_o_limite(self, services, guard, temporada, atendentes):
        cem = _tipo(guard, 100)

        def attempt(attendant_id):
            try:
                return guard.grant(attendant_id, cem, GESTOR)
            except QuotaExceededError:
                return None

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(attempt, atendentes[:15]))

        assert sum(1 for r in results if r is not None) == 10
        usage = guard.daily_usage(GESTOR)
        assert usage.points_granted == 1000
        assert usage.grants_count == 10


class TestXpTypes:

    def test_tipos_padrao(self, guard):
        names = [t.name for t in guard.list_types()]
        assert "Elogio do Cliente" in names
        assert len(names) == 3

    def test_criar_atualizar_e_alternar(self, guard):
        created = guard.create_type({"name": "Mentoria", "points": 40, "category": "treinamento"}, GESTOR)
        updated = guard.update_type(created.id, {"points": 45})
        assert updated.points == 45
        assert updated.name == "Mentoria"

        toggled = guard.toggle_type(created.id)
        assert toggled.active is False
        assert created.id not in [t.id for t in guard.list_types(active_only=True)]

    @pytest.mark.parametrize("data", [
        {"points": 10},
        {"name": "Sem pontos"},
        {"name": "Negativo", "points": -5},
        {"name": "Categoria", "points": 10, "category": "inexistente"},
    ])
    def test_validacao(self, guard, data):
        with pytest.raises(ValidationError):
            guard.create_type(data, GESTOR)

    def test_tipo_inexistente(self, guard):
        with pytest.raises(ResourceNotFoundError):
            guard.update_type(999, {"points": 10})
        with pytest.raises(ResourceNotFoundError):
            guard.toggle_type(999)
