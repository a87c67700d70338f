"""
Guarda de concessões de XP avulso.

Toda a verificação de cotas e a gravação (concessão + evento MANUAL_GRANT)
acontecem em uma única transação serializada por concedente, então duas
concessões simultâneas do mesmo gestor nunca ultrapassam o limite diário
juntas. As cotas são derivadas da tabela de concessões, nunca de contadores.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from ....common.exceptions import ConflictError, QuotaExceededError, ResourceNotFoundError, ValidationError
from ....common.validation import sanitize_string, validate_boolean, validate_integer
from ....config.logging_config import gamification_logger
from ....constants import CATEGORIAS_XP_AVULSO
from ....core.events import XpConcedido
from ..domain.models import GrantQuotaState, XpEvent, XpEventType, XpType
from ..infra import repository


def day_window(moment: datetime) -> tuple[datetime, datetime]:
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


@dataclass(frozen=True)
class GrantResult:
    grant_id: int
    xp_type: XpType
    xp_event: XpEvent
    quota: GrantQuotaState

    def to_dict(self) -> dict:
        return {
            'grant_id': self.grant_id,
            'xp_type': self.xp_type.to_dict(),
            'xp_event': self.xp_event.to_dict(),
            'quota': self.quota.to_dict(),
        }


class GrantGuard:

    def __init__(self, db, seasons, ledger, settings, clock=datetime.now, event_bus=None):
        self.db = db
        self.seasons = seasons
        self.ledger = ledger
        self.settings = settings
        self.clock = clock
        self.event_bus = event_bus

    # ──────────────────────────────────────────
    # Concessão
    # ──────────────────────────────────────────

    def grant(self, attendant_id, xp_type_id, granter_id, justification=None) -> GrantResult:
        """
        Concede XP avulso a um atendente.

        Ordem das verificações: temporada ativa, tipo de XP, faixa de pontos,
        justificativa, cotas diárias do concedente, cota diária do atendente
        e cooldown por atendente.

        Raises:
            ConflictError: nenhuma temporada ativa
            ResourceNotFoundError: atendente ou tipo de XP inexistente
            ValidationError: tipo inativo, pontos fora da faixa, justificativa ausente
            QuotaExceededError: algum limite excedido (com limit/current/retry_after)
        """
        if not granter_id:
            raise ValidationError("Concedente não identificado")
        xp_type_id = validate_integer(xp_type_id, min_value=1)
        if justification is not None:
            justification = sanitize_string(str(justification), max_length=500, allow_empty=True) or None

        with self.db.transaction() as tx:
            tx.advisory_lock(f"xp-grant:granter:{granter_id}")
            tx.advisory_lock(f"xp-grant:attendant:{attendant_id}")
            now = self.clock()

            if self.seasons.resolve_active(now, tx=tx) is None:
                raise ConflictError("Nenhuma temporada ativa para conceder XP")

            if not repository.attendant_exists(tx, attendant_id):
                raise ResourceNotFoundError('Atendente', attendant_id)

            xp_type = repository.get_xp_type(tx, xp_type_id)
            if xp_type is None:
                raise ResourceNotFoundError('Tipo de XP', xp_type_id)
            if not xp_type.active:
                raise ValidationError(f"Tipo de XP '{xp_type.name}' está inativo", {'xp_type_id': xp_type_id})

            limits = self.settings.get_grant_limits(tx=tx)
            points = xp_type.points
            if points < limits.min_points_per_grant or points > limits.max_points_per_grant:
                raise ValidationError(
                    f"Pontos por concessão devem estar entre {limits.min_points_per_grant} e {limits.max_points_per_grant}",
                    {'points': points, 'min': limits.min_points_per_grant, 'max': limits.max_points_per_grant}
                )
            if limits.require_justification and not justification:
                raise ValidationError("Justificativa é obrigatória para concessões de XP", {'field': 'justification'})

            day_start, day_end = day_window(now)
            retry_tomorrow = math.ceil((day_end - now).total_seconds())

            points_today, grants_today = repository.granter_usage(tx, granter_id, day_start, day_end)
            if points_today + points > limits.daily_points_limit:
                raise QuotaExceededError('daily_points', limits.daily_points_limit, points_today, points, retry_tomorrow)
            if grants_today + 1 > limits.daily_grants_limit:
                raise QuotaExceededError('daily_grants', limits.daily_grants_limit, grants_today, 1, retry_tomorrow)

            attendant_today = repository.attendant_grants_count(tx, attendant_id, day_start, day_end)
            if attendant_today + 1 > limits.max_grants_per_attendant_per_day:
                raise QuotaExceededError(
                    'attendant_daily_grants', limits.max_grants_per_attendant_per_day, attendant_today, 1, retry_tomorrow
                )

            if limits.cooldown_minutes > 0:
                last = repository.last_grant_to_attendant(tx, attendant_id)
                if last is not None:
                    available_at = last + timedelta(minutes=limits.cooldown_minutes)
                    if now < available_at:
                        raise QuotaExceededError(
                            'cooldown', limits.cooldown_minutes,
                            math.floor((now - last).total_seconds() / 60), None,
                            math.ceil((available_at - now).total_seconds())
                        )

            grant_id = repository.insert_grant(tx, attendant_id, xp_type.id, points, justification, granter_id, now)
            event = self.ledger.append(
                attendant_id, points, XpEventType.MANUAL_GRANT, f"XP avulso: {xp_type.name}",
                date=now, related_id=grant_id, tx=tx
            )
            repository.link_grant_event(tx, grant_id, event.id)

        quota = GrantQuotaState(
            granter_id=granter_id,
            day=day_start.date().isoformat(),
            points_granted=points_today + points,
            grants_count=grants_today + 1,
            limits=limits,
        )
        gamification_logger.info(
            f"XP avulso concedido: {granter_id} → {attendant_id}, tipo {xp_type.id} ({points} base, {event.points} efetivos)"
        )
        if self.event_bus is not None:
            self.event_bus.emit(XpConcedido(
                atendente_id=attendant_id, concessao_id=grant_id, pontos=event.points, concedido_por=granter_id
            ))
        return GrantResult(grant_id=grant_id, xp_type=xp_type, xp_event=event, quota=quota)

    def daily_usage(self, granter_id, day: datetime | None = None) -> GrantQuotaState:
        moment = day or self.clock()
        day_start, day_end = day_window(moment)
        with self.db.read() as tx:
            points, count = repository.granter_usage(tx, granter_id, day_start, day_end)
            limits = self.settings.get_grant_limits(tx=tx)
        return GrantQuotaState(
            granter_id=granter_id,
            day=day_start.date().isoformat(),
            points_granted=points,
            grants_count=count,
            limits=limits,
        )

    def history(self, granted_by=None, attendant_id=None, limit=50) -> list[dict]:
        limit = validate_integer(limit, min_value=1, max_value=500)
        with self.db.read() as tx:
            return repository.list_grants(tx, granted_by=granted_by, attendant_id=attendant_id, limit=limit)

    # ──────────────────────────────────────────
    # Tipos de XP
    # ──────────────────────────────────────────

    def list_types(self, active_only=False) -> list[XpType]:
        with self.db.read() as tx:
            return repository.list_xp_types(tx, active_only=active_only)

    def _parse_type(self, data: dict, base: XpType | None = None) -> XpType:
        name = data.get('name')
        if name is not None:
            name = sanitize_string(str(name), max_length=100, min_length=1)
        elif base is None:
            raise ValidationError("Nome do tipo de XP é obrigatório", {'field': 'name'})

        points = data.get('points')
        if points is not None:
            points = validate_integer(points, min_value=1)
        elif base is None:
            raise ValidationError("Pontos do tipo de XP são obrigatórios", {'field': 'points'})

        category = data.get('category')
        if category is not None and category not in CATEGORIAS_XP_AVULSO:
            raise ValidationError(
                f"Categoria inválida. Use uma de: {', '.join(CATEGORIAS_XP_AVULSO)}", {'field': 'category'}
            )

        description = data.get('description')
        if description is not None:
            description = sanitize_string(str(description), max_length=500, allow_empty=True)

        return XpType(
            id=base.id if base else None,
            name=name if name is not None else base.name,
            description=description if description is not None else (base.description if base else ''),
            points=points if points is not None else base.points,
            category=category or (base.category if base else 'outro'),
            active=validate_boolean(data['active']) if 'active' in data else (base.active if base else True),
        )

    def create_type(self, data: dict, created_by: str) -> XpType:
        xp_type = self._parse_type(data)
        with self.db.transaction() as tx:
            type_id = repository.insert_xp_type(tx, xp_type, created_by, self.clock())
        gamification_logger.info(f"Tipo de XP criado por {created_by}: {type_id} '{xp_type.name}'")
        return replace(xp_type, id=type_id)

    def update_type(self, type_id, data: dict) -> XpType:
        with self.db.transaction() as tx:
            current = repository.get_xp_type(tx, type_id)
            if current is None:
                raise ResourceNotFoundError('Tipo de XP', type_id)
            xp_type = self._parse_type(data, base=current)
            repository.update_xp_type(tx, xp_type)
        gamification_logger.info(f"Tipo de XP atualizado: {type_id}")
        return xp_type

    def toggle_type(self, type_id) -> XpType:
        with self.db.transaction() as tx:
            current = repository.get_xp_type(tx, type_id)
            if current is None:
                raise ResourceNotFoundError('Tipo de XP', type_id)
            toggled = replace(current, active=not current.active)
            repository.update_xp_type(tx, toggled)
        gamification_logger.info(f"Tipo de XP {type_id} {'ativado' if toggled.active else 'desativado'}")
        return toggled
