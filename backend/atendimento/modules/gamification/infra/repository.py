"""
Repositório SQL da gamificação.

Funções sem estado que recebem a transação (`tx`) aberta pelo serviço chamador,
para que várias escritas possam compor uma única transação. Convertem linhas
em tipos de valor imutáveis.
"""

from __future__ import annotations

from datetime import datetime

from ....common.validation import parse_datetime_safe
from ....database import format_ts
from ..domain.models import (
    AchievementConfig,
    Evaluation,
    GamificationSettings,
    GrantLimits,
    Season,
    UnlockedAchievement,
    XpEvent,
    XpEventType,
    XpType,
    scope_key,
)

# ──────────────────────────────────────────────
# Mapeamento de linhas
# ──────────────────────────────────────────────


def _season(row) -> Season | None:
    if not row:
        return None
    return Season(
        id=row['id'],
        name=row['nome'],
        start_date=parse_datetime_safe(row['data_inicio']),
        end_date=parse_datetime_safe(row['data_fim']),
        active=bool(row['ativa']),
        xp_multiplier=float(row['multiplicador_xp']),
    )


def _xp_event(row) -> XpEvent | None:
    if not row:
        return None
    return XpEvent(
        id=row['id'],
        attendant_id=row['atendente_id'],
        base_points=int(row['pontos_base']),
        multiplier=float(row['multiplicador']),
        points=int(row['pontos']),
        reason=row['motivo'],
        type=XpEventType(row['tipo']),
        date=parse_datetime_safe(row['data']),
        season_id=row['temporada_id'],
        related_id=row['relacionado_id'],
    )


def _achievement(row) -> AchievementConfig | None:
    if not row:
        return None
    return AchievementConfig(
        id=row['id'],
        title=row['titulo'],
        description=row['descricao'] or '',
        xp=int(row['xp']),
        active=bool(row['ativa']),
        criteria_key=row['criterio'],
    )


def _unlock(row) -> UnlockedAchievement | None:
    if not row:
        return None
    return UnlockedAchievement(
        id=row['id'],
        attendant_id=row['atendente_id'],
        achievement_id=row['conquista_id'],
        season_id=row['temporada_id'],
        unlocked_at=parse_datetime_safe(row['desbloqueada_em']),
        xp_gained=int(row['xp_ganho']),
    )


def _xp_type(row) -> XpType | None:
    if not row:
        return None
    return XpType(
        id=row['id'],
        name=row['nome'],
        description=row['descricao'] or '',
        points=int(row['pontos']),
        category=row['categoria'],
        active=bool(row['ativo']),
    )


# ──────────────────────────────────────────────
# Temporadas
# ──────────────────────────────────────────────

_SEASON_COLUMNS = "id, nome, data_inicio, data_fim, ativa, multiplicador_xp"


def list_seasons(tx, active_only=False) -> list[Season]:
    sql = f"SELECT {_SEASON_COLUMNS} FROM temporadas"
    args = ()
    if active_only:
        sql += " WHERE ativa = %s"
        args = (True,)
    sql += " ORDER BY data_inicio DESC, id DESC"
    return [_season(row) for row in tx.query(sql, args)]


def get_season(tx, season_id) -> Season | None:
    return _season(tx.query_one(f"SELECT {_SEASON_COLUMNS} FROM temporadas WHERE id = %s", (season_id,)))


def active_seasons_at(tx, moment: datetime) -> list[Season]:
    ts = format_ts(moment)
    rows = tx.query(
        f"SELECT {_SEASON_COLUMNS} FROM temporadas WHERE ativa = %s AND data_inicio <= %s AND data_fim >= %s",
        (True, ts, ts)
    )
    return [_season(row) for row in rows]


def insert_season(tx, season: Season, now: datetime) -> int:
    return tx.insert(
        """
        INSERT INTO temporadas (nome, data_inicio, data_fim, ativa, multiplicador_xp, criado_em, atualizado_em)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (season.name, format_ts(season.start_date), format_ts(season.end_date), season.active,
         season.xp_multiplier, format_ts(now), format_ts(now))
    )


def update_season(tx, season: Season, now: datetime) -> None:
    tx.execute(
        """
        UPDATE temporadas
        SET nome = %s, data_inicio = %s, data_fim = %s, ativa = %s, multiplicador_xp = %s, atualizado_em = %s
        WHERE id = %s
        """,
        (season.name, format_ts(season.start_date), format_ts(season.end_date), season.active,
         season.xp_multiplier, format_ts(now), season.id)
    )


def set_season_active(tx, season_id, active: bool, now: datetime) -> None:
    tx.execute(
        "UPDATE temporadas SET ativa = %s, atualizado_em = %s WHERE id = %s",
        (active, format_ts(now), season_id)
    )


def count_season_events(tx, season_id) -> int:
    return int(tx.scalar("SELECT COUNT(*) FROM xp_eventos WHERE temporada_id = %s", (season_id,), default=0))


def count_season_unlocks(tx, season_id) -> int:
    return int(tx.scalar(
        "SELECT COUNT(*) FROM conquistas_desbloqueadas WHERE escopo = %s", (scope_key(season_id),), default=0
    ))


def delete_season_cascade(tx, season_id) -> dict:
    """Remove a temporada, seus eventos de XP e as conquistas do escopo da temporada."""
    scoped = tx.query("SELECT id FROM conquistas_desbloqueadas WHERE escopo = %s", (scope_key(season_id),))
    # O evento pareado pode ter sido marcado com outra temporada (a ativa no desbloqueio)
    paired = sum(delete_achievement_event(tx, row['id']) for row in scoped)
    events = paired + tx.execute("DELETE FROM xp_eventos WHERE temporada_id = %s", (season_id,))
    unlocks = tx.execute("DELETE FROM conquistas_desbloqueadas WHERE escopo = %s", (scope_key(season_id),))
    tx.execute("DELETE FROM temporadas WHERE id = %s", (season_id,))
    return {'xp_events_deleted': events, 'unlocks_deleted': unlocks}


# ──────────────────────────────────────────────
# Configuração
# ──────────────────────────────────────────────


def get_settings(tx) -> GamificationSettings:
    row = tx.query_one("SELECT * FROM gamificacao_config WHERE id = %s", ('main',))
    if not row:
        return GamificationSettings()
    return GamificationSettings(
        rating_points=tuple(int(row[f'nota_{n}']) for n in range(1, 6)),
        global_multiplier=float(row['multiplicador_global']),
    )


def save_settings(tx, settings: GamificationSettings, now: datetime) -> None:
    updated = tx.execute(
        """
        UPDATE gamificacao_config
        SET nota_1 = %s, nota_2 = %s, nota_3 = %s, nota_4 = %s, nota_5 = %s, multiplicador_global = %s, atualizado_em = %s
        WHERE id = %s
        """,
        (*settings.rating_points, settings.global_multiplier, format_ts(now), 'main')
    )
    if not updated:
        tx.execute(
            """
            INSERT INTO gamificacao_config (id, nota_1, nota_2, nota_3, nota_4, nota_5, multiplicador_global, atualizado_em)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            ('main', *settings.rating_points, settings.global_multiplier, format_ts(now))
        )


def get_grant_limits(tx) -> GrantLimits:
    row = tx.query_one("SELECT * FROM xp_avulso_config WHERE id = %s", ('main',))
    if not row:
        return GrantLimits()
    return GrantLimits(
        daily_points_limit=int(row['limite_diario_pontos']),
        daily_grants_limit=int(row['limite_diario_concessoes']),
        min_points_per_grant=int(row['min_pontos_concessao']),
        max_points_per_grant=int(row['max_pontos_concessao']),
        max_grants_per_attendant_per_day=int(row['max_concessoes_atendente_dia']),
        cooldown_minutes=int(row['cooldown_minutos']),
        require_justification=bool(row['exigir_justificativa']),
    )


def save_grant_limits(tx, limits: GrantLimits, updated_by: str, now: datetime) -> None:
    values = (
        limits.daily_points_limit, limits.daily_grants_limit, limits.min_points_per_grant,
        limits.max_points_per_grant, limits.max_grants_per_attendant_per_day, limits.cooldown_minutes,
        limits.require_justification, updated_by, format_ts(now),
    )
    updated = tx.execute(
        """
        UPDATE xp_avulso_config
        SET limite_diario_pontos = %s, limite_diario_concessoes = %s, min_pontos_concessao = %s,
            max_pontos_concessao = %s, max_concessoes_atendente_dia = %s, cooldown_minutos = %s,
            exigir_justificativa = %s, atualizado_por = %s, atualizado_em = %s
        WHERE id = %s
        """,
        (*values, 'main')
    )
    if not updated:
        tx.execute(
            """
            INSERT INTO xp_avulso_config (limite_diario_pontos, limite_diario_concessoes, min_pontos_concessao,
                max_pontos_concessao, max_concessoes_atendente_dia, cooldown_minutos, exigir_justificativa,
                atualizado_por, atualizado_em, id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (*values, 'main')
        )


# ──────────────────────────────────────────────
# Atendentes e avaliações (dados do colaborador externo)
# ──────────────────────────────────────────────


def attendant_exists(tx, attendant_id) -> bool:
    return tx.query_one("SELECT id FROM atendentes WHERE id = %s", (attendant_id,)) is not None


def insert_attendant(tx, attendant_id, nome, email=None, ativo=True, now: datetime | None = None) -> None:
    tx.execute(
        "INSERT INTO atendentes (id, nome, email, ativo, criado_em) VALUES (%s, %s, %s, %s, %s)",
        (attendant_id, nome, email, ativo, format_ts(now or datetime.now()))
    )


def list_active_attendant_ids(tx) -> list[str]:
    rows = tx.query("SELECT id FROM atendentes WHERE ativo = %s ORDER BY id", (True,))
    return [row['id'] for row in rows]


def attendants_active_in_season(tx, season: Season) -> list[str]:
    """Atendentes com avaliações na janela da temporada ou eventos de XP marcados com ela."""
    rows = tx.query(
        """
        SELECT atendente_id FROM avaliacoes WHERE data >= %s AND data <= %s
        UNION
        SELECT atendente_id FROM xp_eventos WHERE temporada_id = %s
        """,
        (format_ts(season.start_date), format_ts(season.end_date), season.id)
    )
    return sorted({row['atendente_id'] for row in rows})


def insert_evaluation(tx, attendant_id, rating: int, date: datetime, comment=None) -> int:
    return tx.insert(
        "INSERT INTO avaliacoes (atendente_id, nota, comentario, data) VALUES (%s, %s, %s, %s)",
        (attendant_id, rating, comment, format_ts(date))
    )


def list_evaluations(tx, attendant_id, start: datetime | None = None, end: datetime | None = None) -> list[Evaluation]:
    sql = "SELECT id, atendente_id, nota, comentario, data FROM avaliacoes WHERE atendente_id = %s"
    args = [attendant_id]
    if start is not None:
        sql += " AND data >= %s"
        args.append(format_ts(start))
    if end is not None:
        sql += " AND data <= %s"
        args.append(format_ts(end))
    sql += " ORDER BY data ASC, id ASC"
    return [
        Evaluation(
            id=row['id'],
            attendant_id=row['atendente_id'],
            rating=int(row['nota']),
            date=parse_datetime_safe(row['data']),
            comment=row['comentario'],
        )
        for row in tx.query(sql, args)
    ]


# ──────────────────────────────────────────────
# Eventos de XP (append-only)
# ──────────────────────────────────────────────

_EVENT_COLUMNS = "id, atendente_id, pontos_base, multiplicador, pontos, motivo, tipo, data, temporada_id, relacionado_id"


def insert_xp_event(tx, event: XpEvent, now: datetime) -> XpEvent:
    event_id = tx.insert(
        """
        INSERT INTO xp_eventos (atendente_id, pontos_base, multiplicador, pontos, motivo, tipo, data,
            temporada_id, relacionado_id, criado_em)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (event.attendant_id, event.base_points, event.multiplier, event.points, event.reason,
         event.type.value, format_ts(event.date), event.season_id,
         None if event.related_id is None else str(event.related_id), format_ts(now))
    )
    return XpEvent(
        id=event_id,
        attendant_id=event.attendant_id,
        base_points=event.base_points,
        multiplier=event.multiplier,
        points=event.points,
        reason=event.reason,
        type=event.type,
        date=event.date,
        season_id=event.season_id,
        related_id=None if event.related_id is None else str(event.related_id),
    )


def sum_points(tx, attendant_id, season_id=None) -> int:
    sql = "SELECT COALESCE(SUM(pontos), 0) FROM xp_eventos WHERE atendente_id = %s"
    args = [attendant_id]
    if season_id is not None:
        sql += " AND temporada_id = %s"
        args.append(season_id)
    return int(tx.scalar(sql, args, default=0))


def list_xp_events(tx, attendant_id, season_id=None, limit=None) -> list[XpEvent]:
    sql = f"SELECT {_EVENT_COLUMNS} FROM xp_eventos WHERE atendente_id = %s"
    args = [attendant_id]
    if season_id is not None:
        sql += " AND temporada_id = %s"
        args.append(season_id)
    sql += " ORDER BY data DESC, id DESC"
    if limit:
        sql += " LIMIT %s"
        args.append(int(limit))
    return [_xp_event(row) for row in tx.query(sql, args)]


def season_totals(tx, season_id) -> list[tuple[str, int, datetime | None]]:
    rows = tx.query(
        """
        SELECT atendente_id, SUM(pontos) AS total, MIN(data) AS primeiro_evento
        FROM xp_eventos
        WHERE temporada_id = %s
        GROUP BY atendente_id
        """,
        (season_id,)
    )
    return [(row['atendente_id'], int(row['total']), parse_datetime_safe(row['primeiro_evento'])) for row in rows]


def delete_achievement_event(tx, unlock_id) -> int:
    return tx.execute(
        "DELETE FROM xp_eventos WHERE tipo = %s AND relacionado_id = %s",
        (XpEventType.ACHIEVEMENT.value, str(unlock_id))
    )


# ──────────────────────────────────────────────
# Conquistas
# ──────────────────────────────────────────────


def list_achievements(tx, active_only=True) -> list[AchievementConfig]:
    sql = "SELECT id, titulo, descricao, xp, ativa, criterio FROM conquistas_config"
    args = ()
    if active_only:
        sql += " WHERE ativa = %s"
        args = (True,)
    sql += " ORDER BY xp ASC, id ASC"
    return [_achievement(row) for row in tx.query(sql, args)]


def get_achievement(tx, achievement_id) -> AchievementConfig | None:
    return _achievement(tx.query_one(
        "SELECT id, titulo, descricao, xp, ativa, criterio FROM conquistas_config WHERE id = %s",
        (achievement_id,)
    ))


def insert_achievement(tx, achievement: AchievementConfig) -> None:
    tx.execute(
        "INSERT INTO conquistas_config (id, titulo, descricao, xp, ativa, criterio) VALUES (%s, %s, %s, %s, %s, %s)",
        (achievement.id, achievement.title, achievement.description, achievement.xp, achievement.active,
         achievement.criteria_key)
    )


def update_achievement(tx, achievement: AchievementConfig) -> None:
    tx.execute(
        "UPDATE conquistas_config SET titulo = %s, descricao = %s, xp = %s, ativa = %s, criterio = %s WHERE id = %s",
        (achievement.title, achievement.description, achievement.xp, achievement.active, achievement.criteria_key,
         achievement.id)
    )


_UNLOCK_COLUMNS = "id, atendente_id, conquista_id, temporada_id, desbloqueada_em, xp_ganho"


def get_unlock(tx, attendant_id, achievement_id, season_id=None) -> UnlockedAchievement | None:
    return _unlock(tx.query_one(
        f"SELECT {_UNLOCK_COLUMNS} FROM conquistas_desbloqueadas WHERE atendente_id = %s AND conquista_id = %s AND escopo = %s",
        (attendant_id, achievement_id, scope_key(season_id))
    ))


def list_unlocks(tx, attendant_id, season_id=None, any_scope=True) -> list[UnlockedAchievement]:
    sql = f"SELECT {_UNLOCK_COLUMNS} FROM conquistas_desbloqueadas WHERE atendente_id = %s"
    args = [attendant_id]
    if not any_scope:
        sql += " AND escopo = %s"
        args.append(scope_key(season_id))
    sql += " ORDER BY desbloqueada_em ASC, id ASC"
    return [_unlock(row) for row in tx.query(sql, args)]


def insert_unlock(tx, attendant_id, achievement_id, season_id, unlocked_at: datetime, xp_gained: int) -> int:
    return tx.insert(
        """
        INSERT INTO conquistas_desbloqueadas (atendente_id, conquista_id, temporada_id, escopo, desbloqueada_em, xp_ganho)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (attendant_id, achievement_id, season_id, scope_key(season_id), format_ts(unlocked_at), xp_gained)
    )


def delete_unlock(tx, unlock_id) -> int:
    return tx.execute("DELETE FROM conquistas_desbloqueadas WHERE id = %s", (unlock_id,))


# ──────────────────────────────────────────────
# Tipos de XP avulso e concessões
# ──────────────────────────────────────────────

_XP_TYPE_COLUMNS = "id, nome, descricao, pontos, categoria, ativo"


def list_xp_types(tx, active_only=False) -> list[XpType]:
    sql = f"SELECT {_XP_TYPE_COLUMNS} FROM xp_tipos"
    args = ()
    if active_only:
        sql += " WHERE ativo = %s"
        args = (True,)
    sql += " ORDER BY nome ASC"
    return [_xp_type(row) for row in tx.query(sql, args)]


def get_xp_type(tx, type_id) -> XpType | None:
    return _xp_type(tx.query_one(f"SELECT {_XP_TYPE_COLUMNS} FROM xp_tipos WHERE id = %s", (type_id,)))


def insert_xp_type(tx, xp_type: XpType, created_by: str, now: datetime) -> int:
    return tx.insert(
        "INSERT INTO xp_tipos (nome, descricao, pontos, categoria, ativo, criado_por, criado_em) VALUES (%s, %s, %s, %s, %s, %s, %s)",
        (xp_type.name, xp_type.description, xp_type.points, xp_type.category, xp_type.active, created_by, format_ts(now))
    )


def update_xp_type(tx, xp_type: XpType) -> None:
    tx.execute(
        "UPDATE xp_tipos SET nome = %s, descricao = %s, pontos = %s, categoria = %s, ativo = %s WHERE id = %s",
        (xp_type.name, xp_type.description, xp_type.points, xp_type.category, xp_type.active, xp_type.id)
    )


def granter_usage(tx, granter_id, start: datetime, end: datetime) -> tuple[int, int]:
    row = tx.query_one(
        """
        SELECT COALESCE(SUM(pontos), 0) AS pontos, COUNT(*) AS total
        FROM xp_concessoes
        WHERE concedido_por = %s AND concedido_em >= %s AND concedido_em < %s
        """,
        (granter_id, format_ts(start), format_ts(end))
    )
    return int(row['pontos']), int(row['total'])


def attendant_grants_count(tx, attendant_id, start: datetime, end: datetime) -> int:
    row = tx.query_one(
        """
        SELECT COUNT(*) AS total
        FROM xp_concessoes
        WHERE atendente_id = %s AND concedido_em >= %s AND concedido_em < %s
        """,
        (attendant_id, format_ts(start), format_ts(end))
    )
    return int(row['total'])


def last_grant_to_attendant(tx, attendant_id) -> datetime | None:
    return parse_datetime_safe(tx.scalar(
        "SELECT MAX(concedido_em) FROM xp_concessoes WHERE atendente_id = %s",
        (attendant_id,)
    ))


def insert_grant(tx, attendant_id, type_id, points, justification, granted_by, granted_at: datetime) -> int:
    return tx.insert(
        """
        INSERT INTO xp_concessoes (atendente_id, tipo_id, pontos, justificativa, concedido_por, concedido_em)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (attendant_id, type_id, points, justification, granted_by, format_ts(granted_at))
    )


def link_grant_event(tx, grant_id, event_id) -> None:
    tx.execute("UPDATE xp_concessoes SET xp_evento_id = %s WHERE id = %s", (event_id, grant_id))


def list_grants(tx, granted_by=None, attendant_id=None, limit=50) -> list[dict]:
    sql = """
        SELECT c.id, c.atendente_id, c.tipo_id, t.nome AS tipo_nome, c.pontos, c.justificativa,
               c.concedido_por, c.concedido_em, c.xp_evento_id
        FROM xp_concessoes c
        LEFT JOIN xp_tipos t ON t.id = c.tipo_id
        WHERE 1 = 1
    """
    args = []
    if granted_by:
        sql += " AND c.concedido_por = %s"
        args.append(granted_by)
    if attendant_id:
        sql += " AND c.atendente_id = %s"
        args.append(attendant_id)
    sql += " ORDER BY c.concedido_em DESC, c.id DESC LIMIT %s"
    args.append(int(limit))
    grants = []
    for row in tx.query(sql, args):
        granted_at = parse_datetime_safe(row['concedido_em'])
        grants.append({
            'id': row['id'],
            'attendant_id': row['atendente_id'],
            'xp_type_id': row['tipo_id'],
            'xp_type_name': row['tipo_nome'],
            'points': int(row['pontos']),
            'justification': row['justificativa'],
            'granted_by': row['concedido_por'],
            'granted_at': granted_at.isoformat() if granted_at else None,
            'xp_event_id': row['xp_evento_id'],
        })
    return grants
