import click
from flask import current_app
from flask.cli import with_appcontext

from ..config.logging_config import db_logger
from ..constants import LIMITES_XP_AVULSO_PADRAO, MULTIPLICADOR_GLOBAL_PADRAO, PONTOS_POR_NOTA_PADRAO

_TIPOS = {
    'sqlite': {
        'ID': 'INTEGER PRIMARY KEY AUTOINCREMENT',
        'TS': 'TEXT',
        'BOOL': 'INTEGER',
        'TRUE': '1',
        'FALSE': '0',
        'REAL': 'REAL',
    },
    'postgres': {
        'ID': 'SERIAL PRIMARY KEY',
        'TS': 'TIMESTAMP',
        'BOOL': 'BOOLEAN',
        'TRUE': 'TRUE',
        'FALSE': 'FALSE',
        'REAL': 'DOUBLE PRECISION',
    },
}

_DDL = [
    """
    CREATE TABLE IF NOT EXISTS atendentes (
        id VARCHAR(64) PRIMARY KEY,
        nome TEXT NOT NULL,
        email TEXT,
        ativo {BOOL} NOT NULL DEFAULT {TRUE},
        criado_em {TS}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS avaliacoes (
        id {ID},
        atendente_id VARCHAR(64) NOT NULL,
        nota INTEGER NOT NULL CHECK (nota BETWEEN 1 AND 5),
        comentario TEXT,
        data {TS} NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_avaliacoes_atendente_data ON avaliacoes (atendente_id, data)",
    """
    CREATE TABLE IF NOT EXISTS temporadas (
        id {ID},
        nome TEXT NOT NULL,
        data_inicio {TS} NOT NULL,
        data_fim {TS} NOT NULL,
        ativa {BOOL} NOT NULL DEFAULT {FALSE},
        multiplicador_xp {REAL} NOT NULL DEFAULT 1.0 CHECK (multiplicador_xp >= 0),
        criado_em {TS},
        atualizado_em {TS}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS xp_eventos (
        id {ID},
        atendente_id VARCHAR(64) NOT NULL,
        pontos_base INTEGER NOT NULL,
        multiplicador {REAL} NOT NULL,
        pontos INTEGER NOT NULL,
        motivo TEXT NOT NULL,
        tipo VARCHAR(20) NOT NULL,
        data {TS} NOT NULL,
        temporada_id INTEGER,
        relacionado_id VARCHAR(64),
        criado_em {TS}
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_xp_eventos_atendente ON xp_eventos (atendente_id, temporada_id)",
    "CREATE INDEX IF NOT EXISTS idx_xp_eventos_temporada ON xp_eventos (temporada_id)",
    "CREATE INDEX IF NOT EXISTS idx_xp_eventos_relacionado ON xp_eventos (tipo, relacionado_id)",
    """
    CREATE TABLE IF NOT EXISTS conquistas_config (
        id VARCHAR(64) PRIMARY KEY,
        titulo TEXT NOT NULL,
        descricao TEXT,
        xp INTEGER NOT NULL DEFAULT 0,
        ativa {BOOL} NOT NULL DEFAULT {TRUE},
        criterio VARCHAR(64) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conquistas_desbloqueadas (
        id {ID},
        atendente_id VARCHAR(64) NOT NULL,
        conquista_id VARCHAR(64) NOT NULL,
        temporada_id INTEGER,
        escopo VARCHAR(40) NOT NULL,
        desbloqueada_em {TS} NOT NULL,
        xp_ganho INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_conquista_atendente_escopo
        ON conquistas_desbloqueadas (atendente_id, conquista_id, escopo)
    """,
    """
    CREATE TABLE IF NOT EXISTS gamificacao_config (
        id VARCHAR(16) PRIMARY KEY,
        nota_1 INTEGER NOT NULL,
        nota_2 INTEGER NOT NULL,
        nota_3 INTEGER NOT NULL,
        nota_4 INTEGER NOT NULL,
        nota_5 INTEGER NOT NULL,
        multiplicador_global {REAL} NOT NULL DEFAULT 1.0,
        atualizado_em {TS}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS xp_tipos (
        id {ID},
        nome TEXT NOT NULL,
        descricao TEXT,
        pontos INTEGER NOT NULL,
        categoria VARCHAR(40) NOT NULL DEFAULT 'outro',
        ativo {BOOL} NOT NULL DEFAULT {TRUE},
        criado_por TEXT,
        criado_em {TS}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS xp_concessoes (
        id {ID},
        atendente_id VARCHAR(64) NOT NULL,
        tipo_id INTEGER NOT NULL,
        pontos INTEGER NOT NULL,
        justificativa TEXT,
        concedido_por TEXT NOT NULL,
        concedido_em {TS} NOT NULL,
        xp_evento_id INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_xp_concessoes_concedente ON xp_concessoes (concedido_por, concedido_em)",
    "CREATE INDEX IF NOT EXISTS idx_xp_concessoes_atendente ON xp_concessoes (atendente_id, concedido_em)",
    """
    CREATE TABLE IF NOT EXISTS xp_avulso_config (
        id VARCHAR(16) PRIMARY KEY,
        limite_diario_pontos INTEGER NOT NULL,
        limite_diario_concessoes INTEGER NOT NULL,
        min_pontos_concessao INTEGER NOT NULL,
        max_pontos_concessao INTEGER NOT NULL,
        max_concessoes_atendente_dia INTEGER NOT NULL,
        cooldown_minutos INTEGER NOT NULL DEFAULT 0,
        exigir_justificativa {BOOL} NOT NULL DEFAULT {FALSE},
        atualizado_por TEXT,
        atualizado_em {TS}
    )
    """,
]

CONQUISTAS_PADRAO = [
    ('primeira-impressao', 'Primeira Impressão', 'Receba sua primeira avaliação', 10, 'evaluations_1'),
    ('ganhando-ritmo', 'Ganhando Ritmo', 'Receba 10 avaliações', 50, 'evaluations_10'),
    ('trinca-perfeita', 'Trinca Perfeita', 'Receba 3 avaliações de 5 estrelas consecutivas', 100, 'five_star_streak_3'),
    ('veterano', 'Veterano', 'Receba 50 avaliações', 150, 'evaluations_50'),
    ('centuriao', 'Centurião', 'Receba 100 avaliações', 300, 'evaluations_100'),
    ('satisfacao-garantida', 'Satisfação Garantida', 'Atingir 90% de avaliações positivas (4-5 estrelas)', 500, 'positive_ratio_90_10'),
    ('excelencia', 'Excelência Consistente', 'Manter nota média acima de 4.5 com 50+ avaliações', 750, 'high_average_45_50'),
    ('imparavel', 'Imparável', 'Receba 250 avaliações', 1000, 'evaluations_250'),
    ('mestre-qualidade', 'Mestre da Qualidade', 'Receba 50 avaliações de 5 estrelas', 1200, 'five_star_count_50'),
    ('perfeicao', 'Busca pela Perfeição', 'Mantenha nota média 5.0 com pelo menos 25 avaliações', 1500, 'perfect_average_25'),
    ('lenda', 'Lenda do Atendimento', 'Receba 500 avaliações', 2500, 'evaluations_500'),
    ('sequencia-ouro', 'Sequência de Ouro', 'Receba 10 avaliações de 5 estrelas consecutivas', 400, 'five_star_streak_10'),
    ('mil-xp', 'Mil de XP', 'Acumule 1000 pontos de experiência', 100, 'xp_1000'),
    ('campeao-temporada', 'Campeão da Temporada', 'Termine uma temporada em primeiro lugar no ranking', 1000, 'season_winner'),
]

TIPOS_XP_PADRAO = [
    ('Elogio do Cliente', 'Elogio espontâneo registrado pelo cliente', 50, 'reconhecimento'),
    ('Ajuda ao Time', 'Apoio relevante a colegas de equipe', 30, 'comportamento'),
    ('Treinamento Concluído', 'Conclusão de treinamento interno', 100, 'treinamento'),
]


def create_tables(tx):
    tipos = _TIPOS[tx.db_type]
    for statement in _DDL:
        tx.execute(statement.format(**tipos))


def seed_defaults(tx, seed_achievements=True):
    """Popula configurações singleton, tipos de XP e o catálogo de conquistas (idempotente)."""
    if tx.query_one("SELECT id FROM gamificacao_config WHERE id = %s", ('main',)) is None:
        tx.execute(
            """
            INSERT INTO gamificacao_config (id, nota_1, nota_2, nota_3, nota_4, nota_5, multiplicador_global)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            ('main', *[PONTOS_POR_NOTA_PADRAO[n] for n in range(1, 6)], MULTIPLICADOR_GLOBAL_PADRAO)
        )

    if tx.query_one("SELECT id FROM xp_avulso_config WHERE id = %s", ('main',)) is None:
        limites = LIMITES_XP_AVULSO_PADRAO
        tx.execute(
            """
            INSERT INTO xp_avulso_config (id, limite_diario_pontos, limite_diario_concessoes, min_pontos_concessao,
                max_pontos_concessao, max_concessoes_atendente_dia, cooldown_minutos, exigir_justificativa)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            ('main', limites['limite_diario_pontos'], limites['limite_diario_concessoes'],
             limites['min_pontos_concessao'], limites['max_pontos_concessao'],
             limites['max_concessoes_atendente_dia'], limites['cooldown_minutos'],
             limites['exigir_justificativa'])
        )

    if tx.scalar("SELECT COUNT(*) FROM xp_tipos", default=0) == 0:
        for nome, descricao, pontos, categoria in TIPOS_XP_PADRAO:
            tx.execute(
                "INSERT INTO xp_tipos (nome, descricao, pontos, categoria, ativo, criado_por) VALUES (%s, %s, %s, %s, %s, %s)",
                (nome, descricao, pontos, categoria, True, 'system')
            )

    if seed_achievements:
        for conquista_id, titulo, descricao, xp, criterio in CONQUISTAS_PADRAO:
            if tx.query_one("SELECT id FROM conquistas_config WHERE id = %s", (conquista_id,)) is None:
                tx.execute(
                    "INSERT INTO conquistas_config (id, titulo, descricao, xp, ativa, criterio) VALUES (%s, %s, %s, %s, %s, %s)",
                    (conquista_id, titulo, descricao, xp, True, criterio)
                )


def init_db(database, seed_achievements=True):
    """Inicializa o schema do banco de dados (SQLite ou PostgreSQL)."""
    if database.db_type == 'sqlite':
        # WAL permite leituras concorrentes durante as transações de escrita
        with database.read() as tx:
            tx.query("PRAGMA journal_mode=WAL")
    with database.transaction() as tx:
        create_tables(tx)
        seed_defaults(tx, seed_achievements=seed_achievements)
    db_logger.info(f"Schema de gamificação inicializado ({database.db_type})")


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Cria as tabelas do banco de dados via linha de comando."""
    from ..core.container import get_container

    init_db(get_container().db, seed_achievements=current_app.config.get('SEED_ACHIEVEMENTS', True))
    click.echo('Inicialização do banco de dados concluída.')


def init_app(app):
    """Registra o comando init-db na aplicação."""
    app.cli.add_command(init_db_command)
