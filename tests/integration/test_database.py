"""
Testes de integração da camada de banco (SQLite).
"""

import pytest

from backend.atendimento.database import Database
from backend.atendimento.database.schema import init_db


@pytest.fixture
def database(tmp_path):
    # Timeout curto: um lock esquecido falha em 1 s em vez de 30 s
    return Database(sqlite_path=str(tmp_path / "banco.db"), busy_timeout=1.0)


class TestInitDb:

    def test_escrita_logo_apos_inicializar(self, database):
        init_db(database)

        with database.transaction() as tx:
            tx.execute("INSERT INTO atendentes (id, nome, ativo, criado_em) VALUES (%s, %s, %s, %s)",
                       ("a-1", "Ana", True, "2024-03-15 12:00:00"))

        assert database.query("SELECT id FROM atendentes", one=True) == {"id": "a-1"}

    def test_modo_wal_e_idempotente(self, database):
        init_db(database)
        init_db(database)

        assert database.query("PRAGMA journal_mode", one=True)["journal_mode"] == "wal"
        with database.read() as tx:
            assert tx.scalar("SELECT COUNT(*) FROM xp_tipos") == 3


class TestRelease:

    def test_leitura_sem_fetch_nao_prende_o_lock(self, database):
        init_db(database)

        with database.read() as tx:
            tx.execute("SELECT * FROM conquistas_config")

        with database.transaction() as tx:
            tx.execute("UPDATE conquistas_config SET xp = xp + 1")

    def test_transacao_interrompida_libera_o_banco(self, database):
        init_db(database)

        with pytest.raises(RuntimeError):
            with database.transaction() as tx:
                tx.execute("SELECT * FROM conquistas_config")
                raise RuntimeError("falha no meio da transação")

        with database.transaction() as tx:
            assert tx.scalar("SELECT COUNT(*) FROM conquistas_config") > 0
