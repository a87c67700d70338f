"""
Acesso ao banco de dados (SQLite local ou PostgreSQL com pool).

Cada componente recebe uma instância de `Database` explicitamente; não há
cliente global. Todas as escritas acontecem dentro de `transaction()`, que no
SQLite abre `BEGIN IMMEDIATE` (lock de escrita) e no PostgreSQL usa uma conexão
do `ThreadedConnectionPool`.
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from threading import Lock

import psycopg2
from psycopg2 import errorcodes, pool
from psycopg2.extras import DictCursor

from ..common.exceptions import DatabaseError
from ..config.logging_config import db_logger

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def format_ts(value: datetime) -> str:
    """Serializa datetime no formato usado nas colunas de data (ordenável como texto)."""
    return value.strftime(TIMESTAMP_FORMAT)


def is_unique_violation(exc: BaseException) -> bool:
    if isinstance(exc, sqlite3.IntegrityError):
        return 'UNIQUE' in str(exc).upper()
    if isinstance(exc, psycopg2.IntegrityError):
        return getattr(exc, 'pgcode', None) == errorcodes.UNIQUE_VIOLATION
    return False


class Transaction:
    """Cursor de uma transação aberta. Traduz placeholders `%s` para o SQLite."""

    def __init__(self, conn, cursor, db_type):
        self.conn = conn
        self.cursor = cursor
        self.db_type = db_type

    def _sql(self, query):
        if self.db_type == 'sqlite':
            return query.replace('%s', '?')
        return query

    def execute(self, query, args=()):
        self.cursor.execute(self._sql(query), tuple(args))
        return self.cursor.rowcount

    def query(self, query, args=()):
        self.cursor.execute(self._sql(query), tuple(args))
        return [dict(row) for row in self.cursor.fetchall()]

    def query_one(self, query, args=()):
        self.cursor.execute(self._sql(query), tuple(args))
        row = self.cursor.fetchone()
        return dict(row) if row else None

    def scalar(self, query, args=(), default=None):
        self.cursor.execute(self._sql(query), tuple(args))
        row = self.cursor.fetchone()
        if row is None or row[0] is None:
            return default
        return row[0]

    def insert(self, query, args=()):
        """Executa um INSERT e retorna o id gerado."""
        if self.db_type == 'postgres':
            self.cursor.execute(query + " RETURNING id", tuple(args))
            return self.cursor.fetchone()[0]
        self.cursor.execute(self._sql(query), tuple(args))
        return self.cursor.lastrowid

    def advisory_lock(self, key: str):
        """Serializa transações concorrentes com a mesma chave.

        No SQLite o BEGIN IMMEDIATE já garante um único escritor por vez.
        """
        if self.db_type == 'postgres':
            self.cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))


class Database:
    """Fábrica de conexões/transações para SQLite ou PostgreSQL."""

    def __init__(self, sqlite_path=None, dsn=None, pool_min=2, pool_max=20, busy_timeout=30.0):
        if not sqlite_path and not dsn:
            raise ValueError("Informe sqlite_path ou dsn")
        self.sqlite_path = sqlite_path
        self.dsn = dsn
        self.busy_timeout = busy_timeout
        self.db_type = 'sqlite' if sqlite_path else 'postgres'
        self._pool = None
        self._pool_lock = Lock()
        self._pool_min = pool_min
        self._pool_max = pool_max

    @classmethod
    def from_config(cls, config):
        if config.get('USE_SQLITE_LOCALLY', True):
            return cls(sqlite_path=resolve_sqlite_path(config))
        database_url = config.get('DATABASE_URL')
        if not database_url:
            raise ValueError("DATABASE_URL não definida para PostgreSQL")
        return cls(
            dsn=database_url,
            pool_min=config.get('DB_POOL_MIN', 2),
            pool_max=config.get('DB_POOL_MAX', 20),
        )

    def _get_pool(self):
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    self._pool = pool.ThreadedConnectionPool(
                        minconn=self._pool_min,
                        maxconn=self._pool_max,
                        dsn=self.dsn,
                        cursor_factory=DictCursor
                    )
                    db_logger.info(f"PostgreSQL connection pool initialized ({self._pool_min}-{self._pool_max} connections)")
        return self._pool

    def _connect_sqlite(self):
        conn = sqlite3.connect(
            self.sqlite_path,
            isolation_level=None,
            timeout=self.busy_timeout,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self):
        """
        Context manager de transação.
        Commit ao sair normalmente, rollback em qualquer exceção.
        Erros de driver (exceto violação de integridade) viram DatabaseError.
        """
        conn = cursor = None
        try:
            if self.db_type == 'sqlite':
                conn = self._connect_sqlite()
                conn.execute("BEGIN IMMEDIATE TRANSACTION")
            else:
                conn = self._get_pool().getconn()
            cursor = conn.cursor()

            yield Transaction(conn, cursor, self.db_type)

            conn.commit()
        except (sqlite3.Error, psycopg2.Error) as e:
            self._rollback(conn)
            if isinstance(e, (sqlite3.IntegrityError, psycopg2.IntegrityError)):
                raise
            db_logger.error(f"Database transaction error: {e}", exc_info=True)
            raise DatabaseError(f"Erro ao executar transação: {e}") from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._release(conn, cursor)

    def query(self, query, args=(), one=False):
        """Leitura avulsa, fora de uma transação de escrita."""
        with self.read() as tx:
            return tx.query_one(query, args) if one else tx.query(query, args)

    @contextmanager
    def read(self):
        """Conexão somente-leitura (sem lock de escrita no SQLite)."""
        conn = cursor = None
        try:
            if self.db_type == 'sqlite':
                conn = self._connect_sqlite()
            else:
                conn = self._get_pool().getconn()
            cursor = conn.cursor()
            yield Transaction(conn, cursor, self.db_type)
            if self.db_type == 'postgres':
                conn.rollback()
        except (sqlite3.Error, psycopg2.Error) as e:
            self._rollback(conn)
            db_logger.error(f"Database query error: {e}", exc_info=True)
            raise DatabaseError(f"Erro ao executar query: {e}") from e
        finally:
            self._release(conn, cursor)

    def _rollback(self, conn):
        if conn is None:
            return
        try:
            conn.rollback()
        except (sqlite3.Error, psycopg2.Error) as e:
            db_logger.warning(f"Falha no rollback: {e}")

    def _release(self, conn, cursor=None):
        if conn is None:
            return
        # Statement pendente no cursor mantém o lock do SQLite mesmo após close()
        if cursor is not None:
            try:
                cursor.close()
            except (sqlite3.Error, psycopg2.Error) as e:
                db_logger.warning(f"Falha ao fechar cursor: {e}")
        if self.db_type == 'sqlite':
            conn.close()
        elif self._pool is not None:
            self._pool.putconn(conn, close=getattr(conn, 'closed', 1) != 0)

    def close(self):
        """Fecha todas as conexões do pool (shutdown)."""
        if self._pool is not None:
            with self._pool_lock:
                self._pool.closeall()
                self._pool = None


def resolve_sqlite_path(config):
    explicit = config.get('SQLITE_PATH')
    if explicit:
        return explicit
    database_url = config.get('DATABASE_URL') or ''
    if database_url.startswith('sqlite:///'):
        return database_url[len('sqlite:///'):]
    base_dir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    db_filename = 'atendimento_test.db' if config.get('TESTING', False) else 'atendimento.db'
    return os.path.join(base_dir, db_filename)
