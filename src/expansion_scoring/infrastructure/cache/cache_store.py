# ==========================================================
# 📦 src/expansion_scoring/infrastructure/cache/cache_store.py
# ==========================================================

import threading
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from psycopg2 import InterfaceError, OperationalError
from psycopg2.extras import Json

from expansion_scoring.infrastructure.db_connection import conectar


CacheEntry = Tuple[Any, datetime]  # (valor, expira_em)


class InMemoryCacheStore:
    """Armazenamento chave/valor em memória, seguro entre threads."""

    def __init__(self):
        self._data: Dict[Tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._data.get((namespace, key))

    def set(self, namespace: str, key: str, value: Any, expires_at: datetime) -> None:
        with self._lock:
            self._data[(namespace, key)] = (value, expires_at)

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._data.pop((namespace, key), None)

    def delete_expired(self, namespace: str, now: datetime) -> int:
        with self._lock:
            vencidas = [k for k, (_, exp) in self._data.items() if k[0] == namespace and exp <= now]
            for k in vencidas:
                del self._data[k]
        return len(vencidas)

    def count(self, namespace: str, now: datetime) -> Tuple[int, int]:
        """(total, vencidas) de um namespace."""
        with self._lock:
            entradas = [exp for (ns, _), (_, exp) in self._data.items() if ns == namespace]
        return len(entradas), sum(1 for exp in entradas if exp <= now)

class PostgresCacheStore:
    """
    Cache persistente na tabela `expansion_cache` (valores em JSONB).

    Uma única conexão em autocommit por instância, aberta na primeira
    operação e compartilhada entre threads sob `_lock`. Se a conexão
    cair, é reaberta uma vez antes de propagar o erro.
    """

    DDL = """
        CREATE TABLE IF NOT EXISTS expansion_cache (
            namespace  TEXT NOT NULL,
            chave      TEXT NOT NULL,
            valor      JSONB NOT NULL,
            criado_em  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expira_em  TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (namespace, chave)
        );
        CREATE INDEX IF NOT EXISTS idx_expansion_cache_expira ON expansion_cache (namespace, expira_em);
    """

    def __init__(self, criar_tabela: bool = True, connect=conectar):
        self._connect = connect
        self._conn = None
        self._lock = threading.Lock()
        if criar_tabela:
            self._executar(self.DDL)
            logger.debug("🗄️ Tabela expansion_cache pronta")

    def _executar(self, sql: str, params=None, resultado: Optional[str] = None):
        with self._lock:
            for tentativa in (1, 2):
                if self._conn is None or self._conn.closed:
                    self._conn = self._connect()
                try:
                    with self._conn.cursor() as cur:
                        cur.execute(sql, params)
                        if resultado == "linha":
                            return cur.fetchone()
                        if resultado == "rowcount":
                            return cur.rowcount
                        return None
                except (OperationalError, InterfaceError) as e:
                    self._fechar()
                    if tentativa == 2:
                        raise
                    logger.warning(f"⚠️ Conexão do cache perdida, reconectando: {e}")

    def _fechar(self):
        if self._conn is not None:
            try:
                self._conn.close()
            except InterfaceError as e:
                logger.warning(f"⚠️ Falha ao fechar conexão do cache: {e}")
            self._conn = None

    def close(self) -> None:
        with self._lock:
            self._fechar()

    def get(self, namespace: str, key: str) -> Optional[CacheEntry]:
        row = self._executar(
            "SELECT valor, expira_em FROM expansion_cache WHERE namespace = %s AND chave = %s",
            (namespace, key),
            resultado="linha",
        )
        return (row[0], row[1]) if row else None

    def set(self, namespace: str, key: str, value: Any, expires_at: datetime) -> None:
        self._executar(
            """
            INSERT INTO expansion_cache (namespace, chave, valor, expira_em)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (namespace, chave)
            DO UPDATE SET valor = EXCLUDED.valor,
                          expira_em = EXCLUDED.expira_em,
                          criado_em = NOW()
            """,
            (namespace, key, Json(value), expires_at),
        )

    def delete(self, namespace: str, key: str) -> None:
        self._executar(
            "DELETE FROM expansion_cache WHERE namespace = %s AND chave = %s",
            (namespace, key),
        )

    def delete_expired(self, namespace: str, now: datetime) -> int:
        return self._executar(
            "DELETE FROM expansion_cache WHERE namespace = %s AND expira_em <= %s",
            (namespace, now),
            resultado="rowcount",
        )

    def count(self, namespace: str, now: datetime) -> Tuple[int, int]:
        total, vencidas = self._executar(
            """
            SELECT COUNT(*), COUNT(*) FILTER (WHERE expira_em <= %s)
            FROM expansion_cache WHERE namespace = %s
            """,
            (now, namespace),
            resultado="linha",
        )
        return int(total), int(vencidas)
