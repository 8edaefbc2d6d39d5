# tests/expansion_scoring/test_postgres_cache_store.py

from datetime import datetime, timezone

import pytest
from psycopg2 import OperationalError

from expansion_scoring.infrastructure.cache.cache_store import PostgresCacheStore


EXPIRA = datetime(2030, 1, 1, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if self.conn.falhas:
            self.conn.falhas -= 1
            raise OperationalError("server closed the connection unexpectedly")
        self.conn.comandos.append(" ".join(sql.split()))
        self.rowcount = 3

    def fetchone(self):
        return ({"population": 10}, EXPIRA)


class FakeConnection:
    def __init__(self, falhas=0):
        self.falhas = falhas
        self.comandos = []
        self.closed = 0

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = 1


class FakeConnector:
    def __init__(self, *conexoes):
        self.conexoes = list(conexoes)
        self.abertas = []

    def __call__(self):
        conn = self.conexoes.pop(0) if self.conexoes else FakeConnection()
        self.abertas.append(conn)
        return conn


def test_operations_share_one_connection():
    connector = FakeConnector()
    store = PostgresCacheStore(connect=connector)

    store.set("demographic", "k", {"population": 10}, EXPIRA)
    assert store.get("demographic", "k") == ({"population": 10}, EXPIRA)
    assert store.delete_expired("demographic", EXPIRA) == 3
    store.delete("demographic", "k")

    assert len(connector.abertas) == 1
    comandos = connector.abertas[0].comandos
    assert comandos[0].startswith("CREATE TABLE IF NOT EXISTS expansion_cache")
    assert "ON CONFLICT (namespace, chave)" in comandos[1]
    assert len(comandos) == 5


def test_lost_connection_is_reopened_once():
    quebrada = FakeConnection(falhas=1)
    connector = FakeConnector(quebrada)
    store = PostgresCacheStore(criar_tabela=False, connect=connector)

    assert store.get("osm", "k") == ({"population": 10}, EXPIRA)
    assert len(connector.abertas) == 2
    assert quebrada.closed == 1


def test_persistent_failure_propagates():
    connector = FakeConnector(FakeConnection(falhas=1), FakeConnection(falhas=1))
    store = PostgresCacheStore(criar_tabela=False, connect=connector)

    with pytest.raises(OperationalError):
        store.get("osm", "k")
    assert len(connector.abertas) == 2


def test_close_drops_connection_and_next_call_reconnects():
    connector = FakeConnector()
    store = PostgresCacheStore(criar_tabela=False, connect=connector)

    store.get("osm", "k")
    store.close()
    store.get("osm", "k")

    assert len(connector.abertas) == 2
    assert connector.abertas[0].closed == 1
