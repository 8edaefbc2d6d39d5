# =====================================================
# 📦 src/expansion_scoring/infrastructure/db_connection.py
# =====================================================

import os
import time

import psycopg2
from psycopg2 import OperationalError
from loguru import logger


def db_params() -> dict:
    return {
        "dbname": os.getenv("DB_NAME", os.getenv("POSTGRES_DB", "expansion_db")),
        "user": os.getenv("DB_USER", os.getenv("POSTGRES_USER", "postgres")),
        "password": os.getenv("DB_PASSWORD", os.getenv("POSTGRES_PASSWORD", "postgres")),
        "host": os.getenv("DB_HOST", os.getenv("POSTGRES_HOST", "localhost")),
        "port": os.getenv("DB_PORT", os.getenv("POSTGRES_PORT", "5432")),
        "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
        "application_name": os.getenv("DB_APP_NAME", "expansion_scoring"),
    }


def conectar(retries: int = 3, delay: float = 1.0):
    """
    Conexão em autocommit para o cache: cada comando é sua própria
    transação. Retenta só na abertura.
    """
    params = db_params()
    for tentativa in range(1, retries + 1):
        try:
            conn = psycopg2.connect(**params)
            conn.autocommit = True
            logger.debug(f"🔌 Cache PostgreSQL conectado em {params['host']} (tentativa {tentativa})")
            return conn
        except OperationalError as e:
            if tentativa == retries:
                raise
            espera = delay * tentativa
            logger.warning(f"⚠️ Cache PostgreSQL indisponível ({tentativa}/{retries}): {e} | aguardando {espera:.1f}s")
            time.sleep(espera)
