# ============================================================
# 📦 src/expansion_scoring/infrastructure/queue_factory.py
# ============================================================

import os

from redis import Redis
from rq import Queue


REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")


def redis_connection() -> Redis:
    return Redis.from_url(REDIS_URL)


def fila_expansao(nome: str = "expansion_jobs") -> Queue:
    # lotes grandes fazem muitas consultas Overpass com limite de 1 req/s
    return Queue(nome, connection=redis_connection(), default_timeout=3600)
