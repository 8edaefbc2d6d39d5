# tests/expansion_scoring/test_white_space_strategy.py

import asyncio
import threading

import pytest

from expansion_scoring.domain.area_classification import AreaClassificationService
from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import Store
from expansion_scoring.domain.haversine_utils import haversine
from expansion_scoring.domain.white_space_strategy import WhiteSpaceStrategy, calculate_underserved_boost
from expansion_scoring.infrastructure.cache.cache_store import InMemoryCacheStore
from expansion_scoring.infrastructure.cache.strategy_cache_manager import StrategyCacheManager

from expansion_fakes import cell, context


def test_underserved_boost():
    assert calculate_underserved_boost(True, 1.2, 5000, "rural") == 30
    assert calculate_underserved_boost(True, 80, 100_000, "urban") == 50
    assert calculate_underserved_boost(False, 0.5, 100_000, "urban") == pytest.approx(2.5)
    assert calculate_underserved_boost(False, 1.0, 100_000, "urban") == 0


def test_no_stores_is_white_space():
    score = asyncio.run(WhiteSpaceStrategy().score_candidate(cell(), [], context()))

    assert score.metadata.is_white_space is True
    assert score.metadata.nearest_store_km == 1000
    assert score.metadata.area_classification == "urban"
    assert score.score == 80
    assert score.confidence == 0.9


def test_covered_market_scores_by_distance_ratio():
    loja = Store("s1", latitude=0.045, longitude=0.0)
    ctx = context([loja])

    score = asyncio.run(WhiteSpaceStrategy().score_candidate(cell(), ctx.stores, ctx))

    d = haversine((0.0, 0.0), (0.045, 0.0))
    assert score.metadata.is_white_space is False
    assert score.metadata.coverage_radius_km == 12.5
    assert score.score == pytest.approx(15 * (1 - d / 12.5), rel=1e-6)
    assert score.confidence == 0.7


def test_rural_area_uses_wider_radius():
    config = StrategyConfig(urban_density_threshold=5000, suburban_density_threshold=2000)
    lojas = [Store("s1", latitude=0.0, longitude=0.0, city_population_band="small")]
    ctx = context(lojas, config)

    score = asyncio.run(WhiteSpaceStrategy().score_candidate(cell(lat=0.01), ctx.stores, ctx))

    assert score.metadata.area_classification == "rural"
    assert score.metadata.coverage_radius_km == 25
    assert score.metadata.is_white_space is False


class ThreadRecordingStore(InMemoryCacheStore):
    """Registra a thread de cada leitura do cache."""

    def __init__(self):
        super().__init__()
        self.threads = []

    def get(self, namespace, key):
        self.threads.append(threading.get_ident())
        return super().get(namespace, key)


def test_area_cache_lookups_run_off_the_event_loop_thread():
    store = ThreadRecordingStore()
    config = StrategyConfig()
    cache = StrategyCacheManager(config, store)
    strategy = WhiteSpaceStrategy(AreaClassificationService(config, cache=cache))
    ctx = context(config=config)

    async def _rodar():
        loop_thread = threading.get_ident()
        await asyncio.gather(*(strategy.score_candidate(cell(f"c{i}", lat=i), (), ctx) for i in range(4)))
        return loop_thread

    loop_thread = asyncio.run(_rodar())

    assert len(store.threads) == 4
    assert loop_thread not in store.threads
