# tests/expansion_scoring/expansion_fakes.py

import asyncio
import math

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ExpansionContext, OSMFeature, RegionFilter, ScoredCell
from expansion_scoring.domain.haversine_utils import EARTH_RADIUS_KM
from expansion_scoring.domain.scoring import StrategyScore
from expansion_scoring.domain.strategy import ExpansionStrategy


def cell(cell_id="c1", lat=0.0, lng=0.0):
    return ScoredCell(id=cell_id, center=(lng, lat))


def context(stores=(), config=None, country=None):
    return ExpansionContext.build(stores, config or StrategyConfig(), RegionFilter(country=country))


def lat_offset(metros):
    """Deslocamento em graus de latitude equivalente a `metros` no meridiano."""
    return math.degrees(metros / 1000 / EARTH_RADIUS_KM)


def feature(fid, lat, lng, **tags):
    return OSMFeature(id=fid, type="node", lat=lat, lng=lng, tags=dict(tags), name=tags.get("name"))


class FakePOIProvider:
    def __init__(self, por_categoria=None, falhas=()):
        self.por_categoria = por_categoria or {}
        self.falhas = set(falhas)
        self.chamadas = []

    async def query_pois(self, lat, lng, radius_m, categories):
        self.chamadas.append((tuple(categories), radius_m))
        categoria = categories[0]
        if categoria in self.falhas:
            raise ConnectionError(f"{categoria} indisponível")
        return list(self.por_categoria.get(categoria, []))


class FakeDemographicProvider:
    def __init__(self, indicadores=None, erro=None):
        self.indicadores = indicadores
        self.erro = erro

    async def get_economic_indicators(self, lat, lng):
        if self.erro:
            raise self.erro
        return self.indicadores


class FakeClusterRegistry:
    def __init__(self, em_cache=None, calculados=None, erro=None):
        self.em_cache = em_cache or []
        self.calculados = calculados or []
        self.erro = erro
        self.identify_calls = 0

    def get_cached_clusters(self, region_key):
        if self.erro is not None:
            raise self.erro
        return list(self.em_cache)

    def identify_clusters(self, stores, region_key="global"):
        self.identify_calls += 1
        if self.erro is not None:
            raise self.erro
        return list(self.calculados)


class StubStrategy(ExpansionStrategy):
    def __init__(self, strategy_type, score, confidence=0.8, erro=None, valido=True, reasoning=None):
        self.strategy_type = strategy_type
        self.score = score
        self.confidence = confidence
        self.erro = erro
        self.valido = valido
        self.reasoning = reasoning or f"{strategy_type.value} reasoning"

    def get_strategy_name(self):
        return f"stub-{self.strategy_type.value}"

    def validate_config(self, config):
        return self.valido

    async def score_candidate(self, candidate, stores, context):
        await asyncio.sleep(0)
        if self.erro is not None:
            raise self.erro
        return StrategyScore(self.strategy_type, self.score, self.confidence, self.reasoning)


class FlakyOrchestrator:
    """Envolve um orquestrador real, falhando ou travando para ids específicos."""

    def __init__(self, inner, falhas=(), travados=(), atraso=0.0):
        self.inner = inner
        self.falhas = set(falhas)
        self.travados = set(travados)
        self.atraso = atraso
        self.ativos = 0
        self.max_ativos = 0

    async def score_candidate(self, candidate, context):
        self.ativos += 1
        self.max_ativos = max(self.max_ativos, self.ativos)
        try:
            if self.atraso:
                await asyncio.sleep(self.atraso)
            if candidate.id in self.falhas:
                raise RuntimeError(f"falha em {candidate.id}")
            if candidate.id in self.travados:
                await asyncio.Event().wait()
            return await self.inner.score_candidate(candidate, context)
        finally:
            self.ativos -= 1
