# ==========================================================
# 📦 src/expansion_scoring/domain/strategy.py
# ==========================================================

from abc import ABC, abstractmethod
from typing import List, Protocol, Sequence

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import (
    EconomicIndicators,
    ExpansionContext,
    OSMFeature,
    PerformanceCluster,
    ScoredCell,
    Store,
)
from expansion_scoring.domain.scoring import StrategyScore
from expansion_scoring.domain.strategy_type import StrategyType


class ExpansionStrategy(ABC):
    """
    Contrato comum das estratégias de expansão.

    `score_candidate` nunca deve lançar exceção por problema de qualidade
    de dados (campos ausentes, sem âncoras, sem clusters): devolve um score
    baixo com confiança baixa e o motivo em `reasoning`.
    """

    strategy_type: StrategyType

    @abstractmethod
    async def score_candidate(
        self,
        candidate: ScoredCell,
        stores: Sequence[Store],
        context: ExpansionContext,
    ) -> StrategyScore:
        ...

    @abstractmethod
    def get_strategy_name(self) -> str:
        ...

    @abstractmethod
    def validate_config(self, config: StrategyConfig) -> bool:
        ...


# ==========================================================
# 🔌 Colaboradores externos
# ==========================================================
class DemographicProvider(Protocol):
    async def get_economic_indicators(self, lat: float, lng: float) -> EconomicIndicators:
        ...


class POIProvider(Protocol):
    async def query_pois(
        self, lat: float, lng: float, radius_m: float, categories: Sequence[str]
    ) -> List[OSMFeature]:
        ...


class ClusterRegistry(Protocol):
    def get_cached_clusters(self, region_key: str) -> List[PerformanceCluster]:
        ...

    def identify_clusters(
        self, stores: Sequence[Store], region_key: str = "global"
    ) -> List[PerformanceCluster]:
        ...
