# ==========================================================
# 📦 src/expansion_scoring/domain/economic_strategy.py
# ==========================================================

from typing import Optional, Sequence

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import EconomicIndicators, ExpansionContext, ScoredCell, Store
from expansion_scoring.domain.scoring import EconomicMetadata, StrategyScore
from expansion_scoring.domain.strategy import DemographicProvider, ExpansionStrategy
from expansion_scoring.domain.strategy_type import StrategyType


ECONOMIC_REFERENCE_CEILING = 1_000_000

TRAJECTORY_MULTIPLIERS = {
    "high_growth": 1.25,
    "moderate_growth": 1.0,
    "stable": 0.95,
    "declining": 0.8,
}


def calculate_economic_score(population: float, growth_rate: float, income_index: float) -> float:
    return population * (1 + growth_rate / 100) * income_index


def classify_growth_trajectory(growth_rate: float, config: StrategyConfig) -> str:
    if growth_rate > config.high_growth_threshold:
        return "high_growth"
    if growth_rate > 0:
        return "moderate_growth"
    if growth_rate >= config.declining_threshold:
        return "stable"
    return "declining"


class EconomicStrategy(ExpansionStrategy):
    """Potencial econômico: população × crescimento × índice de renda."""

    strategy_type = StrategyType.ECONOMIC

    def __init__(self, provider: DemographicProvider, log=None):
        self.provider = provider
        self.log = (log or logger).bind(componente="economic")

    def get_strategy_name(self) -> str:
        return "Economic Strategy"

    def validate_config(self, config: StrategyConfig) -> bool:
        return (
            0 <= config.economic_weight <= 1
            and config.high_growth_threshold > config.declining_threshold
        )

    async def score_candidate(
        self, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> StrategyScore:
        try:
            indicadores = await self.provider.get_economic_indicators(candidate.lat, candidate.lng)
        except Exception as e:
            self.log.warning(f"⚠️ Indicadores indisponíveis para {candidate.id}: {e}")
            indicadores = None

        if indicadores is None or not indicadores.population:
            return self._score_sem_dados(indicadores)

        config = context.config
        crescimento = indicadores.population_growth_rate or 0.0
        if indicadores.population_growth_rate is not None:
            trajetoria = classify_growth_trajectory(crescimento, config)
        else:
            trajetoria = indicadores.growth_trajectory

        economic_score = calculate_economic_score(
            indicadores.population, crescimento, indicadores.income_index
        )
        pontos = min(100.0, economic_score / ECONOMIC_REFERENCE_CEILING * 100)
        pontos *= TRAJECTORY_MULTIPLIERS.get(trajetoria, 1.0)
        score = max(0.0, min(100.0, pontos * config.economic_weight))

        reasoning = (
            f"Population {indicadores.population:,.0f} with {crescimento:+.1f}% annual growth "
            f"({trajetoria.replace('_', ' ')}), income index {indicadores.income_index:.2f}."
        )

        return StrategyScore(
            strategy_type=self.strategy_type,
            score=score,
            confidence=max(0.1, min(1.0, indicadores.data_completeness)),
            reasoning=reasoning,
            metadata=self._metadata(indicadores, trajetoria, economic_score),
        )

    def _score_sem_dados(self, indicadores: Optional[EconomicIndicators]) -> StrategyScore:
        return StrategyScore(
            strategy_type=self.strategy_type,
            score=0.0,
            confidence=0.2,
            reasoning="Economic indicators unavailable for this location.",
            metadata=self._metadata(indicadores, "stable", 0.0),
        )

    @staticmethod
    def _metadata(indicadores: Optional[EconomicIndicators], trajetoria: str, economic_score: float):
        if indicadores is None:
            return EconomicMetadata(None, None, None, 1.0, trajetoria, 0.0, 0.0, "unavailable")
        return EconomicMetadata(
            population=indicadores.population,
            growth_rate=indicadores.population_growth_rate,
            median_income=indicadores.median_income,
            income_index=indicadores.income_index,
            growth_trajectory=trajetoria,
            economic_score=economic_score,
            data_completeness=indicadores.data_completeness,
            data_source=indicadores.data_source,
        )
