# ==========================================================
# 📦 src/expansion_scoring/domain/white_space_strategy.py
# ==========================================================

import asyncio
from typing import Optional, Sequence

from loguru import logger

from expansion_scoring.domain.area_classification import AreaClassificationService
from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ExpansionContext, ScoredCell, Store
from expansion_scoring.domain.haversine_utils import nearest_store_distance_km
from expansion_scoring.domain.scoring import StrategyScore, WhiteSpaceMetadata
from expansion_scoring.domain.strategy import ExpansionStrategy
from expansion_scoring.domain.strategy_type import StrategyType


NO_STORE_DISTANCE_KM = 1000.0


def calculate_underserved_boost(
    is_white_space: bool, distance_ratio: float, population: float, classification: str
) -> float:
    """Bônus de mercado desatendido, limitado a [0, 50]."""
    if is_white_space:
        boost = 25.0
        if population > 10000:
            boost += 15
        if distance_ratio > 1.5:
            boost += min(15.0, (distance_ratio - 1) * 10)
        if classification == "rural":
            boost += 5
    else:
        boost = max(0.0, 5 - distance_ratio * 5)
    return max(0.0, min(50.0, boost))


class WhiteSpaceStrategy(ExpansionStrategy):
    """Lacunas de cobertura: distância à loja mais próxima vs. raio da área."""

    strategy_type = StrategyType.WHITE_SPACE

    def __init__(self, area_service: Optional[AreaClassificationService] = None, log=None):
        self.area_service = area_service
        self.log = (log or logger).bind(componente="white_space")

    def get_strategy_name(self) -> str:
        return "White Space Strategy"

    def validate_config(self, config: StrategyConfig) -> bool:
        return (
            config.urban_coverage_km > 0
            and config.suburban_coverage_km > 0
            and config.rural_coverage_km > 0
            and 0 <= config.white_space_weight <= 1
        )

    async def score_candidate(
        self, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> StrategyScore:
        area_service = self.area_service or AreaClassificationService(context.config, log=self.log)
        area = await asyncio.to_thread(area_service.classify_area, candidate.lat, candidate.lng, stores)
        raio = area_service.coverage_radius_km(area.classification)

        distancia = nearest_store_distance_km(candidate.lat, candidate.lng, stores)
        if distancia is None:
            distancia = NO_STORE_DISTANCE_KM

        is_white_space = distancia > raio
        razao = distancia / raio
        boost = calculate_underserved_boost(is_white_space, razao, area.population, area.classification)

        if is_white_space:
            score = 30 + boost
            reasoning = (
                f"White space in {area.classification} area: nearest store {distancia:.1f} km away "
                f"(coverage radius {raio:.1f} km)."
            )
            if area.population > 10000:
                reasoning += f" Estimated population {area.population:,.0f} underserved."
        else:
            score = max(0.0, 15 * (1 - razao))
            reasoning = (
                f"Covered market: nearest store {distancia:.1f} km away, "
                f"within {raio:.1f} km {area.classification} coverage radius."
            )

        return StrategyScore(
            strategy_type=self.strategy_type,
            score=max(0.0, min(100.0, score)),
            confidence=0.9 if is_white_space else 0.7,
            reasoning=reasoning,
            metadata=WhiteSpaceMetadata(
                is_white_space=is_white_space,
                nearest_store_km=round(distancia, 3),
                area_classification=area.classification,
                coverage_radius_km=raio,
                population_in_area=area.population,
                underserved_boost=boost,
                area_confidence=area.confidence,
            ),
        )
