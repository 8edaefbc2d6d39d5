# ==========================================================
# 📦 src/expansion_scoring/domain/area_classification.py
# ==========================================================

import math
from typing import Optional, Sequence

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import AreaClassification, Store
from expansion_scoring.domain.haversine_utils import KM_PER_DEGREE


CLASSIFICATION_RADIUS_KM = 5.0

POPULATION_BY_BAND = {
    "small": 50000,    # < 100k
    "medium": 300000,  # 100k a 500k
    "large": 750000,   # > 500k
}
DEFAULT_BAND_POPULATION = 100000


class AreaClassificationService:
    """
    Classifica um ponto como urban / suburban / rural pela densidade
    populacional estimada num raio de 5 km.
    """

    def __init__(self, config: StrategyConfig, cache=None, log=None):
        self.config = config
        self.cache = cache
        self.log = (log or logger).bind(componente="area")

    def classify_area(self, lat: float, lng: float, stores: Sequence[Store]) -> AreaClassification:
        if self.cache is not None:
            em_cache = self.cache.get_demographic(lat, lng, kind="area")
            if em_cache:
                return AreaClassification(**em_cache)

        try:
            populacao, confianca = self._estimar_populacao(lat, lng, stores)
            area_km2 = math.pi * CLASSIFICATION_RADIUS_KM ** 2
            densidade = populacao / area_km2

            resultado = AreaClassification(
                classification=self.classify_density(densidade),
                population_density=round(densidade),
                population=round(populacao),
                confidence=confianca,
                data_source="store_band_estimate",
            )
        except (TypeError, ValueError) as e:
            self.log.warning(f"⚠️ Falha classificando área ({lat:.4f},{lng:.4f}): {e}")
            return AreaClassification("suburban", 200, 0, 0.1, "fallback")

        if self.cache is not None:
            self.cache.set_demographic(lat, lng, resultado.to_dict(), kind="area")
        return resultado

    def classify_density(self, densidade: float) -> str:
        if densidade >= self.config.urban_density_threshold:
            return "urban"
        if densidade >= self.config.suburban_density_threshold:
            return "suburban"
        return "rural"

    def coverage_radius_km(self, classification: str) -> float:
        return {
            "urban": self.config.urban_coverage_km,
            "suburban": self.config.suburban_coverage_km,
            "rural": self.config.rural_coverage_km,
        }.get(classification, self.config.suburban_coverage_km)

    # ============================================================
    # 👥 Estimativa pela faixa populacional das lojas vizinhas
    # ============================================================
    def _estimar_populacao(self, lat: float, lng: float, stores: Sequence[Store]):
        delta_lat = CLASSIFICATION_RADIUS_KM / KM_PER_DEGREE
        delta_lng = CLASSIFICATION_RADIUS_KM / (KM_PER_DEGREE * max(math.cos(math.radians(lat)), 1e-6))

        faixas = [
            POPULATION_BY_BAND.get(s.city_population_band, DEFAULT_BAND_POPULATION)
            for s in stores
            if s.has_location
            and s.city_population_band
            and abs(s.latitude - lat) <= delta_lat
            and abs(s.longitude - lng) <= delta_lng
        ]

        if not faixas:
            return float(DEFAULT_BAND_POPULATION), 0.2

        return sum(faixas) / len(faixas), min(0.8, 0.3 + len(faixas) * 0.1)
