# ==========================================================
# 📦 src/expansion_scoring/domain/cluster_analysis.py
# ==========================================================

import math
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ClusterDemographics, PerformanceCluster, Store
from expansion_scoring.domain.haversine_utils import centroid, haversine


TURNOVER_REFERENCE = 1_500_000
STORE_COUNT_REFERENCE = 10
URBAN_TURNOVER_THRESHOLD = 800_000

ANCHOR_PATTERNS_BY_AREA = {
    "urban": ("transport_hubs", "educational_institutions", "retail_centers"),
    "suburban": ("retail_centers", "service_stations", "educational_institutions"),
    "rural": ("service_stations", "transport_hubs"),
}


def calculate_cluster_strength(average_turnover: float, store_count: int) -> float:
    """70% faturamento médio (teto 1.5M) + 30% nº de lojas (teto 10)."""
    turnover_factor = min(1.0, average_turnover / TURNOVER_REFERENCE)
    count_factor = min(1.0, store_count / STORE_COUNT_REFERENCE)
    return round(0.7 * turnover_factor + 0.3 * count_factor, 2)


def analyze_cluster_demographics(average_turnover: float) -> ClusterDemographics:
    demografia = ClusterDemographics(
        average_income=55000,
        population_density=300,
        growth_rate=1.5,
        area_classification="suburban",
        population_range=(50000, 500000),
        income_range=(45000, 75000),
    )
    if average_turnover > URBAN_TURNOVER_THRESHOLD:
        demografia = ClusterDemographics(
            average_income=demografia.average_income * 1.2,
            population_density=demografia.population_density,
            growth_rate=demografia.growth_rate,
            area_classification="urban",
            population_range=demografia.population_range,
            income_range=demografia.income_range,
        )
    return demografia


def identify_anchor_patterns(demographics: ClusterDemographics, strength: float) -> List[str]:
    padroes = list(ANCHOR_PATTERNS_BY_AREA.get(demographics.area_classification, ()))
    if strength > 0.8:
        padroes.append("multi_anchor_locations")
    return padroes


def cluster_from_dict(dados: Dict) -> PerformanceCluster:
    """Reconstrói um cluster serializado no cache."""
    demografia = dict(dados.get("demographics") or {})
    for campo in ("population_range", "income_range"):
        if campo in demografia:
            demografia[campo] = tuple(demografia[campo])

    return PerformanceCluster(
        id=dados["id"],
        centroid_lat=dados["centroid_lat"],
        centroid_lng=dados["centroid_lng"],
        radius_km=dados["radius_km"],
        stores=tuple(Store(**s) for s in dados.get("stores", [])),
        average_turnover=dados["average_turnover"],
        store_count=dados["store_count"],
        strength=dados["strength"],
        demographics=ClusterDemographics(**demografia),
        anchor_patterns=tuple(dados.get("anchor_patterns", ())),
        country=dados.get("country"),
        region=dados.get("region"),
    )


class ClusterAnalysisService:
    """
    Identifica clusters de lojas de alto faturamento.
    Agrupamento guloso em passada única, na ordem original das lojas.
    """

    def __init__(self, config: StrategyConfig, cache=None, log=None):
        self.config = config
        self.cache = cache
        self.log = (log or logger).bind(componente="cluster_analysis")

    # ============================================================
    # 🏅 Lojas de alta performance (percentil de faturamento)
    # ============================================================
    def identify_high_performers(self, stores: Sequence[Store], percentile: Optional[float] = None) -> List[Store]:
        percentile = self.config.high_performer_percentile if percentile is None else percentile

        validas = [s for s in stores if s.annual_turnover is not None and s.annual_turnover > 0]
        if not validas:
            return []

        faturamentos = sorted(s.annual_turnover for s in validas)
        idx = math.floor(percentile / 100 * len(faturamentos))
        limiar = faturamentos[idx] if idx < len(faturamentos) else faturamentos[-1]

        return [s for s in validas if s.annual_turnover >= limiar]

    # ============================================================
    # 🧲 Agrupamento guloso (semente + vizinhos no raio)
    # ============================================================
    def perform_spatial_clustering(self, stores: Sequence[Store]) -> List[List[Store]]:
        raio = self.config.cluster_max_radius_km
        minimo = self.config.cluster_min_stores

        processadas = set()
        grupos: List[List[Store]] = []

        for semente in stores:
            if semente.id in processadas or not semente.has_location:
                continue

            grupo = [semente]
            for outra in stores:
                if outra.id == semente.id or outra.id in processadas or not outra.has_location:
                    continue
                d = haversine((semente.latitude, semente.longitude), (outra.latitude, outra.longitude))
                if d <= raio:
                    grupo.append(outra)

            if len(grupo) >= minimo:
                grupos.append(grupo)
                processadas.update(s.id for s in grupo)

        return grupos

    def build_cluster(self, membros: Sequence[Store], cluster_id: str) -> PerformanceCluster:
        c_lat, c_lng = centroid([(s.latitude, s.longitude) for s in membros])
        raio = max(haversine((c_lat, c_lng), (s.latitude, s.longitude)) for s in membros)
        media = sum(s.annual_turnover for s in membros) / len(membros)
        forca = calculate_cluster_strength(media, len(membros))
        demografia = analyze_cluster_demographics(media)

        return PerformanceCluster(
            id=cluster_id,
            centroid_lat=c_lat,
            centroid_lng=c_lng,
            radius_km=raio,
            stores=tuple(membros),
            average_turnover=media,
            store_count=len(membros),
            strength=forca,
            demographics=demografia,
            anchor_patterns=tuple(identify_anchor_patterns(demografia, forca)),
            country=membros[0].country,
            region=membros[0].region,
        )

    # ============================================================
    # 🚀 Fluxo completo (com cache por região)
    # ============================================================
    def identify_clusters(self, stores: Sequence[Store], region_key: str = "global") -> List[PerformanceCluster]:
        top = self.identify_high_performers(stores)
        if len(top) < self.config.cluster_min_stores:
            self.log.info(
                f"ℹ️ Lojas de alta performance insuficientes ({len(top)}) para formar clusters [{region_key}]"
            )
            return []

        grupos = self.perform_spatial_clustering(top)
        clusters = [self.build_cluster(g, f"{region_key}-{i + 1}") for i, g in enumerate(grupos)]
        self.log.info(f"🏆 {len(clusters)} clusters identificados entre {len(top)} lojas top [{region_key}]")

        if self.cache is not None and clusters:
            self.cache.set_clusters(region_key, [asdict(c) for c in clusters])
        return clusters

    def get_cached_clusters(self, region_key: str) -> List[PerformanceCluster]:
        if self.cache is None:
            return []
        dados = self.cache.get_clusters(region_key)
        if not dados:
            return []
        try:
            return [cluster_from_dict(d) for d in dados]
        except (KeyError, TypeError) as e:
            self.log.warning(f"⚠️ Cache de clusters inválido [{region_key}]: {e}")
            return []
