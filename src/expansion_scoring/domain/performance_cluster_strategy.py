# ==========================================================
# 📦 src/expansion_scoring/domain/performance_cluster_strategy.py
# ==========================================================

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ExpansionContext, PerformanceCluster, RegionFilter, ScoredCell, Store
from expansion_scoring.domain.haversine_utils import haversine
from expansion_scoring.domain.scoring import ClusterMetadata, StrategyScore
from expansion_scoring.domain.strategy import ClusterRegistry, ExpansionStrategy
from expansion_scoring.domain.strategy_type import StrategyType


MAX_INFLUENCE_KM = 10.0
MAX_PROXIMITY_BOOST = 30.0
MIN_PROXIMITY_BOOST = 5.0
PATTERN_MATCH_THRESHOLD = 0.7
PATTERN_MATCH_MULTIPLIER = 1.15
NO_CLUSTER_DISTANCE_KM = 1000.0
LOCAL_CACHE_TTL = timedelta(hours=24)


def calculate_cluster_proximity_boost(distance_km: float, strength: float) -> float:
    """
    Decaimento linear até 10 km. Dentro do alcance o bônus fica entre
    5 e 30 pontos; a partir de 10 km é zero.
    """
    if distance_km >= MAX_INFLUENCE_KM:
        return 0.0
    boost = MAX_PROXIMITY_BOOST * strength * (1 - distance_km / MAX_INFLUENCE_KM)
    return max(MIN_PROXIMITY_BOOST, min(MAX_PROXIMITY_BOOST, boost))


def calculate_pattern_match(
    distance_km: float, cluster: PerformanceCluster, region: RegionFilter, fallback_radius_km: float
) -> float:
    """Média simples de proximidade geográfica, consistência regional e força."""
    raio = cluster.radius_km if cluster.radius_km > 0 else fallback_radius_km
    geografico = max(0.0, 1 - distance_km / raio)

    mesma_regiao = bool(region.country) and region.country in (cluster.region, cluster.country)
    regional = 0.8 if mesma_regiao else 0.3

    media = (geografico + regional + cluster.strength) / 3
    return max(0.0, min(1.0, media))


def pattern_match_reasons(cluster: PerformanceCluster, pattern_match: float) -> List[str]:
    motivos = []
    if pattern_match > 0.8:
        motivos.append("High similarity to successful cluster characteristics")
        motivos.append(f"Strong cluster with {cluster.store_count} high-performing stores")
    elif pattern_match > 0.6:
        motivos.append("Moderate similarity to cluster patterns")
        motivos.append(f"Cluster strength: {cluster.strength * 100:.0f}%")
    elif pattern_match > 0.3:
        motivos.append("Some similarity to cluster characteristics")
    else:
        motivos.append("Limited similarity to existing successful patterns")

    motivos.append(f"Cluster pattern: {cluster.demographics.area_classification} area success")
    if cluster.anchor_patterns:
        motivos.append(f"Common anchors: {', '.join(cluster.anchor_patterns[:2])}")
    return motivos


def nearest_cluster(
    lat: float, lng: float, clusters: Sequence[PerformanceCluster]
) -> Tuple[Optional[PerformanceCluster], float]:
    melhor, menor = None, float("inf")
    for cluster in clusters:
        d = haversine((lat, lng), (cluster.centroid_lat, cluster.centroid_lng))
        if d < menor:
            melhor, menor = cluster, d
    return melhor, (menor if melhor is not None else NO_CLUSTER_DISTANCE_KM)


class PerformanceClusterStrategy(ExpansionStrategy):
    """
    Proximidade a clusters de lojas de alto faturamento.
    Mantém cache local por região (substituído por inteiro, TTL 24h).
    """

    strategy_type = StrategyType.CLUSTER

    def __init__(self, registry: ClusterRegistry, log=None):
        self.registry = registry
        self.log = (log or logger).bind(componente="cluster")
        self._clusters: Dict[str, Tuple[datetime, List[PerformanceCluster]]] = {}

    def get_strategy_name(self) -> str:
        return "Performance Cluster Strategy"

    def validate_config(self, config: StrategyConfig) -> bool:
        return (
            0 <= config.cluster_weight <= 1
            and config.cluster_min_stores >= 1
            and config.cluster_max_radius_km > 0
            and 0 < config.high_performer_percentile <= 100
        )

    async def get_clusters(self, stores: Sequence[Store], region: RegionFilter) -> List[PerformanceCluster]:
        chave = region.region_key
        agora = datetime.now(timezone.utc)

        em_memoria = self._clusters.get(chave)
        if em_memoria and agora - em_memoria[0] < LOCAL_CACHE_TTL:
            return em_memoria[1]

        try:
            clusters = await asyncio.to_thread(self.registry.get_cached_clusters, chave)
            if not clusters:
                self.log.info(f"🎯 Sem clusters em cache para {chave}, identificando...")
                clusters = await asyncio.to_thread(self.registry.identify_clusters, list(stores), chave)
        except Exception as e:
            # falha não entra no cache local: a próxima chamada tenta de novo
            self.log.warning(f"⚠️ Falha obtendo clusters [{chave}]: {e}")
            return []

        self._clusters[chave] = (agora, list(clusters))
        return self._clusters[chave][1]

    def clear_cache(self) -> None:
        self._clusters.clear()

    async def score_candidate(
        self, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> StrategyScore:
        clusters = await self.get_clusters(stores, context.region)

        if not clusters:
            return StrategyScore(
                strategy_type=self.strategy_type,
                score=0.0,
                confidence=0.3,
                reasoning="No high-performing clusters identified in region for pattern analysis",
                metadata=ClusterMetadata(None, NO_CLUSTER_DISTANCE_KM, 0.0, 0.0, 0.0, (), 0),
            )

        cluster, distancia = nearest_cluster(candidate.lat, candidate.lng, clusters)
        boost = calculate_cluster_proximity_boost(distancia, cluster.strength)
        match = calculate_pattern_match(distancia, cluster, context.region, context.config.cluster_max_radius_km)
        motivos = pattern_match_reasons(cluster, match)

        pontos = boost * PATTERN_MATCH_MULTIPLIER if match > PATTERN_MATCH_THRESHOLD else boost
        score = max(0.0, min(100.0, pontos * context.config.cluster_weight))

        return StrategyScore(
            strategy_type=self.strategy_type,
            score=score,
            confidence=0.8,
            reasoning=self._descrever(cluster, distancia, boost, match, motivos),
            metadata=ClusterMetadata(
                nearest_cluster_id=cluster.id,
                nearest_cluster_km=round(distancia, 3),
                cluster_strength=cluster.strength,
                proximity_boost=boost,
                pattern_match=round(match, 4),
                pattern_match_reasons=tuple(motivos),
                clusters_available=len(clusters),
            ),
        )

    @staticmethod
    def _descrever(cluster, distancia, boost, match, motivos) -> str:
        texto = (
            f"Performance cluster analysis: {distancia:.1f}km from nearest high-performing cluster "
            f"({cluster.store_count} stores, avg turnover ${cluster.average_turnover:,.0f}, "
            f"strength {cluster.strength * 100:.0f}%)"
        )
        if distancia <= 2:
            texto += ". Excellent proximity to proven success pattern"
        elif distancia <= 5:
            texto += ". Good proximity to successful cluster corridor"
        elif distancia < MAX_INFLUENCE_KM:
            texto += ". Within influence zone of high-performing cluster"
        else:
            texto += ". Beyond primary cluster influence zone"

        if match > 0.7:
            texto += f". High pattern similarity ({match * 100:.0f}%) suggests strong replication potential"
        elif match > 0.5:
            texto += f". Moderate pattern match ({match * 100:.0f}%) indicates reasonable success likelihood"
        elif match > 0.3:
            texto += f". Limited pattern match ({match * 100:.0f}%) suggests different market dynamics"

        texto += f". Cluster proximity boost: {boost:.1f} points"
        if motivos:
            texto += f". {motivos[0]}"
        return texto
