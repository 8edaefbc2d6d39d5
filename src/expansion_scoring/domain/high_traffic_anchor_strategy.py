# ==========================================================
# 📦 src/expansion_scoring/domain/high_traffic_anchor_strategy.py
# ==========================================================

import asyncio
from collections import Counter
from typing import Dict, List, Sequence, Tuple

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import AnchorLocation, ExpansionContext, OSMFeature, ScoredCell, Store
from expansion_scoring.domain.haversine_utils import haversine
from expansion_scoring.domain.scoring import AnchorMetadata, StrategyScore
from expansion_scoring.domain.strategy import ExpansionStrategy, POIProvider
from expansion_scoring.domain.strategy_type import StrategyType


ANCHOR_BASE_BOOST = {
    "transport": 15,
    "education": 18,
    "retail": 12,
    "service_station": 20,
}
SIZE_MULTIPLIER = {"major": 1.33, "medium": 1.0, "minor": 0.67}
DIMINISHING_WEIGHTS = (1.0, 0.8)
TAIL_WEIGHT = 0.6
MAX_COMPOSITE_SCORE = 50.0

SUPER_LOCATION_RADIUS_M = 500
SUPER_LOCATION_MIN_ANCHORS = 3

# categoria da consulta POI -> tipo de âncora
ANCHOR_CATEGORIES = {
    "transport": "transport",
    "education": "education",
    "retail": "retail",
    "service": "service_station",
}

_SUBTYPE_TAGS = ("railway", "public_transport", "amenity", "shop", "highway", "landuse")


# ============================================================
# 📐 Tamanho, fluxo e bônus de cada âncora
# ============================================================
def estimate_anchor_size(tags: Dict[str, str], anchor_type: str) -> Tuple[str, int]:
    """(tamanho, fluxo estimado) pelas tags da feição."""
    if anchor_type == "transport":
        if tags.get("railway") == "station":
            return "major", 15000
        if tags.get("public_transport") == "station":
            return "medium", 8000
        return "minor", 3000

    if anchor_type == "education":
        if tags.get("amenity") == "university":
            return "major", 20000
        if tags.get("amenity") == "college":
            return "medium", 8000
        return "minor", 2000

    if anchor_type == "retail":
        if tags.get("shop") == "mall" or tags.get("landuse") == "retail":
            return "major", 25000
        if tags.get("shop") == "supermarket":
            return "medium", 5000
        return "minor", 2000

    if anchor_type == "service_station":
        if tags.get("highway") == "services":
            return "major", 10000
        return "medium", 3000

    return "minor", 1000


def calculate_anchor_boost(anchor_type: str, size: str) -> float:
    return ANCHOR_BASE_BOOST.get(anchor_type, 10) * SIZE_MULTIPLIER.get(size, 1.0)


def anchor_subtype(tags: Dict[str, str]) -> str:
    for tag in _SUBTYPE_TAGS:
        if tags.get(tag):
            return f"{tag}_{tags[tag]}"
    return "unknown"


def build_anchor(feature: OSMFeature, anchor_type: str, distance_km: float) -> AnchorLocation:
    size, footfall = estimate_anchor_size(feature.tags, anchor_type)
    return AnchorLocation(
        type=anchor_type,
        subtype=anchor_subtype(feature.tags),
        name=feature.name or feature.tags.get("name") or f"{anchor_type}_{feature.id}",
        lat=feature.lat,
        lng=feature.lng,
        distance=round(distance_km * 1000, 1),
        size=size,
        estimated_footfall=footfall,
        boost=calculate_anchor_boost(anchor_type, size),
    )


# ============================================================
# 📉 Retornos decrescentes
# ============================================================
def calculate_anchor_score(boosts: Sequence[float]) -> float:
    """
    Composição com retornos decrescentes: 100% da maior, 80% da segunda,
    60% das demais. Total limitado a 50 pontos.
    """
    total = 0.0
    for i, boost in enumerate(sorted(boosts, reverse=True)):
        peso = DIMINISHING_WEIGHTS[i] if i < len(DIMINISHING_WEIGHTS) else TAIL_WEIGHT
        total += boost * peso
    return min(total, MAX_COMPOSITE_SCORE)


def is_super_location(anchors: Sequence[AnchorLocation]) -> bool:
    proximas = [a for a in anchors if a.distance <= SUPER_LOCATION_RADIUS_M]
    return len(proximas) >= SUPER_LOCATION_MIN_ANCHORS


def analyze_anchors(anchors: Sequence[AnchorLocation]) -> AnchorMetadata:
    ordenadas = tuple(sorted(anchors, key=lambda a: a.boost, reverse=True))
    por_tipo = Counter(a.type for a in ordenadas)
    dominante = por_tipo.most_common(1)[0][0] if por_tipo else "none"

    return AnchorMetadata(
        anchors=ordenadas,
        anchor_count=len(ordenadas),
        composite_score=calculate_anchor_score([a.boost for a in ordenadas]),
        dominant_anchor_type=dominante,
        is_super_location=is_super_location(ordenadas),
        anchors_by_type=dict(por_tipo),
    )


def describe_anchors(analysis: AnchorMetadata) -> str:
    if analysis.anchor_count == 0:
        return "No high-traffic anchors found within proximity thresholds. Limited natural footfall generation."

    plural = "s" if analysis.anchor_count > 1 else ""
    texto = f"High-traffic anchor analysis: {analysis.anchor_count} anchor{plural} found"
    if analysis.is_super_location:
        proximas = sum(1 for a in analysis.anchors if a.distance <= SUPER_LOCATION_RADIUS_M)
        texto += f" (SUPER LOCATION: {proximas} anchors within {SUPER_LOCATION_RADIUS_M}m)"

    principais = ", ".join(f"{a.type} ({a.distance:.0f}m)" for a in analysis.anchors[:3])
    texto += f". Key anchors: {principais}"
    if analysis.anchor_count > 3:
        texto += f" and {analysis.anchor_count - 3} more"

    texto += f". Dominant anchor type: {analysis.dominant_anchor_type}"
    texto += f". Total anchor boost: {analysis.composite_score:.1f} points"
    if analysis.anchor_count > 1:
        texto += " with diminishing returns applied for multiple anchors"

    if analysis.is_super_location:
        texto += ". Strategic advantage: Multiple complementary footfall generators create synergistic customer attraction"
    else:
        texto += ". Strategic advantage: Natural footfall from nearby high-traffic locations"
    return texto


# ============================================================
# ⚓ Estratégia
# ============================================================
class HighTrafficAnchorStrategy(ExpansionStrategy):
    strategy_type = StrategyType.ANCHOR

    def __init__(self, poi_provider: POIProvider, log=None):
        self.poi_provider = poi_provider
        self.log = (log or logger).bind(componente="anchor")

    def get_strategy_name(self) -> str:
        return "High-Traffic Anchor Strategy"

    def validate_config(self, config: StrategyConfig) -> bool:
        return (
            0 <= config.anchor_weight <= 1
            and config.transport_proximity_m > 0
            and config.education_proximity_m > 0
            and config.retail_proximity_m > 0
            and config.service_proximity_m > 0
        )

    async def score_candidate(
        self, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> StrategyScore:
        anchors = await self.find_nearby_anchors(candidate.lat, candidate.lng, context.config)
        analise = analyze_anchors(anchors)

        score = max(0.0, min(100.0, analise.composite_score * context.config.anchor_weight))
        return StrategyScore(
            strategy_type=self.strategy_type,
            score=score,
            confidence=0.9 if analise.anchor_count > 0 else 0.3,
            reasoning=describe_anchors(analise),
            metadata=analise,
        )

    async def find_nearby_anchors(self, lat: float, lng: float, config: StrategyConfig) -> List[AnchorLocation]:
        raios = {
            "transport": config.transport_proximity_m,
            "education": config.education_proximity_m,
            "retail": config.retail_proximity_m,
            "service": config.service_proximity_m,
        }

        categorias = list(raios)
        respostas = await asyncio.gather(
            *(self.poi_provider.query_pois(lat, lng, raios[c], [c]) for c in categorias),
            return_exceptions=True,
        )

        anchors: List[AnchorLocation] = []
        for categoria, features in zip(categorias, respostas):
            if isinstance(features, Exception):
                self.log.warning(f"⚠️ Consulta POI [{categoria}] falhou: {features}")
                continue

            tipo = ANCHOR_CATEGORIES[categoria]
            limite_km = raios[categoria] / 1000
            for feature in features:
                distancia = haversine((lat, lng), (feature.lat, feature.lng))
                if distancia <= limite_km:
                    anchors.append(build_anchor(feature, tipo, distancia))

        self.log.debug(f"⚓ {len(anchors)} âncoras perto de {lat:.3f}, {lng:.3f}")
        return anchors
