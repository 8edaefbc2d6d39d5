# ==========================================================
# 📦 src/expansion_scoring/domain/entities.py
# ==========================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Tuple, Dict, Any

from expansion_scoring.domain.config import StrategyConfig


# ==========================================================
# 🏪 Loja (rede existente ou planejada)
# ==========================================================
@dataclass(frozen=True)
class Store:
    """Loja da rede. Coordenadas e faturamento podem estar ausentes."""
    id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    annual_turnover: Optional[float] = None
    city_population_band: Optional[str] = None  # small | medium | large
    status: str = "open"
    country: Optional[str] = None
    region: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ==========================================================
# 🗺️ Célula candidata
# ==========================================================
@dataclass(frozen=True)
class ScoredCell:
    id: str
    center: Tuple[float, float]  # (lng, lat)
    bounds: Optional[Tuple[float, float, float, float]] = None  # (west, south, east, north)
    score: Optional[float] = None
    confidence: Optional[float] = None
    nearest_store_distance: Optional[float] = None

    @property
    def lat(self) -> float:
        return self.center[1]

    @property
    def lng(self) -> float:
        return self.center[0]


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


@dataclass(frozen=True)
class RegionFilter:
    country: Optional[str] = None
    state: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None

    @property
    def region_key(self) -> str:
        return self.country or "global"


# ==========================================================
# 🧭 Contexto imutável de uma execução
# ==========================================================
@dataclass(frozen=True)
class ExpansionContext:
    stores: Tuple[Store, ...]
    region: RegionFilter
    config: StrategyConfig
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(cls, stores, config: StrategyConfig, region: Optional[RegionFilter] = None):
        return cls(stores=tuple(stores), region=region or RegionFilter(), config=config)


# ==========================================================
# 🚉 Âncoras de fluxo (POIs)
# ==========================================================
@dataclass(frozen=True)
class AnchorLocation:
    type: str  # transport | education | retail | service_station
    subtype: str
    name: str
    lat: float
    lng: float
    distance: float  # metros
    size: str  # major | medium | minor
    estimated_footfall: int
    boost: float


@dataclass(frozen=True)
class OSMFeature:
    id: int
    type: str  # node | way | relation
    lat: float
    lng: float
    tags: Dict[str, str] = field(default_factory=dict)
    name: Optional[str] = None


# ==========================================================
# 🏆 Clusters de alta performance
# ==========================================================
@dataclass(frozen=True)
class ClusterDemographics:
    average_income: float = 50000
    population_density: float = 250
    growth_rate: float = 1.0
    area_classification: str = "suburban"
    population_range: Tuple[float, float] = (50000, 300000)
    income_range: Tuple[float, float] = (40000, 60000)


@dataclass(frozen=True)
class PerformanceCluster:
    id: str
    centroid_lat: float
    centroid_lng: float
    radius_km: float
    stores: Tuple[Store, ...]
    average_turnover: float
    store_count: int
    strength: float
    demographics: ClusterDemographics = field(default_factory=ClusterDemographics)
    anchor_patterns: Tuple[str, ...] = ()
    country: Optional[str] = None
    region: Optional[str] = None


# ==========================================================
# 📊 Indicadores econômicos e classificação de área
# ==========================================================
@dataclass(frozen=True)
class EconomicIndicators:
    population: Optional[float]
    population_growth_rate: Optional[float]
    median_income: Optional[float]
    income_index: float
    growth_trajectory: str
    data_completeness: float
    data_source: str
    region: Optional[str] = None


@dataclass(frozen=True)
class AreaClassification:
    classification: str  # urban | suburban | rural
    population_density: float
    population: float
    confidence: float
    data_source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classification": self.classification,
            "population_density": self.population_density,
            "population": self.population,
            "confidence": self.confidence,
            "data_source": self.data_source,
        }
