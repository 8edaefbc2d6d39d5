# ==========================================================
# 📦 src/expansion_scoring/domain/scoring.py
# ==========================================================

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Tuple, Union, Dict, Any

from expansion_scoring.domain.entities import AnchorLocation
from expansion_scoring.domain.strategy_type import StrategyType


# ==========================================================
# 🏷️ Metadados tipados por estratégia
# ==========================================================
@dataclass(frozen=True)
class WhiteSpaceMetadata:
    is_white_space: bool
    nearest_store_km: float
    area_classification: str
    coverage_radius_km: float
    population_in_area: float
    underserved_boost: float
    area_confidence: float


@dataclass(frozen=True)
class EconomicMetadata:
    population: Optional[float]
    growth_rate: Optional[float]
    median_income: Optional[float]
    income_index: float
    growth_trajectory: str
    economic_score: float
    data_completeness: float
    data_source: str


@dataclass(frozen=True)
class AnchorMetadata:
    anchors: Tuple[AnchorLocation, ...]
    anchor_count: int
    composite_score: float
    dominant_anchor_type: str
    is_super_location: bool
    anchors_by_type: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ClusterMetadata:
    nearest_cluster_id: Optional[str]
    nearest_cluster_km: float
    cluster_strength: float
    proximity_boost: float
    pattern_match: float
    pattern_match_reasons: Tuple[str, ...]
    clusters_available: int


StrategyMetadata = Union[WhiteSpaceMetadata, EconomicMetadata, AnchorMetadata, ClusterMetadata]


# ==========================================================
# 🎯 Saída uniforme de uma estratégia
# ==========================================================
@dataclass(frozen=True)
class StrategyScore:
    """
    Score de uma estratégia para um candidato.
    `score` vem em 0–100 das estratégias e em 0–1 após a normalização
    do orquestrador. `metadata` é None apenas no score de fallback.
    """
    strategy_type: StrategyType
    score: float
    confidence: float
    reasoning: str
    metadata: Optional[StrategyMetadata] = None

    @property
    def is_fallback(self) -> bool:
        return self.metadata is None


# ==========================================================
# 🧾 Resultado agregado do orquestrador
# ==========================================================
@dataclass(frozen=True)
class StrategyBreakdown:
    white_space_score: float
    economic_score: float
    anchor_score: float
    cluster_score: float
    weighted_total: float
    strategy_scores: Tuple[StrategyScore, ...]

    def score_for(self, strategy_type: StrategyType) -> float:
        return {
            StrategyType.WHITE_SPACE: self.white_space_score,
            StrategyType.ECONOMIC: self.economic_score,
            StrategyType.ANCHOR: self.anchor_score,
            StrategyType.CLUSTER: self.cluster_score,
        }[strategy_type]


@dataclass(frozen=True)
class StrategicRationale:
    executive_summary: str
    strategic_highlights: Tuple[str, ...]
    risk_factors: Tuple[str, ...]
    competitive_advantage: str
    data_completeness: float


@dataclass(frozen=True)
class StrategicSuggestion:
    candidate_id: str
    lat: float
    lng: float
    confidence: float
    band: str  # HIGH | MEDIUM | LOW | INSUFFICIENT_DATA
    breakdown: StrategyBreakdown
    dominant_strategy: StrategyType
    strategic_classification: str
    rationale: StrategicRationale
    rationale_text: str

    @property
    def weighted_total(self) -> float:
        return self.breakdown.weighted_total

    def metadata_for(self, strategy_type: StrategyType) -> Optional[StrategyMetadata]:
        for s in self.breakdown.strategy_scores:
            if s.strategy_type == strategy_type:
                return s.metadata
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Representação serializável (JSON) da sugestão."""
        def _score(s: StrategyScore):
            return {
                "strategy_type": s.strategy_type.value,
                "score": s.score,
                "confidence": s.confidence,
                "reasoning": s.reasoning,
                "metadata": asdict(s.metadata) if s.metadata is not None else None,
            }

        return {
            "candidate_id": self.candidate_id,
            "lat": self.lat,
            "lng": self.lng,
            "confidence": self.confidence,
            "band": self.band,
            "dominant_strategy": self.dominant_strategy.value,
            "strategic_classification": self.strategic_classification,
            "breakdown": {
                "white_space_score": self.breakdown.white_space_score,
                "economic_score": self.breakdown.economic_score,
                "anchor_score": self.breakdown.anchor_score,
                "cluster_score": self.breakdown.cluster_score,
                "weighted_total": self.breakdown.weighted_total,
                "strategy_scores": [_score(s) for s in self.breakdown.strategy_scores],
            },
            "rationale": {
                "executive_summary": self.rationale.executive_summary,
                "strategic_highlights": list(self.rationale.strategic_highlights),
                "risk_factors": list(self.rationale.risk_factors),
                "competitive_advantage": self.rationale.competitive_advantage,
                "data_completeness": self.rationale.data_completeness,
            },
            "rationale_text": self.rationale_text,
        }
