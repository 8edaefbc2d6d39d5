# ==========================================================
# 📦 src/expansion_scoring/domain/config.py
# ==========================================================

import os
from typing import Dict, Literal, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from expansion_scoring.domain.strategy_type import ALL_STRATEGIES, StrategyType


WEIGHT_SUM_TOLERANCE = 0.01


class ConfigurationError(ValueError):
    """Configuração inválida: fatal na construção ou atualização."""


# ==========================================================
# ⚙️ Pesos e limiares do motor de expansão
# ==========================================================
class StrategyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # 🔹 Pesos (somam 1.0 ± 0.01)
    white_space_weight: float = Field(0.25, ge=0, le=1)
    economic_weight: float = Field(0.25, ge=0, le=1)
    anchor_weight: float = Field(0.25, ge=0, le=1)
    cluster_weight: float = Field(0.25, ge=0, le=1)

    enabled_strategies: Tuple[StrategyType, ...] = ALL_STRATEGIES

    # 🔹 Raio de cobertura por tipo de área (km)
    urban_coverage_km: float = Field(12.5, gt=0)
    suburban_coverage_km: float = Field(17.5, gt=0)
    rural_coverage_km: float = Field(25, gt=0)

    # 🔹 Densidade populacional (hab/km²)
    urban_density_threshold: float = Field(400, gt=0)
    suburban_density_threshold: float = Field(150, gt=0)

    # 🔹 Raios das âncoras (metros)
    transport_proximity_m: float = Field(500, gt=0)
    education_proximity_m: float = Field(600, gt=0)
    retail_proximity_m: float = Field(400, gt=0)
    service_proximity_m: float = Field(200, gt=0)

    # 🔹 Crescimento (% ao ano)
    high_growth_threshold: float = 2.0
    declining_threshold: float = -0.5

    # 🔹 Clusters
    cluster_min_stores: int = Field(3, ge=1)
    cluster_max_radius_km: float = Field(15, gt=0)
    high_performer_percentile: float = Field(75, gt=0, le=100)

    # 🔹 TTLs de cache
    strategy_cache_ttl_hours: float = Field(24, gt=0)
    demographic_cache_ttl_days: float = Field(90, gt=0)
    osm_cache_ttl_days: float = Field(30, gt=0)
    cluster_cache_ttl_days: float = Field(7, gt=0)

    # 🔹 Execução
    max_parallel_strategies: int = Field(4, ge=1)
    strategy_timeout_ms: int = Field(30000, gt=0)

    # 🔹 Fontes de dados
    demographic_data_source: Literal["csv", "api"] = "csv"
    demographic_csv_path: Optional[str] = None
    osm_overpass_url: str = "https://overpass-api.de/api/interpreter"
    osm_rate_limit_per_sec: float = Field(1, gt=0)

    @property
    def weights(self) -> Dict[StrategyType, float]:
        return {
            StrategyType.WHITE_SPACE: self.white_space_weight,
            StrategyType.ECONOMIC: self.economic_weight,
            StrategyType.ANCHOR: self.anchor_weight,
            StrategyType.CLUSTER: self.cluster_weight,
        }

    def weight_for(self, strategy_type: StrategyType) -> float:
        return self.weights[strategy_type]

    def with_changes(self, **changes) -> "StrategyConfig":
        """Nova configuração validada pelo pydantic (a atual não muda)."""
        return StrategyConfig(**{**self.model_dump(), **changes})


# ==========================================================
# ✅ Invariantes entre campos
# ==========================================================
def validate_strategy_config(config: StrategyConfig) -> StrategyConfig:
    total = sum(config.weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ConfigurationError(f"Pesos das estratégias devem somar 1.0 (atual: {total:.3f})")

    if not config.enabled_strategies:
        raise ConfigurationError("Pelo menos uma estratégia deve estar habilitada")

    positivos = {
        "urban_coverage_km": config.urban_coverage_km,
        "suburban_coverage_km": config.suburban_coverage_km,
        "rural_coverage_km": config.rural_coverage_km,
        "urban_density_threshold": config.urban_density_threshold,
        "suburban_density_threshold": config.suburban_density_threshold,
        "transport_proximity_m": config.transport_proximity_m,
        "education_proximity_m": config.education_proximity_m,
        "retail_proximity_m": config.retail_proximity_m,
        "service_proximity_m": config.service_proximity_m,
        "cluster_max_radius_km": config.cluster_max_radius_km,
    }
    invalidos = [nome for nome, valor in positivos.items() if valor <= 0]
    if invalidos:
        raise ConfigurationError(f"Limiares devem ser positivos: {', '.join(invalidos)}")

    if config.high_growth_threshold <= config.declining_threshold:
        raise ConfigurationError("high_growth_threshold deve ser maior que declining_threshold")

    return config


# ==========================================================
# 🌱 Carregamento via variáveis de ambiente
# ==========================================================
_ENV_FIELDS = {
    "white_space_weight": "EXPANSION_WHITE_SPACE_WEIGHT",
    "economic_weight": "EXPANSION_ECONOMIC_WEIGHT",
    "anchor_weight": "EXPANSION_ANCHOR_WEIGHT",
    "cluster_weight": "EXPANSION_CLUSTER_WEIGHT",
    "urban_coverage_km": "EXPANSION_URBAN_COVERAGE_KM",
    "suburban_coverage_km": "EXPANSION_SUBURBAN_COVERAGE_KM",
    "rural_coverage_km": "EXPANSION_RURAL_COVERAGE_KM",
    "urban_density_threshold": "EXPANSION_URBAN_DENSITY_THRESHOLD",
    "suburban_density_threshold": "EXPANSION_SUBURBAN_DENSITY_THRESHOLD",
    "transport_proximity_m": "EXPANSION_TRANSPORT_PROXIMITY_M",
    "education_proximity_m": "EXPANSION_EDUCATION_PROXIMITY_M",
    "retail_proximity_m": "EXPANSION_RETAIL_PROXIMITY_M",
    "service_proximity_m": "EXPANSION_SERVICE_PROXIMITY_M",
    "high_growth_threshold": "EXPANSION_HIGH_GROWTH_THRESHOLD",
    "declining_threshold": "EXPANSION_DECLINING_THRESHOLD",
    "cluster_min_stores": "EXPANSION_CLUSTER_MIN_STORES",
    "cluster_max_radius_km": "EXPANSION_CLUSTER_MAX_RADIUS_KM",
    "high_performer_percentile": "EXPANSION_HIGH_PERFORMER_PERCENTILE",
    "strategy_cache_ttl_hours": "EXPANSION_STRATEGY_CACHE_TTL_HOURS",
    "demographic_cache_ttl_days": "EXPANSION_DEMOGRAPHIC_CACHE_TTL_DAYS",
    "osm_cache_ttl_days": "EXPANSION_OSM_CACHE_TTL_DAYS",
    "cluster_cache_ttl_days": "EXPANSION_CLUSTER_CACHE_TTL_DAYS",
    "max_parallel_strategies": "EXPANSION_MAX_PARALLEL_STRATEGIES",
    "strategy_timeout_ms": "EXPANSION_STRATEGY_TIMEOUT_MS",
    "demographic_data_source": "EXPANSION_DEMOGRAPHIC_DATA_SOURCE",
    "demographic_csv_path": "EXPANSION_DEMOGRAPHIC_CSV_PATH",
    "osm_overpass_url": "EXPANSION_OSM_OVERPASS_URL",
    "osm_rate_limit_per_sec": "EXPANSION_OSM_RATE_LIMIT_PER_SEC",
}


def load_strategy_config(environ=None) -> StrategyConfig:
    """
    Monta a StrategyConfig a partir das variáveis EXPANSION_*.
    Variáveis ausentes usam os valores padrão do modelo.
    """
    environ = os.environ if environ is None else environ

    valores = {}
    for campo, env_var in _ENV_FIELDS.items():
        valor = environ.get(env_var)
        if valor not in (None, ""):
            valores[campo] = valor

    habilitadas = environ.get("EXPANSION_ENABLED_STRATEGIES")
    if habilitadas:
        valores["enabled_strategies"] = tuple(
            s.strip() for s in habilitadas.split(",") if s.strip()
        )

    try:
        config = StrategyConfig(**valores)
    except ValueError as e:
        raise ConfigurationError(f"Configuração de expansão inválida: {e}") from e

    validate_strategy_config(config)
    logger.debug(
        f"⚙️ Config carregada | pesos={[round(w, 3) for w in config.weights.values()]} "
        f"| habilitadas={[s.value for s in config.enabled_strategies]}"
    )
    return config
