# ============================================================
# 📦 src/expansion_scoring/infrastructure/demographic_data_service.py
# ============================================================

import asyncio
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger
from sklearn.neighbors import NearestNeighbors

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.economic_strategy import classify_growth_trajectory
from expansion_scoring.domain.entities import EconomicIndicators, Store
from expansion_scoring.domain.haversine_utils import EARTH_RADIUS_KM


NATIONAL_MEDIAN_INCOME = 50000
MAX_RECORD_DISTANCE_KM = 25.0
STORE_SEARCH_DEGREES = 0.1

BAND_POPULATION = {"small": 75000, "medium": 300000, "large": 750000}

# coluna canônica -> aliases aceitos no CSV
COLUMN_ALIASES = {
    "lat": ("lat", "latitude"),
    "lng": ("lng", "lon", "longitude"),
    "population": ("population",),
    "growth_rate": ("growth_rate", "population_growth_rate"),
    "median_income": ("median_income", "income"),
    "region": ("region",),
    "municipality": ("municipality", "city"),
}


def build_indicators(
    population: Optional[float],
    growth_rate: Optional[float],
    median_income: Optional[float],
    data_source: str,
    config: StrategyConfig,
    region: Optional[str] = None,
) -> EconomicIndicators:
    presentes = sum(v is not None for v in (population, growth_rate, median_income))
    return EconomicIndicators(
        population=population,
        population_growth_rate=growth_rate,
        median_income=median_income,
        income_index=(median_income / NATIONAL_MEDIAN_INCOME) if median_income else 1.0,
        growth_trajectory=classify_growth_trajectory(growth_rate or 0.0, config),
        data_completeness=presentes / 3,
        data_source=data_source,
        region=region,
    )


def fallback_indicators() -> EconomicIndicators:
    return EconomicIndicators(
        population=100000,
        population_growth_rate=1.0,
        median_income=NATIONAL_MEDIAN_INCOME,
        income_index=1.0,
        growth_trajectory="moderate_growth",
        data_completeness=0.1,
        data_source="estimated",
    )


def _valor(linha, coluna) -> Optional[float]:
    v = linha.get(coluna)
    if v is None or pd.isna(v):
        return None
    return float(v)


class DemographicDataService:
    """
    Indicadores econômicos por coordenada.

    Ordem:
      1. Cache (camada demográfica)
      2. Registro CSV mais próximo (até 25 km)
      3. Estimativa pelas faixas populacionais das lojas vizinhas
      4. Valores padrão (completude 0.1)
    """

    def __init__(self, config: StrategyConfig, stores: Sequence[Store] = (), cache=None, log=None):
        self.config = config
        self.stores = list(stores)
        self.cache = cache
        self.log = (log or logger).bind(componente="demografia")

        self.records = pd.DataFrame(columns=list(COLUMN_ALIASES))
        self._nn: Optional[NearestNeighbors] = None

        if config.demographic_data_source == "csv" and config.demographic_csv_path:
            self.load_csv(config.demographic_csv_path)

    # ============================================================
    # 📂 Carga do CSV
    # ============================================================
    def load_csv(self, path: str) -> int:
        df = pd.read_csv(path, sep=None, engine="python", encoding="utf-8")
        df.columns = [c.strip().lower() for c in df.columns]

        renomear = {}
        for canonica, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                if alias in df.columns:
                    renomear[alias] = canonica
                    break
        df = df.rename(columns=renomear)

        for coluna in COLUMN_ALIASES:
            if coluna not in df.columns:
                df[coluna] = None
        for coluna in ("lat", "lng", "population", "growth_rate", "median_income"):
            df[coluna] = pd.to_numeric(df[coluna], errors="coerce")

        df = df.dropna(subset=["lat", "lng"]).reset_index(drop=True)
        self.records = df[list(COLUMN_ALIASES)]
        self._indexar()

        self.log.info(f"📂 {len(self.records)} registros demográficos carregados de {path}")
        return len(self.records)

    def _indexar(self):
        if self.records.empty:
            self._nn = None
            return
        coords = np.radians(self.records[["lat", "lng"]].to_numpy(dtype=float))
        self._nn = NearestNeighbors(n_neighbors=1, metric="haversine").fit(coords)

    def validate_data(self) -> Dict:
        total = len(self.records)
        if total == 0:
            return {
                "is_valid": False,
                "completeness": 0.0,
                "missing_fields": ["population", "growth_rate", "median_income"],
                "record_count": 0,
                "errors": ["No demographic records loaded"],
            }

        faltantes = [c for c in ("population", "growth_rate", "median_income") if self.records[c].isna().all()]
        preenchimento = self.records[["population", "growth_rate", "median_income"]].notna().to_numpy().mean()
        erros = []
        if (self.records["population"].dropna() < 0).any():
            erros.append("Negative population values found")

        return {
            "is_valid": not erros and "population" not in faltantes,
            "completeness": float(preenchimento),
            "missing_fields": faltantes,
            "record_count": total,
            "errors": erros,
        }

    # ============================================================
    # 📊 Consulta
    # ============================================================
    async def get_economic_indicators(self, lat: float, lng: float) -> EconomicIndicators:
        if self.cache is not None:
            em_cache = await asyncio.to_thread(self.cache.get_demographic, lat, lng)
            if em_cache:
                return EconomicIndicators(**em_cache)

        try:
            indicadores = self._buscar_registro(lat, lng) or self._estimar_por_lojas(lat, lng)
        except (ValueError, KeyError) as e:
            self.log.warning(f"⚠️ Falha obtendo indicadores ({lat:.4f},{lng:.4f}): {e}")
            return fallback_indicators()

        if indicadores is None:
            return fallback_indicators()

        if self.cache is not None:
            await asyncio.to_thread(self.cache.set_demographic, lat, lng, asdict(indicadores))
        return indicadores

    def _buscar_registro(self, lat: float, lng: float) -> Optional[EconomicIndicators]:
        if self._nn is None:
            return None

        dist, idx = self._nn.kneighbors(np.radians([[lat, lng]]))
        if dist[0][0] * EARTH_RADIUS_KM > MAX_RECORD_DISTANCE_KM:
            return None

        linha = self.records.iloc[int(idx[0][0])]
        regiao = linha.get("region")
        return build_indicators(
            population=_valor(linha, "population"),
            growth_rate=_valor(linha, "growth_rate"),
            median_income=_valor(linha, "median_income"),
            data_source="csv",
            config=self.config,
            region=None if regiao is None or pd.isna(regiao) else str(regiao),
        )

    def _estimar_por_lojas(self, lat: float, lng: float) -> Optional[EconomicIndicators]:
        faixas: List[int] = [
            BAND_POPULATION[s.city_population_band]
            for s in self.stores
            if s.has_location
            and s.city_population_band in BAND_POPULATION
            and abs(s.latitude - lat) <= STORE_SEARCH_DEGREES
            and abs(s.longitude - lng) <= STORE_SEARCH_DEGREES
        ]
        if not faixas:
            return None

        populacao = sum(faixas) / len(faixas)
        if populacao > 500000:
            crescimento = 1.5
        elif populacao > 100000:
            crescimento = 1.2
        else:
            crescimento = 0.8
        renda = NATIONAL_MEDIAN_INCOME * (0.8 + populacao / 1_000_000 * 0.4)

        return build_indicators(populacao, crescimento, renda, "estimated", self.config)
