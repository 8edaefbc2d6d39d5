# tests/expansion_scoring/test_demographic_data_service.py

import asyncio

import pytest

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import Store
from expansion_scoring.infrastructure.cache.strategy_cache_manager import StrategyCacheManager
from expansion_scoring.infrastructure.demographic_data_service import DemographicDataService


CSV = """latitude,longitude,population,growth_rate,median_income,region
-23.55,-46.63,12000000,0.5,60000,SP
-22.90,-43.17,6700000,,55000,RJ
"""


@pytest.fixture
def csv_path(tmp_path):
    caminho = tmp_path / "demografia.csv"
    caminho.write_text(CSV, encoding="utf-8")
    return str(caminho)


def _indicadores(service, lat, lng):
    return asyncio.run(service.get_economic_indicators(lat, lng))


def test_nearest_csv_record_is_used(csv_path):
    service = DemographicDataService(StrategyConfig(demographic_csv_path=csv_path))

    ind = _indicadores(service, -23.56, -46.64)
    assert ind.population == 12000000
    assert ind.income_index == pytest.approx(1.2)
    assert ind.growth_trajectory == "moderate_growth"
    assert ind.data_completeness == pytest.approx(1.0)
    assert ind.data_source == "csv"
    assert ind.region == "SP"

    parcial = _indicadores(service, -22.91, -43.18)
    assert parcial.population_growth_rate is None
    assert parcial.data_completeness == pytest.approx(2 / 3)
    assert parcial.growth_trajectory == "stable"


def test_distant_point_falls_back_to_defaults(csv_path):
    service = DemographicDataService(StrategyConfig(demographic_csv_path=csv_path))

    ind = _indicadores(service, 0.0, 0.0)
    assert ind.data_source == "estimated"
    assert ind.data_completeness == pytest.approx(0.1)
    assert ind.population == 100000


def test_estimate_from_nearby_store_bands():
    stores = [
        Store("s1", 10.0, 10.0, city_population_band="large"),
        Store("s2", 10.05, 10.05, city_population_band="medium"),
        Store("s3", 11.0, 11.0, city_population_band="small"),
    ]
    service = DemographicDataService(StrategyConfig(), stores)

    ind = _indicadores(service, 10.02, 10.02)
    assert ind.population == pytest.approx(525000)
    assert ind.population_growth_rate == 1.5
    assert ind.median_income == pytest.approx(50500)
    assert ind.data_source == "estimated"
    assert ind.data_completeness == pytest.approx(1.0)


def test_results_are_cached(csv_path):
    cache = StrategyCacheManager(StrategyConfig())
    service = DemographicDataService(StrategyConfig(demographic_csv_path=csv_path), cache=cache)

    primeiro = _indicadores(service, -23.56, -46.64)
    segundo = _indicadores(service, -23.56, -46.64)

    assert primeiro == segundo
    stats = cache.get_cache_statistics()["demographic"]
    assert (stats["hits"], stats["misses"]) == (1, 1)


def test_validate_data(csv_path):
    vazio = DemographicDataService(StrategyConfig()).validate_data()
    assert vazio["is_valid"] is False
    assert vazio["record_count"] == 0

    relatorio = DemographicDataService(StrategyConfig(demographic_csv_path=csv_path)).validate_data()
    assert relatorio["is_valid"] is True
    assert relatorio["record_count"] == 2
    assert relatorio["missing_fields"] == []
    assert relatorio["completeness"] == pytest.approx(5 / 6)
