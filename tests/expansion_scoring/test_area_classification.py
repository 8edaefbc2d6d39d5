# tests/expansion_scoring/test_area_classification.py

from expansion_scoring.domain.area_classification import AreaClassificationService
from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import Store
from expansion_scoring.infrastructure.cache.strategy_cache_manager import StrategyCacheManager


def test_large_city_band_is_urban():
    service = AreaClassificationService(StrategyConfig())
    stores = [Store("s1", 0.01, 0.01, city_population_band="large")]

    area = service.classify_area(0.0, 0.0, stores)

    assert area.classification == "urban"
    assert area.population == 750000
    assert area.confidence == 0.4
    assert service.coverage_radius_km(area.classification) == 12.5


def test_no_nearby_bands_uses_default_population():
    service = AreaClassificationService(StrategyConfig(urban_density_threshold=2000))
    # loja fora da caixa de 5 km
    stores = [Store("s1", 1.0, 1.0, city_population_band="large")]

    area = service.classify_area(0.0, 0.0, stores)

    assert area.population == 100000
    assert area.confidence == 0.2
    assert area.classification == "suburban"


def test_density_thresholds_and_radius_default():
    service = AreaClassificationService(StrategyConfig())

    assert service.classify_density(400) == "urban"
    assert service.classify_density(399.9) == "suburban"
    assert service.classify_density(149) == "rural"
    assert service.coverage_radius_km("rural") == 25
    assert service.coverage_radius_km("desconhecida") == 17.5


def test_classification_is_cached():
    cache = StrategyCacheManager(StrategyConfig())
    service = AreaClassificationService(StrategyConfig(), cache=cache)
    stores = [Store("s1", 0.01, 0.01, city_population_band="small")]

    primeira = service.classify_area(0.0, 0.0, stores)
    segunda = service.classify_area(0.0, 0.0, [])

    assert primeira == segunda
    assert cache.get_cache_statistics()["demographic"]["hits"] == 1
