# tests/expansion_scoring/test_osm_query_service.py

import asyncio

import requests

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.infrastructure.cache.strategy_cache_manager import StrategyCacheManager
from expansion_scoring.infrastructure.osm_query_service import (
    OSMQueryService,
    build_overpass_query,
    parse_overpass_element,
)

CONFIG = StrategyConfig(osm_rate_limit_per_sec=1000)

RESPOSTA = {
    "elements": [
        {"type": "node", "id": 1, "lat": -23.55, "lon": -46.63, "tags": {"railway": "station", "name": "Sé"}},
        {
            "type": "way",
            "id": 2,
            "bounds": {"minlat": -23.56, "minlon": -46.64, "maxlat": -23.54, "maxlon": -46.62},
            "tags": {"shop": "mall"},
        },
        {"type": "relation", "id": 3},
    ]
}


def test_query_builder_limits_to_bounding_box():
    query = build_overpass_query(0.0, 0.0, 1110, ["transport", "retail"])

    assert query.startswith("[out:json][timeout:25];")
    assert query.endswith("out geom;")
    assert 'nwr["railway"="station"](-0.010000,-0.010000,0.010000,0.010000);' in query
    assert 'nwr["shop"="mall"]' in query
    assert "amenity" not in query.replace('"amenity"="bus_station"', "")


def test_parser_handles_nodes_ways_and_missing_geometry():
    no, via, relacao = (parse_overpass_element(e) for e in RESPOSTA["elements"])

    assert (no.lat, no.lng, no.name) == (-23.55, -46.63, "Sé")
    assert via.type == "way"
    assert (round(via.lat, 6), round(via.lng, 6)) == (-23.55, -46.63)
    assert via.name is None
    assert relacao is None


def test_query_uses_cache_after_first_request(monkeypatch):
    cache = StrategyCacheManager(CONFIG)
    service = OSMQueryService(CONFIG, cache=cache)
    chamadas = []

    def _post(query):
        chamadas.append(query)
        return RESPOSTA

    monkeypatch.setattr(service, "_post", _post)

    async def _duas_vezes():
        a = await service.query_pois(-23.55, -46.63, 500, ["transport"])
        b = await service.query_pois(-23.55, -46.63, 500, ["transport"])
        return a, b

    a, b = asyncio.run(_duas_vezes())

    assert len(chamadas) == 1
    assert a == b
    assert len(a) == 2
    stats = service.get_stats()
    assert (stats["cache_hits"], stats["cache_misses"], stats["requests"]) == (1, 1, 1)


def test_retries_then_gives_up_with_empty_result(monkeypatch):
    service = OSMQueryService(CONFIG, max_retries=3, base_delay=0)
    tentativas = []

    def _post(query):
        tentativas.append(1)
        raise requests.ConnectionError("overpass fora")

    monkeypatch.setattr(service, "_post", _post)

    assert asyncio.run(service.get_transport_hubs(0.0, 0.0, 500)) == []
    assert len(tentativas) == 3
    assert service.get_stats()["failures"] == 1


def test_transient_failure_recovers(monkeypatch):
    service = OSMQueryService(CONFIG, max_retries=3, base_delay=0)
    respostas = [requests.Timeout("lento"), RESPOSTA]

    def _post(query):
        r = respostas.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    monkeypatch.setattr(service, "_post", _post)

    assert len(asyncio.run(service.get_retail_centers(0.0, 0.0, 500))) == 2
    assert service.get_stats()["failures"] == 0
