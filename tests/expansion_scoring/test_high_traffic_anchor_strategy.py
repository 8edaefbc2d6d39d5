# tests/expansion_scoring/test_high_traffic_anchor_strategy.py

import asyncio

import pytest

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import AnchorLocation
from expansion_scoring.domain.high_traffic_anchor_strategy import (
    HighTrafficAnchorStrategy,
    analyze_anchors,
    anchor_subtype,
    calculate_anchor_boost,
    calculate_anchor_score,
    estimate_anchor_size,
    is_super_location,
)
from expansion_scoring.domain.strategy_type import StrategyType

from expansion_fakes import FakePOIProvider, cell, context, feature, lat_offset


def _anchor(distancia_m, tipo="education", boost=12.06):
    return AnchorLocation(
        type=tipo, subtype="amenity_school", name="escola", lat=0.0, lng=0.0,
        distance=distancia_m, size="minor", estimated_footfall=2000, boost=boost,
    )


def test_composite_score_applies_diminishing_returns():
    assert calculate_anchor_score([20, 20, 20]) == pytest.approx(48)
    assert calculate_anchor_score([10, 20]) == pytest.approx(28)
    assert calculate_anchor_score([]) == 0


def test_composite_score_is_capped_at_fifty():
    assert calculate_anchor_score([40, 40, 40]) == 50
    assert calculate_anchor_score([20] * 10) == 50


def test_boost_by_type_and_size():
    assert calculate_anchor_boost("transport", "major") == pytest.approx(19.95)
    assert calculate_anchor_boost("education", "medium") == pytest.approx(18)
    assert calculate_anchor_boost("service_station", "minor") == pytest.approx(13.4)


def test_size_heuristics():
    assert estimate_anchor_size({"railway": "station"}, "transport") == ("major", 15000)
    assert estimate_anchor_size({"amenity": "bus_station"}, "transport") == ("minor", 3000)
    assert estimate_anchor_size({"amenity": "college"}, "education") == ("medium", 8000)
    assert estimate_anchor_size({"landuse": "retail"}, "retail") == ("major", 25000)
    assert estimate_anchor_size({"amenity": "fuel"}, "service_station") == ("medium", 3000)


def test_subtype_follows_tag_priority():
    assert anchor_subtype({"amenity": "university"}) == "amenity_university"
    assert anchor_subtype({"shop": "mall", "amenity": "cafe"}) == "amenity_cafe"
    assert anchor_subtype({}) == "unknown"


def test_super_location_boundary():
    assert is_super_location([_anchor(499), _anchor(499), _anchor(499)]) is True
    assert is_super_location([_anchor(499), _anchor(499), _anchor(501)]) is False


def test_analysis_reports_dominant_type():
    analise = analyze_anchors([_anchor(100, "retail"), _anchor(200, "retail"), _anchor(300, "transport", 15)])
    assert analise.anchor_count == 3
    assert analise.dominant_anchor_type == "retail"
    assert analise.anchors[0].type == "transport"
    assert analyze_anchors([]).dominant_anchor_type == "none"


def test_score_candidate_with_super_location():
    d = lat_offset(499)
    provider = FakePOIProvider({
        "education": [feature(i, d, 0.0, amenity="school") for i in range(1, 4)],
        # fora do raio de transporte (500 m): descartado
        "transport": [feature(9, lat_offset(600), 0.0, railway="station")],
    })
    strategy = HighTrafficAnchorStrategy(provider)

    score = asyncio.run(strategy.score_candidate(cell(), [], context()))

    assert score.strategy_type == StrategyType.ANCHOR
    assert score.confidence == 0.9
    assert score.metadata.anchor_count == 3
    assert score.metadata.is_super_location is True
    assert score.metadata.composite_score == pytest.approx(12.06 * (1 + 0.8 + 0.6))
    assert score.score == pytest.approx(12.06 * 2.4 * 0.25)
    assert "SUPER LOCATION" in score.reasoning

    raios = dict((c[0], r) for c, r in provider.chamadas)
    assert raios == {"transport": 500, "education": 600, "retail": 400, "service": 200}


def test_no_anchors_gives_low_confidence_zero():
    strategy = HighTrafficAnchorStrategy(FakePOIProvider())
    score = asyncio.run(strategy.score_candidate(cell(), [], context()))

    assert score.score == 0
    assert score.confidence == 0.3
    assert score.reasoning.startswith("No high-traffic anchors found")


def test_failing_category_does_not_abort_strategy():
    provider = FakePOIProvider(
        {"education": [feature(1, lat_offset(100), 0.0, amenity="university")]},
        falhas={"retail"},
    )
    score = asyncio.run(HighTrafficAnchorStrategy(provider).score_candidate(cell(), [], context()))
    assert score.metadata.anchor_count == 1
    assert score.metadata.anchors[0].size == "major"


def test_validate_config():
    strategy = HighTrafficAnchorStrategy(FakePOIProvider())
    assert strategy.validate_config(StrategyConfig()) is True
