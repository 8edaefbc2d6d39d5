# tests/expansion_scoring/test_strategy_performance_monitor.py

import json

import pytest

from expansion_scoring.application.strategy_performance_monitor import StrategyPerformanceMonitor
from expansion_scoring.domain.scoring import StrategyScore
from expansion_scoring.domain.strategy_type import StrategyType

WS, ECON, ANCHOR, CLUSTER = StrategyType.WHITE_SPACE, StrategyType.ECONOMIC, StrategyType.ANCHOR, StrategyType.CLUSTER


def _score(tipo, valor, confianca=0.8):
    return StrategyScore(tipo, valor, confianca, "r")


def test_metrics_distribution_and_effectiveness():
    monitor = StrategyPerformanceMonitor()
    for valor in (10, 50, 90):
        monitor.record_strategy_score(_score(WS, valor))

    m = monitor.get_strategy_metrics(WS)
    assert m.suggestion_count == 3
    assert m.average_score == pytest.approx(50)
    assert (m.min_score, m.max_score) == (10, 90)
    assert m.score_distribution == {"low": 1, "medium": 1, "high": 1}
    assert m.average_confidence == pytest.approx(0.8)
    # 50*0.6 + 33.3*0.3 + 80*0.1 = 48
    assert m.effectiveness_rating == "medium"
    assert monitor.get_strategy_metrics(ECON).min_score is None


def test_processing_time_window_is_bounded():
    monitor = StrategyPerformanceMonitor()
    for i in range(1005):
        monitor.record_processing_time(float(i))

    assert len(monitor.processing_times) == 1000
    assert monitor.processing_times[0] == 5.0
    assert monitor.get_overall_metrics()["average_processing_time"] == round(sum(range(5, 1005)) / 1000)


def test_overall_metrics_and_summaries():
    monitor = StrategyPerformanceMonitor()
    for _ in range(3):
        monitor.record_strategy_score(_score(WS, 90), WS)
        monitor.record_strategy_score(_score(ECON, 20), WS)
    monitor.record_strategy_score(_score(ANCHOR, 70), ANCHOR)

    overall = monitor.get_overall_metrics()
    assert overall["total_suggestions"] == 7
    assert overall["strategy_distribution"]["white_space"] == pytest.approx(42.86)
    assert overall["dominant_strategies"][0] == {"strategy": "white_space", "percentage": 75.0, "count": 3}
    assert overall["performance_ranking"][0]["strategy"] == "white_space"
    assert overall["performance_ranking"][0]["rank"] == 1
    assert overall["generation_summary"].startswith("Primary strategy: white space (75% of suggestions)")

    assert monitor.generate_distribution_summary() == "75% white space, 25% anchor"


def test_empty_monitor_summaries():
    monitor = StrategyPerformanceMonitor()
    assert monitor.generate_distribution_summary() == "No strategy data available"
    assert monitor.get_overall_metrics()["generation_summary"] == "No strategy data available for summary generation"


def test_report_export_and_reset():
    monitor = StrategyPerformanceMonitor()
    monitor.record_strategy_score(_score(CLUSTER, 80), CLUSTER)
    monitor.record_processing_time(12.0)

    relatorio = monitor.get_effectiveness_report()
    assert relatorio.splitlines()[2] == "1. CLUSTER"
    assert "   High Scores: 1/1" in relatorio

    exportado = monitor.export_metrics()
    json.dumps(exportado)
    assert exportado["strategy_metrics"]["cluster"]["suggestion_count"] == 1

    monitor.reset_metrics()
    assert monitor.get_overall_metrics()["total_suggestions"] == 0
    assert monitor.processing_times == []
