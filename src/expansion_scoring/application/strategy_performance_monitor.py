# ============================================================
# 📦 src/expansion_scoring/application/strategy_performance_monitor.py
# ============================================================

import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from expansion_scoring.domain.scoring import StrategyScore
from expansion_scoring.domain.strategy_type import StrategyType


MAX_PROCESSING_SAMPLES = 1000


@dataclass
class StrategyMetrics:
    strategy_type: StrategyType
    suggestion_count: int = 0
    dominant_count: int = 0
    total_score: float = 0.0
    average_score: float = 0.0
    min_score: Optional[float] = None
    max_score: Optional[float] = None
    score_distribution: Dict[str, int] = field(default_factory=lambda: {"low": 0, "medium": 0, "high": 0})
    average_confidence: float = 0.0
    effectiveness_rating: str = "low"
    last_updated: Optional[datetime] = None


def calculate_effectiveness(metrics: StrategyMetrics) -> float:
    """60% score médio + 30% proporção de scores altos + 10% confiança."""
    if metrics.suggestion_count == 0:
        return 0.0
    high_ratio = metrics.score_distribution["high"] / metrics.suggestion_count
    return metrics.average_score * 0.6 + high_ratio * 100 * 0.3 + metrics.average_confidence * 100 * 0.1


def effectiveness_rating(effectiveness: float) -> str:
    if effectiveness >= 70:
        return "high"
    if effectiveness >= 40:
        return "medium"
    return "low"


def _rotulo(strategy_type: StrategyType) -> str:
    return strategy_type.value.replace("_", " ")


class StrategyPerformanceMonitor:
    """
    Observador passivo: distribuição de scores (0–100, antes da
    normalização), confiança média e eficácia por estratégia.
    """

    def __init__(self, log=None):
        self.log = (log or logger).bind(componente="monitor")
        self.stats_lock = threading.Lock()
        self._inicializar()
        self.log.debug("📊 StrategyPerformanceMonitor inicializado")

    def _inicializar(self):
        self.metrics: Dict[StrategyType, StrategyMetrics] = {t: StrategyMetrics(t) for t in StrategyType}
        self.processing_times: List[float] = []
        self.start_time = time.monotonic()

    # ============================================================
    # 📝 Registro
    # ============================================================
    def record_strategy_score(self, score: StrategyScore, dominant_strategy: Optional[StrategyType] = None) -> None:
        with self.stats_lock:
            m = self.metrics[score.strategy_type]
            m.suggestion_count += 1
            m.total_score += score.score
            m.average_score = m.total_score / m.suggestion_count
            m.min_score = score.score if m.min_score is None else min(m.min_score, score.score)
            m.max_score = score.score if m.max_score is None else max(m.max_score, score.score)
            m.average_confidence += (score.confidence - m.average_confidence) / m.suggestion_count

            if score.score <= 33:
                m.score_distribution["low"] += 1
            elif score.score <= 66:
                m.score_distribution["medium"] += 1
            else:
                m.score_distribution["high"] += 1

            if dominant_strategy == score.strategy_type:
                m.dominant_count += 1

            m.effectiveness_rating = effectiveness_rating(calculate_effectiveness(m))
            m.last_updated = datetime.now(timezone.utc)

    def record_processing_time(self, time_ms: float) -> None:
        with self.stats_lock:
            self.processing_times.append(time_ms)
            if len(self.processing_times) > MAX_PROCESSING_SAMPLES:
                self.processing_times = self.processing_times[-MAX_PROCESSING_SAMPLES:]

    # ============================================================
    # 📈 Consulta
    # ============================================================
    def get_strategy_metrics(self, strategy_type: StrategyType) -> StrategyMetrics:
        return self.metrics[strategy_type]

    def get_all_strategy_metrics(self) -> List[StrategyMetrics]:
        return list(self.metrics.values())

    def get_overall_metrics(self) -> Dict:
        with self.stats_lock:
            todas = [StrategyMetrics(**asdict(m)) for m in self.metrics.values()]
            tempos = list(self.processing_times)

        total = sum(m.suggestion_count for m in todas)
        total_dominante = sum(m.dominant_count for m in todas)

        distribuicao = {
            m.strategy_type.value: round(m.suggestion_count / total * 100, 2) if total else 0.0
            for m in todas
        }

        dominantes = sorted(
            (
                {
                    "strategy": m.strategy_type.value,
                    "percentage": m.dominant_count / total_dominante * 100 if total_dominante else 0.0,
                    "count": m.dominant_count,
                }
                for m in todas
            ),
            key=lambda d: d["percentage"],
            reverse=True,
        )[:3]

        ranking = sorted(
            ({"strategy": m.strategy_type.value, "effectiveness_score": calculate_effectiveness(m)} for m in todas),
            key=lambda d: d["effectiveness_score"],
            reverse=True,
        )
        for i, item in enumerate(ranking, start=1):
            item["rank"] = i

        return {
            "total_suggestions": total,
            "average_processing_time": round(sum(tempos) / len(tempos)) if tempos else 0,
            "strategy_distribution": distribuicao,
            "dominant_strategies": dominantes,
            "performance_ranking": ranking,
            "generation_summary": self._resumo(dominantes, ranking, total_dominante),
        }

    @staticmethod
    def _resumo(dominantes, ranking, total_dominante) -> str:
        if not total_dominante:
            return "No strategy data available for summary generation"

        topo, melhor = dominantes[0], ranking[0]
        texto = (
            f"Primary strategy: {topo['strategy'].replace('_', ' ')} "
            f"({topo['percentage']:.0f}% of suggestions)"
        )
        if melhor["strategy"] != topo["strategy"]:
            texto += (
                f". Most effective: {melhor['strategy'].replace('_', ' ')} "
                f"({melhor['effectiveness_score']:.0f} effectiveness score)"
            )
        significativas = [d for d in dominantes if d["percentage"] > 15]
        if len(significativas) > 1:
            texto += f". Multi-strategy approach with {len(significativas)} significant contributors"
        return texto

    def generate_distribution_summary(self) -> str:
        dominantes = [d for d in self.get_overall_metrics()["dominant_strategies"] if d["count"]]
        if not dominantes:
            return "No strategy data available"

        partes = [f"{dominantes[0]['percentage']:.0f}% {dominantes[0]['strategy'].replace('_', ' ')}"]
        for d in dominantes[1:]:
            if d["percentage"] > 10:
                partes.append(f"{d['percentage']:.0f}% {d['strategy'].replace('_', ' ')}")
        return ", ".join(partes)

    def get_effectiveness_report(self) -> str:
        linhas = ["📊 Strategy Effectiveness Report", "================================"]
        ordenadas = sorted(self.get_all_strategy_metrics(), key=calculate_effectiveness, reverse=True)

        for i, m in enumerate(ordenadas, start=1):
            linhas.append(f"{i}. {_rotulo(m.strategy_type).upper()}")
            linhas.append(f"   Suggestions: {m.suggestion_count}")
            linhas.append(f"   Avg Score: {m.average_score:.1f}")
            linhas.append(f"   Effectiveness: {calculate_effectiveness(m):.1f} ({m.effectiveness_rating})")
            linhas.append(f"   High Scores: {m.score_distribution['high']}/{m.suggestion_count}")
            linhas.append("")
        return "\n".join(linhas)

    def reset_metrics(self) -> None:
        with self.stats_lock:
            self._inicializar()
        self.log.info("📊 Métricas de estratégia reiniciadas")

    def export_metrics(self) -> Dict:
        with self.stats_lock:
            por_estrategia = {}
            for t, m in self.metrics.items():
                dados = asdict(m)
                dados["strategy_type"] = t.value
                dados["last_updated"] = m.last_updated.isoformat() if m.last_updated else None
                por_estrategia[t.value] = dados
            uptime = time.monotonic() - self.start_time

        return {
            "strategy_metrics": por_estrategia,
            "overall_metrics": self.get_overall_metrics(),
            "uptime_seconds": uptime,
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
