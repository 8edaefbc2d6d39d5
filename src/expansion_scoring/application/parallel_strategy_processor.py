# ============================================================
# 📦 src/expansion_scoring/application/parallel_strategy_processor.py
# ============================================================

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ExpansionContext, ScoredCell
from expansion_scoring.domain.scoring import StrategicSuggestion, StrategyScore


@dataclass(frozen=True)
class BatchProcessingResult:
    processed_candidates: Tuple[StrategicSuggestion, ...]
    total_processed: int
    average_processing_time_ms: float
    error_count: int
    success_rate: float
    failed_candidate_ids: Tuple[str, ...] = ()


class ParallelStrategyProcessor:
    """
    Timeout por candidato e lotes com concorrência limitada.
    Os lotes rodam em sequência; dentro de um lote, todas as chamadas
    ao orquestrador são concorrentes.

    Nas estatísticas, `timeouts` e `errors` são disjuntos: um candidato
    que estoura o tempo conta só em `timeouts`.
    """

    def __init__(self, max_concurrency: int = 4, timeout_ms: int = 30000, log=None):
        if max_concurrency < 1:
            raise ValueError("max_concurrency deve ser >= 1")
        self.max_concurrency = max_concurrency
        self.timeout_s = timeout_ms / 1000
        self.log = (log or logger).bind(componente="processador")

        self.stats = {"batches": 0, "candidates": 0, "errors": 0, "timeouts": 0, "total_time_ms": 0.0}
        self.stats_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: StrategyConfig, log=None) -> "ParallelStrategyProcessor":
        return cls(config.max_parallel_strategies, config.strategy_timeout_ms, log=log)

    # ============================================================
    # ⏱️ Um candidato, com timeout
    # ============================================================
    async def process_strategies_parallel(
        self, candidate: ScoredCell, context: ExpansionContext, orchestrator
    ) -> List[StrategyScore]:
        """Scores normalizados do candidato, ou lista vazia em timeout/erro."""
        try:
            sugestao = await asyncio.wait_for(
                orchestrator.score_candidate(candidate, context), timeout=self.timeout_s
            )
        except asyncio.TimeoutError:
            self._inc("timeouts")
            self.log.warning(f"⏱️ Timeout ({self.timeout_s:.1f}s) processando {candidate.id}")
            return []
        except Exception as e:
            self._inc("errors")
            self.log.error(f"❌ Falha processando {candidate.id}: {e}")
            return []
        return list(sugestao.breakdown.strategy_scores)

    async def _pontuar(self, candidate: ScoredCell, context: ExpansionContext, orchestrator) -> StrategicSuggestion:
        try:
            return await asyncio.wait_for(orchestrator.score_candidate(candidate, context), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            self._inc("timeouts")
            raise

    # ============================================================
    # 📦 Lote
    # ============================================================
    async def process_candidate_batch(
        self, candidates: Sequence[ScoredCell], context: ExpansionContext, orchestrator
    ) -> BatchProcessingResult:
        inicio = time.perf_counter()
        total = len(candidates)
        processados: List[StrategicSuggestion] = []
        falhas: List[str] = []
        erros = 0

        self.log.info(f"🚀 Processando {total} candidatos | concorrência={self.max_concurrency}")

        for i in range(0, total, self.max_concurrency):
            lote = candidates[i:i + self.max_concurrency]
            resultados = await asyncio.gather(
                *(self._pontuar(c, context, orchestrator) for c in lote),
                return_exceptions=True,
            )

            for candidato, resultado in zip(lote, resultados):
                if isinstance(resultado, BaseException):
                    falhas.append(candidato.id)
                    if not isinstance(resultado, asyncio.TimeoutError):
                        erros += 1
                    self.log.warning(f"⚠️ Candidato {candidato.id} falhou: {type(resultado).__name__}: {resultado}")
                else:
                    processados.append(resultado)

            self.log.debug(f"📊 Progresso: {min(i + self.max_concurrency, total)}/{total}")

        duracao_ms = (time.perf_counter() - inicio) * 1000
        with self.stats_lock:
            self.stats["batches"] += 1
            self.stats["candidates"] += total
            self.stats["errors"] += erros
            self.stats["total_time_ms"] += duracao_ms

        resultado = BatchProcessingResult(
            processed_candidates=tuple(processados),
            total_processed=total,
            average_processing_time_ms=duracao_ms / total if total else 0.0,
            error_count=len(falhas),
            success_rate=len(processados) / total * 100 if total else 0.0,
            failed_candidate_ids=tuple(falhas),
        )
        self.log.success(
            f"✅ Lote concluído | ok={len(processados)} | falhas={len(falhas)} "
            f"| sucesso={resultado.success_rate:.1f}% | {duracao_ms:.0f}ms"
        )
        return resultado

    def _inc(self, campo: str):
        with self.stats_lock:
            self.stats[campo] += 1

    def get_processing_stats(self) -> Dict[str, float]:
        with self.stats_lock:
            stats = dict(self.stats)
        stats["max_concurrency"] = self.max_concurrency
        stats["timeout_ms"] = self.timeout_s * 1000
        stats["average_time_per_candidate_ms"] = (
            stats["total_time_ms"] / stats["candidates"] if stats["candidates"] else 0.0
        )
        return stats
