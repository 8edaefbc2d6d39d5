# ============================================================
# 📦 src/expansion_scoring/application/expansion_use_case.py
# ============================================================

import json
from typing import Dict, Optional, Sequence

from loguru import logger

from expansion_scoring.application.parallel_strategy_processor import BatchProcessingResult, ParallelStrategyProcessor
from expansion_scoring.application.strategy_orchestrator import build_default_orchestrator
from expansion_scoring.application.strategy_performance_monitor import StrategyPerformanceMonitor
from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import ExpansionContext, RegionFilter, ScoredCell, Store
from expansion_scoring.infrastructure.cache.cache_store import InMemoryCacheStore, PostgresCacheStore
from expansion_scoring.infrastructure.cache.strategy_cache_manager import StrategyCacheManager


def resumir_lote(resultado: BatchProcessingResult, monitor: Optional[StrategyPerformanceMonitor] = None) -> Dict:
    resumo = {
        "total_processed": resultado.total_processed,
        "succeeded": len(resultado.processed_candidates),
        "error_count": resultado.error_count,
        "success_rate": round(resultado.success_rate, 2),
        "average_processing_time_ms": round(resultado.average_processing_time_ms, 1),
        "failed_candidate_ids": list(resultado.failed_candidate_ids),
        "bands": {},
        "dominant_strategies": {},
    }
    for s in resultado.processed_candidates:
        resumo["bands"][s.band] = resumo["bands"].get(s.band, 0) + 1
        chave = s.dominant_strategy.value
        resumo["dominant_strategies"][chave] = resumo["dominant_strategies"].get(chave, 0) + 1

    if monitor is not None:
        resumo["strategy_distribution"] = monitor.generate_distribution_summary()
    return resumo


async def executar_expansao(
    stores: Sequence[Store],
    candidates: Sequence[ScoredCell],
    config: StrategyConfig,
    region: Optional[RegionFilter] = None,
    usar_cache_db: bool = False,
    saida_json: Optional[str] = None,
) -> Dict:
    """
    Pontua um conjunto de candidatos com as quatro estratégias e
    devolve o resumo do lote. Opcionalmente grava as sugestões em JSON.
    """
    store = PostgresCacheStore() if usar_cache_db else InMemoryCacheStore()
    cache = StrategyCacheManager(config, store=store)
    monitor = StrategyPerformanceMonitor()

    orquestrador = build_default_orchestrator(config, stores, cache_manager=cache, monitor=monitor)
    processador = ParallelStrategyProcessor.from_config(config)
    contexto = ExpansionContext.build(stores, config, region)

    logger.info(
        f"🚀 Expansão | lojas={len(stores)} | candidatos={len(candidates)} "
        f"| região={contexto.region.region_key} | cache={'postgres' if usar_cache_db else 'memória'}"
    )
    try:
        resultado = await processador.process_candidate_batch(candidates, contexto, orquestrador)
        estatisticas_cache = cache.get_cache_statistics()["overall"]
    finally:
        if usar_cache_db:
            store.close()

    if saida_json:
        with open(saida_json, "w", encoding="utf-8") as f:
            json.dump([s.to_dict() for s in resultado.processed_candidates], f, ensure_ascii=False, indent=2)
        logger.success(f"💾 Sugestões gravadas em {saida_json}")

    resumo = resumir_lote(resultado, monitor)
    resumo["cache"] = estatisticas_cache
    logger.info("\n" + monitor.get_effectiveness_report())
    return resumo
