# ============================================================
# 📦 src/expansion_scoring/application/strategy_orchestrator.py
# ============================================================

import asyncio
import time
from dataclasses import replace
from typing import Dict, List, Sequence

from loguru import logger

from expansion_scoring.domain.config import ConfigurationError, StrategyConfig, validate_strategy_config
from expansion_scoring.domain.entities import ExpansionContext, ScoredCell, Store
from expansion_scoring.domain.scoring import (
    StrategicRationale,
    StrategicSuggestion,
    StrategyBreakdown,
    StrategyScore,
)
from expansion_scoring.domain.area_classification import AreaClassificationService
from expansion_scoring.domain.cluster_analysis import ClusterAnalysisService
from expansion_scoring.domain.economic_strategy import EconomicStrategy
from expansion_scoring.domain.high_traffic_anchor_strategy import HighTrafficAnchorStrategy
from expansion_scoring.domain.performance_cluster_strategy import PerformanceClusterStrategy
from expansion_scoring.domain.strategy import ExpansionStrategy
from expansion_scoring.domain.white_space_strategy import WhiteSpaceStrategy
from expansion_scoring.infrastructure.demographic_data_service import DemographicDataService
from expansion_scoring.infrastructure.osm_query_service import OSMQueryService
from expansion_scoring.domain.strategy_type import StrategyType


CLASSIFICATION_THRESHOLD = 0.6
HIGHLIGHT_THRESHOLD = 0.5
RISK_THRESHOLD = 0.3
MAX_HIGHLIGHTS = 3
MAX_RISKS = 2

FALLBACK_SCORE = 0.5
FALLBACK_CONFIDENCE = 0.3

CLASSIFICATION_LABELS = {
    StrategyType.WHITE_SPACE: "white_space",
    StrategyType.ECONOMIC: "economic_growth",
    StrategyType.ANCHOR: "anchor_proximity",
    StrategyType.CLUSTER: "cluster_expansion",
}
MULTI_STRATEGY = "multi_strategy"

EXECUTIVE_SUMMARIES = {
    StrategyType.WHITE_SPACE: "Fills significant coverage gap in underserved market",
    StrategyType.ECONOMIC: "High-growth market with strong economic indicators",
    StrategyType.ANCHOR: "Premium location with natural footfall generators",
    StrategyType.CLUSTER: "Replicates proven success patterns from high-performing areas",
}
DEFAULT_EXECUTIVE_SUMMARY = "Strategic location identified for expansion"

RISK_FACTORS = {
    StrategyType.WHITE_SPACE: "Market already served by nearby stores",
    StrategyType.ECONOMIC: "Limited economic growth indicators",
    StrategyType.ANCHOR: "Limited natural footfall generators nearby",
    StrategyType.CLUSTER: "No proven success patterns in area",
}

COMPETITIVE_ADVANTAGES = {
    StrategyType.WHITE_SPACE: "First-mover advantage in underserved market",
    StrategyType.ECONOMIC: "Positioned in high-growth demographic corridor",
    StrategyType.ANCHOR: "Premium location with guaranteed footfall",
    StrategyType.CLUSTER: "Leverages proven success formula",
}


# ============================================================
# 🧮 Agregação (funções puras)
# ============================================================
def fallback_score(strategy_type: StrategyType) -> StrategyScore:
    return StrategyScore(
        strategy_type=strategy_type,
        score=FALLBACK_SCORE,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=f"{strategy_type.value} strategy unavailable - using fallback",
        metadata=None,
    )


def normalize_scores(scores: Sequence[StrategyScore]) -> List[StrategyScore]:
    """Limita cada score a [0, 1] (corte, sem reescala)."""
    return [
        StrategyScore(s.strategy_type, max(0.0, min(1.0, s.score)), s.confidence, s.reasoning, s.metadata)
        for s in scores
    ]


def identify_dominant_strategy(scores: Sequence[StrategyScore], weights: Dict[StrategyType, float]) -> StrategyType:
    """
    Maior contribuição score × peso. Empates ficam com a primeira
    estratégia na ordem fixa do enum.
    """
    por_tipo = {s.strategy_type: s for s in scores}
    dominante, maior = StrategyType.WHITE_SPACE, -1.0
    for tipo in StrategyType:
        if tipo not in por_tipo:
            continue
        contribuicao = por_tipo[tipo].score * weights[tipo]
        if contribuicao > maior:
            dominante, maior = tipo, contribuicao
    return dominante


def classify_strategically(valores: Dict[StrategyType, float]) -> str:
    acima = [t for t in StrategyType if valores.get(t, 0.0) > CLASSIFICATION_THRESHOLD]
    if len(acima) > 1:
        return MULTI_STRATEGY
    if len(acima) == 1:
        return CLASSIFICATION_LABELS[acima[0]]

    melhor, maior = StrategyType.WHITE_SPACE, -1.0
    for tipo in StrategyType:
        if valores.get(tipo, 0.0) > maior:
            melhor, maior = tipo, valores.get(tipo, 0.0)
    return CLASSIFICATION_LABELS[melhor]


def confidence_band(weighted_total: float) -> str:
    if weighted_total >= 0.7:
        return "HIGH"
    if weighted_total >= 0.5:
        return "MEDIUM"
    if weighted_total >= 0.3:
        return "LOW"
    return "INSUFFICIENT_DATA"


def build_breakdown(scores: Sequence[StrategyScore], weights: Dict[StrategyType, float]) -> StrategyBreakdown:
    valores = {t: 0.0 for t in StrategyType}
    for s in scores:
        valores[s.strategy_type] = s.score

    return StrategyBreakdown(
        white_space_score=valores[StrategyType.WHITE_SPACE],
        economic_score=valores[StrategyType.ECONOMIC],
        anchor_score=valores[StrategyType.ANCHOR],
        cluster_score=valores[StrategyType.CLUSTER],
        weighted_total=sum(valores[t] * weights[t] for t in StrategyType),
        strategy_scores=tuple(scores),
    )


def build_rationale(scores: Sequence[StrategyScore], dominante: StrategyType) -> StrategicRationale:
    tipos = {s.strategy_type for s in scores}
    resumo = EXECUTIVE_SUMMARIES[dominante] if dominante in tipos else DEFAULT_EXECUTIVE_SUMMARY

    destaques = [s.reasoning for s in scores if s.score > HIGHLIGHT_THRESHOLD][:MAX_HIGHLIGHTS]
    riscos = [RISK_FACTORS[s.strategy_type] for s in scores if s.score < RISK_THRESHOLD][:MAX_RISKS]

    completude = sum(s.confidence for s in scores) / len(scores) if scores else 0.0

    return StrategicRationale(
        executive_summary=resumo,
        strategic_highlights=tuple(destaques),
        risk_factors=tuple(riscos),
        competitive_advantage=COMPETITIVE_ADVANTAGES[dominante],
        data_completeness=max(0.0, min(1.0, completude)),
    )


# ============================================================
# 🎼 Orquestrador
# ============================================================
class StrategyOrchestrator:
    """
    Executa as estratégias habilitadas em paralelo, normaliza e pondera
    os scores e monta a sugestão estratégica de cada candidato.
    """

    def __init__(self, config: StrategyConfig, log=None, monitor=None, cache_manager=None):
        self.config = validate_strategy_config(config)
        self.strategies: Dict[StrategyType, ExpansionStrategy] = {}
        self.monitor = monitor
        self.cache_manager = cache_manager
        self.log = (log or logger).bind(componente="orquestrador")
        self.log.info(
            f"🎼 Orquestrador iniciado | habilitadas={[t.value for t in config.enabled_strategies]}"
        )

    def register_strategy(self, strategy: ExpansionStrategy) -> None:
        if not strategy.validate_config(self.config):
            raise ConfigurationError(f"Configuração inválida para {strategy.get_strategy_name()}")
        self.strategies[strategy.strategy_type] = strategy
        self.log.debug(f"📝 Estratégia registrada: {strategy.get_strategy_name()}")

    def get_config(self) -> StrategyConfig:
        return self.config

    def update_config(self, **changes) -> StrategyConfig:
        """
        Aplica alterações somente se a nova configuração for válida
        para o orquestrador e para todas as estratégias registradas.
        """
        try:
            nova = self.config.with_changes(**changes)
        except ValueError as e:
            raise ConfigurationError(f"Atualização de configuração inválida: {e}") from e

        validate_strategy_config(nova)
        for strategy in self.strategies.values():
            if not strategy.validate_config(nova):
                raise ConfigurationError(f"Configuração inválida para {strategy.get_strategy_name()}")

        self.config = nova
        self.log.info(f"⚙️ Configuração atualizada: {sorted(changes)}")
        return nova

    # ============================================================
    # 🎯 Pontuação de um candidato
    # ============================================================
    async def score_candidate(self, candidate: ScoredCell, context: ExpansionContext) -> StrategicSuggestion:
        inicio = time.perf_counter()
        config = self.config

        # estratégias pontuam com a mesma configuração usada na ponderação
        if context.config != config:
            context = replace(context, config=config)

        brutos = await self._executar_estrategias(candidate, context.stores, context)
        normalizados = normalize_scores(brutos)

        breakdown = build_breakdown(normalizados, config.weights)
        dominante = identify_dominant_strategy(normalizados, config.weights)
        valores = {t: breakdown.score_for(t) for t in StrategyType}
        classificacao = classify_strategically(valores)
        rationale = build_rationale(normalizados, dominante)

        sugestao = StrategicSuggestion(
            candidate_id=candidate.id,
            lat=candidate.lat,
            lng=candidate.lng,
            confidence=breakdown.weighted_total,
            band=confidence_band(breakdown.weighted_total),
            breakdown=breakdown,
            dominant_strategy=dominante,
            strategic_classification=classificacao,
            rationale=rationale,
            rationale_text=rationale.executive_summary,
        )

        duracao_ms = (time.perf_counter() - inicio) * 1000
        if self.monitor is not None:
            for s in brutos:
                self.monitor.record_strategy_score(s, dominante)
            self.monitor.record_processing_time(duracao_ms)

        if self.cache_manager is not None:
            await asyncio.to_thread(
                self.cache_manager.set_strategy_result,
                candidate.lat,
                candidate.lng,
                sugestao.to_dict(),
                {"weights": [w for w in config.weights.values()], "enabled": [t.value for t in config.enabled_strategies]},
            )

        self.log.debug(
            f"🎯 {candidate.id} | total={breakdown.weighted_total:.3f} | dominante={dominante.value} "
            f"| classe={classificacao} | {duracao_ms:.0f}ms"
        )
        return sugestao

    async def _executar_estrategias(
        self, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> List[StrategyScore]:
        tarefas = []
        for tipo in self.config.enabled_strategies:
            strategy = self.strategies.get(tipo)
            if strategy is None:
                self.log.warning(f"⚠️ Estratégia {tipo.value} não registrada, ignorando")
                continue
            tarefas.append(self._executar_com_fallback(strategy, candidate, stores, context))

        return list(await asyncio.gather(*tarefas))

    async def _executar_com_fallback(
        self, strategy: ExpansionStrategy, candidate: ScoredCell, stores: Sequence[Store], context: ExpansionContext
    ) -> StrategyScore:
        try:
            return await strategy.score_candidate(candidate, stores, context)
        except Exception as e:
            self.log.error(f"❌ {strategy.get_strategy_name()} falhou para {candidate.id}: {e}")
            return fallback_score(strategy.strategy_type)


# ============================================================
# 🏗️ Montagem padrão (quatro estratégias + provedores)
# ============================================================
def build_default_orchestrator(
    config: StrategyConfig,
    stores: Sequence[Store] = (),
    cache_manager=None,
    monitor=None,
    log=None,
) -> StrategyOrchestrator:
    orquestrador = StrategyOrchestrator(config, log=log, monitor=monitor, cache_manager=cache_manager)
    orquestrador.register_strategy(
        WhiteSpaceStrategy(AreaClassificationService(config, cache=cache_manager, log=log), log=log)
    )
    orquestrador.register_strategy(
        EconomicStrategy(DemographicDataService(config, stores, cache=cache_manager, log=log), log=log)
    )
    orquestrador.register_strategy(
        HighTrafficAnchorStrategy(OSMQueryService(config, cache=cache_manager, log=log), log=log)
    )
    orquestrador.register_strategy(
        PerformanceClusterStrategy(ClusterAnalysisService(config, cache=cache_manager, log=log), log=log)
    )
    return orquestrador
