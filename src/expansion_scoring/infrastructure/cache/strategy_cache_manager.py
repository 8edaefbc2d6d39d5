# ==========================================================
# 📦 src/expansion_scoring/infrastructure/cache/strategy_cache_manager.py
# ==========================================================

import hashlib
import json
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.infrastructure.cache.cache_store import InMemoryCacheStore


class CacheLayer(str, Enum):
    DEMOGRAPHIC = "demographic"
    OSM = "osm"
    CLUSTER = "cluster"
    STRATEGY = "strategy"


def _agora_utc() -> datetime:
    return datetime.now(timezone.utc)


def generate_cache_key(lat: float, lng: float, radius: Optional[float] = None, params: Optional[dict] = None) -> str:
    """
    Chave determinística: MD5 de coordenadas arredondadas (3 casas),
    raio e parâmetros ordenados.
    """
    partes = [f"{lat:.3f},{lng:.3f}"]
    if radius is not None:
        partes.append(f"r={float(radius):g}")
    if params:
        partes.append(json.dumps(params, sort_keys=True, default=str))
    return hashlib.md5("|".join(partes).encode("utf-8")).hexdigest()


class StrategyCacheManager:
    """
    Cache em camadas (demográfico, OSM, clusters, resultado de estratégia),
    cada uma com TTL próprio. Entradas vencidas são removidas na leitura.
    """

    def __init__(
        self,
        config: Optional[StrategyConfig] = None,
        store=None,
        clock: Callable[[], datetime] = _agora_utc,
        log=None,
    ):
        config = config or StrategyConfig()
        self.store = store or InMemoryCacheStore()
        self.clock = clock
        self.log = (log or logger).bind(componente="cache")

        self.ttls: Dict[CacheLayer, timedelta] = {
            CacheLayer.DEMOGRAPHIC: timedelta(days=config.demographic_cache_ttl_days),
            CacheLayer.OSM: timedelta(days=config.osm_cache_ttl_days),
            CacheLayer.CLUSTER: timedelta(days=config.cluster_cache_ttl_days),
            CacheLayer.STRATEGY: timedelta(hours=config.strategy_cache_ttl_hours),
        }

        self.stats = {layer: {"hits": 0, "misses": 0} for layer in CacheLayer}
        self.stats_lock = threading.Lock()

    # ============================================================
    # 🔑 Operações genéricas
    # ============================================================
    def get(self, layer: CacheLayer, key: str) -> Optional[Any]:
        try:
            entrada = self.store.get(layer.value, key)
        except Exception as e:
            self.log.warning(f"⚠️ Falha lendo cache [{layer.value}]: {e}")
            entrada = None

        if entrada is not None:
            valor, expira_em = entrada
            if expira_em > self.clock():
                self._contar(layer, "hits")
                return valor
            try:
                self.store.delete(layer.value, key)
            except Exception as e:
                self.log.warning(f"⚠️ Falha removendo entrada vencida [{layer.value}]: {e}")

        self._contar(layer, "misses")
        return None

    def set(self, layer: CacheLayer, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        expira_em = self.clock() + (ttl or self.ttls[layer])
        try:
            self.store.set(layer.value, key, value, expira_em)
        except Exception as e:
            self.log.warning(f"⚠️ Falha gravando cache [{layer.value}]: {e}")

    def _contar(self, layer: CacheLayer, campo: str):
        with self.stats_lock:
            self.stats[layer][campo] += 1

    # ============================================================
    # 🧩 Atalhos por camada
    # ============================================================
    def get_demographic(self, lat: float, lng: float, kind: str = "indicators"):
        return self.get(CacheLayer.DEMOGRAPHIC, generate_cache_key(lat, lng, params={"kind": kind}))

    def set_demographic(self, lat: float, lng: float, value, kind: str = "indicators"):
        self.set(CacheLayer.DEMOGRAPHIC, generate_cache_key(lat, lng, params={"kind": kind}), value)

    def get_osm(self, lat: float, lng: float, radius_m: float, categories: Iterable[str]):
        return self.get(CacheLayer.OSM, generate_cache_key(lat, lng, radius_m, {"types": sorted(categories)}))

    def set_osm(self, lat: float, lng: float, radius_m: float, categories: Iterable[str], value):
        self.set(CacheLayer.OSM, generate_cache_key(lat, lng, radius_m, {"types": sorted(categories)}), value)

    def get_clusters(self, region_key: str):
        return self.get(CacheLayer.CLUSTER, f"clusters:{region_key}")

    def set_clusters(self, region_key: str, value):
        self.set(CacheLayer.CLUSTER, f"clusters:{region_key}", value)

    def get_strategy_result(self, lat: float, lng: float, params: Optional[dict] = None):
        return self.get(CacheLayer.STRATEGY, generate_cache_key(lat, lng, params=params))

    def set_strategy_result(self, lat: float, lng: float, value, params: Optional[dict] = None):
        self.set(CacheLayer.STRATEGY, generate_cache_key(lat, lng, params=params), value)

    # ============================================================
    # 🧹 Manutenção e estatísticas
    # ============================================================
    def cleanup_expired_entries(self) -> Dict[str, int]:
        agora = self.clock()
        removidas = {}
        for layer in CacheLayer:
            try:
                removidas[layer.value] = self.store.delete_expired(layer.value, agora)
            except Exception as e:
                self.log.warning(f"⚠️ Falha na limpeza [{layer.value}]: {e}")
                removidas[layer.value] = 0

        total = sum(removidas.values())
        if total:
            self.log.info(f"🧹 {total} entradas vencidas removidas do cache")
        return removidas

    def get_cache_statistics(self) -> Dict[str, Dict[str, float]]:
        agora = self.clock()
        resultado = {}
        total_hits = total_misses = total_entries = total_expired = 0

        with self.stats_lock:
            snapshot = {layer: dict(valores) for layer, valores in self.stats.items()}

        for layer in CacheLayer:
            hits, misses = snapshot[layer]["hits"], snapshot[layer]["misses"]
            try:
                entradas, vencidas = self.store.count(layer.value, agora)
            except Exception as e:
                self.log.warning(f"⚠️ Falha contando entradas [{layer.value}]: {e}")
                entradas, vencidas = 0, 0

            resultado[layer.value] = {
                "hits": hits,
                "misses": misses,
                "hit_rate": hits / (hits + misses) if hits + misses else 0.0,
                "total_entries": entradas,
                "expired_entries": vencidas,
            }
            total_hits += hits
            total_misses += misses
            total_entries += entradas
            total_expired += vencidas

        resultado["overall"] = {
            "hits": total_hits,
            "misses": total_misses,
            "hit_rate": total_hits / (total_hits + total_misses) if total_hits + total_misses else 0.0,
            "total_entries": total_entries,
            "expired_entries": total_expired,
        }
        return resultado

    def reset_cache_stats(self) -> None:
        with self.stats_lock:
            for valores in self.stats.values():
                valores["hits"] = 0
                valores["misses"] = 0
