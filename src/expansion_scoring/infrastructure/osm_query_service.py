# ============================================================
# 📦 src/expansion_scoring/infrastructure/osm_query_service.py
# ============================================================

import asyncio
import threading
import time
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence, Tuple

import requests
from loguru import logger

from expansion_scoring.domain.config import StrategyConfig
from expansion_scoring.domain.entities import OSMFeature
from expansion_scoring.domain.haversine_utils import bounding_box


# categoria -> filtros Overpass (chave, valor)
CATEGORY_TAGS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "transport": (("railway", "station"), ("public_transport", "station"), ("amenity", "bus_station")),
    "education": (("amenity", "university"), ("amenity", "college"), ("amenity", "school")),
    "retail": (("shop", "mall"), ("shop", "supermarket"), ("landuse", "retail")),
    "service": (("highway", "services"), ("amenity", "fuel")),
}


def build_overpass_query(lat: float, lng: float, radius_m: float, categories: Sequence[str]) -> str:
    """Consulta Overpass QL limitada à caixa que envolve o raio."""
    south, west, north, east = bounding_box(lat, lng, radius_m)
    bbox = f"{south:.6f},{west:.6f},{north:.6f},{east:.6f}"

    filtros = []
    for categoria in categories:
        for chave, valor in CATEGORY_TAGS.get(categoria, ()):
            filtros.append(f'  nwr["{chave}"="{valor}"]({bbox});')

    return "[out:json][timeout:25];\n(\n" + "\n".join(filtros) + "\n);\nout geom;"


def parse_overpass_element(el: dict) -> Optional[OSMFeature]:
    """Converte um elemento Overpass em OSMFeature (nós, vias e relações)."""
    if "lat" in el and "lon" in el:
        lat, lng = el["lat"], el["lon"]
    elif "center" in el:
        lat, lng = el["center"]["lat"], el["center"]["lon"]
    elif "bounds" in el:
        b = el["bounds"]
        lat, lng = (b["minlat"] + b["maxlat"]) / 2, (b["minlon"] + b["maxlon"]) / 2
    elif el.get("geometry"):
        pontos = el["geometry"]
        lat = sum(p["lat"] for p in pontos) / len(pontos)
        lng = sum(p["lon"] for p in pontos) / len(pontos)
    else:
        return None

    tags = {str(k): str(v) for k, v in (el.get("tags") or {}).items()}
    return OSMFeature(
        id=int(el.get("id", 0)),
        type=el.get("type", "node"),
        lat=float(lat),
        lng=float(lng),
        tags=tags,
        name=tags.get("name"),
    )


class AsyncRateLimiter:
    """Garante um intervalo mínimo entre requisições (1 / req_por_seg)."""

    def __init__(self, requests_per_sec: float):
        self.min_interval = 1.0 / requests_per_sec
        self._ultimo = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            espera = self._ultimo + self.min_interval - time.monotonic()
            if espera > 0:
                await asyncio.sleep(espera)
            self._ultimo = time.monotonic()


class OSMQueryService:
    """
    Cliente Overpass (OpenStreetMap) com cache, limite de taxa
    e retentativas com backoff exponencial.
    """

    USER_AGENT = "ExpansionScoring/1.0 (+overpass)"

    def __init__(
        self,
        config: StrategyConfig,
        cache=None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: int = 30,
        log=None,
    ):
        self.url = config.osm_overpass_url
        self.cache = cache
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self.rate_limiter = AsyncRateLimiter(config.osm_rate_limit_per_sec)
        self.log = (log or logger).bind(componente="osm")

        self.stats = {"requests": 0, "cache_hits": 0, "cache_misses": 0, "failures": 0}
        self.stats_lock = threading.Lock()

    def _inc(self, campo: str):
        with self.stats_lock:
            self.stats[campo] += 1

    # ============================================================
    # 🌐 Consulta principal
    # ============================================================
    async def query_pois(
        self, lat: float, lng: float, radius_m: float, categories: Sequence[str]
    ) -> List[OSMFeature]:
        if self.cache is not None:
            em_cache = await asyncio.to_thread(self.cache.get_osm, lat, lng, radius_m, categories)
            if em_cache is not None:
                self._inc("cache_hits")
                return [OSMFeature(**f) for f in em_cache]
        self._inc("cache_misses")

        query = build_overpass_query(lat, lng, radius_m, categories)
        dados = await self._executar_com_retentativas(query)
        if dados is None:
            return []

        features = [f for f in map(parse_overpass_element, dados.get("elements", [])) if f is not None]
        self.log.debug(f"🗺️ Overpass {list(categories)} r={radius_m:.0f}m -> {len(features)} feições")

        if self.cache is not None:
            await asyncio.to_thread(self.cache.set_osm, lat, lng, radius_m, categories, [asdict(f) for f in features])
        return features

    async def _executar_com_retentativas(self, query: str) -> Optional[dict]:
        for tentativa in range(1, self.max_retries + 1):
            await self.rate_limiter.acquire()
            self._inc("requests")
            try:
                return await asyncio.to_thread(self._post, query)
            except (requests.RequestException, ValueError) as e:
                if tentativa == self.max_retries:
                    self._inc("failures")
                    self.log.error(f"❌ Overpass falhou após {tentativa} tentativas: {e}")
                    return None
                espera = self.base_delay * (2 ** (tentativa - 1))
                self.log.warning(
                    f"⚠️ Overpass erro (tentativa {tentativa}/{self.max_retries}): {e} | aguardando {espera:.1f}s"
                )
                await asyncio.sleep(espera)
        return None

    def _post(self, query: str) -> dict:
        r = requests.post(
            self.url,
            data={"data": query},
            headers={"User-Agent": self.USER_AGENT},
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    # ============================================================
    # 🧭 Atalhos por categoria
    # ============================================================
    async def get_transport_hubs(self, lat: float, lng: float, radius_m: float) -> List[OSMFeature]:
        return await self.query_pois(lat, lng, radius_m, ["transport"])

    async def get_educational_institutions(self, lat: float, lng: float, radius_m: float) -> List[OSMFeature]:
        return await self.query_pois(lat, lng, radius_m, ["education"])

    async def get_retail_centers(self, lat: float, lng: float, radius_m: float) -> List[OSMFeature]:
        return await self.query_pois(lat, lng, radius_m, ["retail"])

    async def get_service_stations(self, lat: float, lng: float, radius_m: float) -> List[OSMFeature]:
        return await self.query_pois(lat, lng, radius_m, ["service"])

    def get_stats(self) -> Dict[str, float]:
        with self.stats_lock:
            stats = dict(self.stats)
        consultas = stats["cache_hits"] + stats["cache_misses"]
        stats["cache_hit_rate"] = stats["cache_hits"] / consultas if consultas else 0.0
        return stats
