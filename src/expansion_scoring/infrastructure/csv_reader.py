# ============================================================
# 📦 src/expansion_scoring/infrastructure/csv_reader.py
# ============================================================

from typing import List, Optional

import pandas as pd
from loguru import logger

from expansion_scoring.domain.entities import ScoredCell, Store


STORE_ALIASES = {
    "id": ("id", "store_id"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "annual_turnover": ("annual_turnover", "turnover"),
    "city_population_band": ("city_population_band", "population_band"),
    "status": ("status",),
    "country": ("country",),
    "region": ("region",),
}

CANDIDATE_ALIASES = {
    "id": ("id", "cell_id"),
    "lat": ("lat", "latitude"),
    "lng": ("lng", "lon", "longitude"),
    "score": ("score",),
}


def _ler(path: str, aliases: dict) -> pd.DataFrame:
    df = pd.read_csv(path, sep=None, engine="python", encoding="utf-8", dtype=str, keep_default_na=False)
    df.columns = [c.strip().lower() for c in df.columns]

    renomear = {}
    for canonica, opcoes in aliases.items():
        for alias in opcoes:
            if alias in df.columns:
                renomear[alias] = canonica
                break
    df = df.rename(columns=renomear)

    for coluna in aliases:
        if coluna not in df.columns:
            df[coluna] = ""
    return df


def _float(valor) -> Optional[float]:
    valor = str(valor).strip().replace(",", ".")
    if not valor:
        return None
    try:
        return float(valor)
    except ValueError:
        return None


def _texto(valor) -> Optional[str]:
    valor = str(valor).strip()
    return valor or None


def ler_lojas(path: str) -> List[Store]:
    df = _ler(path, STORE_ALIASES)
    lojas = [
        Store(
            id=_texto(r["id"]) or f"store-{i + 1}",
            latitude=_float(r["latitude"]),
            longitude=_float(r["longitude"]),
            annual_turnover=_float(r["annual_turnover"]),
            city_population_band=(_texto(r["city_population_band"]) or "").lower() or None,
            status=_texto(r["status"]) or "open",
            country=_texto(r["country"]),
            region=_texto(r["region"]),
        )
        for i, r in df.iterrows()
    ]
    sem_coord = sum(1 for s in lojas if not s.has_location)
    logger.info(f"🏪 {len(lojas)} lojas lidas de {path} ({sem_coord} sem coordenadas)")
    return lojas


def ler_candidatos(path: str) -> List[ScoredCell]:
    df = _ler(path, CANDIDATE_ALIASES)
    candidatos = []
    for i, r in df.iterrows():
        lat, lng = _float(r["lat"]), _float(r["lng"])
        if lat is None or lng is None:
            logger.warning(f"⚠️ Candidato na linha {i + 2} sem coordenadas, ignorado")
            continue
        candidatos.append(
            ScoredCell(id=_texto(r["id"]) or f"cell-{i + 1}", center=(lng, lat), score=_float(r["score"]))
        )
    logger.info(f"📍 {len(candidatos)} candidatos lidos de {path}")
    return candidatos
