# ==========================================================
# 📦 src/expansion_scoring/domain/haversine_utils.py
# ==========================================================

import math
from typing import Iterable, Optional, Tuple

import numpy as np
from sklearn.neighbors import NearestNeighbors

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


def haversine(coord1, coord2) -> float:
    """
    Distância de grande círculo entre dois pontos (lat, lon) em km.
    """
    lat1, lon1 = coord1
    lat2, lon2 = coord2
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_m(coord1, coord2) -> float:
    return haversine(coord1, coord2) * 1000.0


def nearest_store_distance_km(lat: float, lng: float, stores: Iterable) -> Optional[float]:
    """
    Distância (km) até a loja mais próxima com coordenadas.
    Retorna None quando nenhuma loja tem localização.
    """
    coords = [
        [s.latitude, s.longitude]
        for s in stores
        if s.latitude is not None and s.longitude is not None
    ]
    if not coords:
        return None

    nn = NearestNeighbors(n_neighbors=1, metric="haversine")
    nn.fit(np.radians(np.array(coords, dtype=float)))
    dist, _ = nn.kneighbors(np.radians(np.array([[lat, lng]], dtype=float)))
    return float(dist[0][0] * EARTH_RADIUS_KM)


def centroid(coords) -> Tuple[float, float]:
    """Centro médio simples de uma lista de (lat, lon)."""
    arr = np.array(coords, dtype=float)
    return float(arr[:, 0].mean()), float(arr[:, 1].mean())


def bounding_box(lat: float, lng: float, radius_m: float) -> Tuple[float, float, float, float]:
    """
    Caixa (south, west, north, east) que contém o círculo de raio `radius_m`.
    A longitude é corrigida pelo cosseno da latitude.
    """
    delta_lat = radius_m / (KM_PER_DEGREE * 1000.0)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    delta_lng = delta_lat / cos_lat
    return lat - delta_lat, lng - delta_lng, lat + delta_lat, lng + delta_lng
