# ==========================================================
# 📦 src/expansion_scoring/domain/strategy_type.py
# ==========================================================

from enum import Enum


class StrategyType(str, Enum):
    """
    Estratégias de expansão.
    A ordem de declaração é a prioridade fixa de desempate
    (white_space > economic > anchor > cluster).
    """
    WHITE_SPACE = "white_space"
    ECONOMIC = "economic"
    ANCHOR = "anchor"
    CLUSTER = "cluster"


ALL_STRATEGIES = tuple(StrategyType)
