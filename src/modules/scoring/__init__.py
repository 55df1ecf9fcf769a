"""
Scoring Module
==============

Domain: Daily point deltas and the scheduled scoring pipeline

Components:
- PointTable: Immutable position / bonus weights
- calculator: Pure delta computation
- pipeline.DailyScoringPipeline: Ledger -> deltas -> leaderboard -> history -> flairs
  (import from ``src.modules.scoring.pipeline``; it depends on the other modules)
"""

from .calculator import compute_daily_deltas
from .point_table import PointTable

__all__ = [
    "compute_daily_deltas",
    "PointTable",
]
