"""
Daily spend history and a short-range cost projection for the trend charts.
Both series are regenerated on every call; nothing here is cached.
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from formatters import average


@dataclass
class HistoricalCostData:
    date: str
    total_cost: float
    experiments: int
    avg_utilization: float


@dataclass
class CostProjection:
    date: str
    projected_cost: float
    confidence: str  # high | medium | low


def generate_historical_data(days: int = 30, rng: Optional[random.Random] = None, today: Optional[date] = None) -> list[HistoricalCostData]:
    rng = rng or random.Random()
    today = today or date.today()

    data = []
    for i in range(days - 1, -1, -1):
        day = today - timedelta(days=i)
        data.append(HistoricalCostData(
            date=day.isoformat(),
            total_cost=round(rng.uniform(800, 1200), 2),
            experiments=rng.randint(2, 6),
            avg_utilization=round(rng.uniform(45, 80), 1),
        ))
    return data


def _confidence(day_offset: int) -> str:
    if day_offset <= 3:
        return "high"
    if day_offset <= 5:
        return "medium"
    return "low"


def generate_cost_projection(history: list[HistoricalCostData], days_to_project: int = 7, rng: Optional[random.Random] = None) -> list[CostProjection]:
    """Project daily cost from the 7-day moving average with a 2%/day upward trend."""
    if not history:
        return []
    rng = rng or random.Random()

    avg_daily_cost = average(d.total_cost for d in history[-7:])
    last_date = date.fromisoformat(history[-1].date)

    projections = []
    for i in range(1, days_to_project + 1):
        variance = rng.uniform(-0.15, 0.15)
        trend = 1 + i * 0.02
        projections.append(CostProjection(
            date=(last_date + timedelta(days=i)).isoformat(),
            projected_cost=round(avg_daily_cost * trend * (1 + variance), 2),
            confidence=_confidence(i),
        ))
    return projections
