"""
Display formatting and small aggregate helpers for the GPU spend dashboard.
Pure functions only, shared by the Streamlit app and the terminal CLI.
"""

import math
from datetime import datetime
from typing import Iterable, Optional


# ═══════════════════════════════════════════════════════════════════
# NUMBERS & MONEY
# ═══════════════════════════════════════════════════════════════════
def format_currency(amount: float) -> str:
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_number(num: float) -> str:
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return f"{num:.0f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


# ═══════════════════════════════════════════════════════════════════
# DATES & DURATIONS
# ═══════════════════════════════════════════════════════════════════
def format_date(date: datetime) -> str:
    return f"{date:%b} {date.day}, {date.year}"


def format_datetime(date: datetime) -> str:
    return f"{date:%b} {date.day}, {date:%I:%M %p}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _band_hours(hours: float) -> str:
    """Shared banding for durations: minutes, hours+minutes, days+hours."""
    if hours < 24:
        total_minutes = _round_half_up(hours * 60)
        if total_minutes < 60:
            return f"{total_minutes}m"
        h, m = divmod(total_minutes, 60)
        if h < 24:
            return f"{h}h {m}m" if m > 0 else f"{h}h"
        # rounded up to a full day
        days, h = divmod(h, 24)
    else:
        days = int(hours // 24)
        h = int(hours % 24)
    return f"{days}d {h}h" if h > 0 else f"{days}d"


def format_duration(hours: float) -> str:
    return _band_hours(max(hours, 0.0))


def format_eta(hours: float) -> str:
    """Human-readable time remaining, e.g. ``"2h 15m"`` or ``"1d 1h"``."""
    if hours < 1 / 60:
        return "less than 1 minute"
    return _band_hours(hours)


def relative_time(date: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(date.tzinfo)
    diff_mins = math.floor((now - date).total_seconds() / 60)

    if diff_mins < 1:
        return "just now"
    if diff_mins < 60:
        return f"{diff_mins}m ago"

    diff_hours = diff_mins // 60
    if diff_hours < 24:
        return f"{diff_hours}h ago"

    diff_days = diff_hours // 24
    if diff_days < 7:
        return f"{diff_days}d ago"

    return format_date(date)


# ═══════════════════════════════════════════════════════════════════
# SCORES, RATINGS & BADGES
# ═══════════════════════════════════════════════════════════════════
def calculate_roi(accuracy_gain: float, cost: float) -> float:
    """Accuracy points gained per dollar, scaled x100 (higher is better)."""
    if cost <= 0:
        return 0.0
    return (accuracy_gain / cost) * 100


STATUS_COLORS = {
    "running": "#8b5cf6",
    "completed": "#22c55e",
    "failed": "#ef4444",
    "queued": "#f59e0b",
}


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, "#64748b")


def efficiency_rating(utilization: float) -> dict:
    if utilization >= 70:
        return {"label": "Excellent", "color": "green"}
    if utilization >= 50:
        return {"label": "Good", "color": "blue"}
    if utilization >= 30:
        return {"label": "Fair", "color": "yellow"}
    return {"label": "Poor", "color": "red"}


# ═══════════════════════════════════════════════════════════════════
# REDUCTIONS
# ═══════════════════════════════════════════════════════════════════
def total(values: Iterable[float]) -> float:
    return float(sum(values))


def average(values: Iterable[float], default: float = 0.0) -> float:
    """Mean of ``values``; ``default`` for an empty collection instead of NaN."""
    items = list(values)
    if not items:
        return default
    return sum(items) / len(items)
