"""
Dashboard view model shared by the Streamlit app and the terminal CLI.

LiveBoard is the presentation-side cache of the latest simulator snapshot per
experiment; the summary and leaderboard helpers turn the catalog plus live
costs into what the stat cards and tables show.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from experiments import ExperimentCatalog, ExperimentRecord
from formatters import average, efficiency_rating, total
from live_simulator import BudgetAlert, LiveCostSimulator, LiveCostUpdate

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_BUDGET = 50_000.0
MAX_ALERT_FEED = 20


# ═══════════════════════════════════════════════════════════════════
# SUMMARY
# ═══════════════════════════════════════════════════════════════════
@dataclass
class DashboardSummary:
    historical_spend: float = 0.0
    running_spend: float = 0.0
    current_total: float = 0.0
    monthly_budget: float = 0.0
    budget_used_pct: float = 0.0
    budget_level: str = "ok"  # ok | warning | critical
    running_count: int = 0
    completed_count: int = 0
    avg_cost: float = 0.0
    avg_utilization: float = 0.0
    efficiency_label: str = ""


def budget_level(used_pct: float) -> str:
    if used_pct >= 90:
        return "critical"
    if used_pct >= 75:
        return "warning"
    return "ok"


def summarize(catalog: ExperimentCatalog, running_costs: Mapping[str, float], monthly_budget: float) -> DashboardSummary:
    historical = catalog.total_spend()
    running = total(running_costs.values())
    current = historical + running
    used_pct = current / monthly_budget * 100 if monthly_budget > 0 else 0.0

    completed = catalog.completed()
    avg_utilization = average(e.avg_gpu_utilization for e in completed)

    return DashboardSummary(
        historical_spend=historical,
        running_spend=running,
        current_total=current,
        monthly_budget=monthly_budget,
        budget_used_pct=used_pct,
        budget_level=budget_level(used_pct),
        running_count=len(catalog.running),
        completed_count=len(completed),
        avg_cost=average(e.total_cost for e in completed),
        avg_utilization=avg_utilization,
        efficiency_label=efficiency_rating(avg_utilization)["label"] if completed else "N/A",
    )


def top_expensive(catalog: ExperimentCatalog, n: int = 5) -> list[ExperimentRecord]:
    return sorted(catalog.experiments, key=lambda e: e.total_cost, reverse=True)[:n]


def best_roi(catalog: ExperimentCatalog, n: int = 5) -> list[ExperimentRecord]:
    return sorted(catalog.completed(), key=lambda e: e.roi, reverse=True)[:n]


def recent_experiments(catalog: ExperimentCatalog, n: int = 10) -> list[ExperimentRecord]:
    return sorted(catalog.experiments, key=lambda e: e.start_time, reverse=True)[:n]


# ═══════════════════════════════════════════════════════════════════
# LIVE BOARD
# ═══════════════════════════════════════════════════════════════════
class LiveBoard:
    """Latest LiveCostUpdate per experiment plus the alerts received.

    Callbacks arrive on simulator timer threads, readers are the render loop.
    """

    def __init__(self, catalog: ExperimentCatalog, simulator: LiveCostSimulator, monthly_budget: float = DEFAULT_MONTHLY_BUDGET):
        self.catalog = catalog
        self.simulator = simulator
        self.monthly_budget = monthly_budget
        self._lock = threading.Lock()
        self._updates: dict[str, LiveCostUpdate] = {}
        self._alerts: list[BudgetAlert] = []

    def start(self) -> None:
        for record in self.catalog.running:
            self.simulator.start_simulation(record.id, record.cost_per_hour, self.on_update)

    def stop(self) -> None:
        self.simulator.stop_all_simulations()

    def on_update(self, update: LiveCostUpdate) -> None:
        with self._lock:
            self._updates[update.experiment_id] = update
        spend = self.catalog.total_spend() + total(self.running_costs().values())
        self.simulator.check_budget_alerts(spend, self.monthly_budget, self.on_alert, experiment_id=update.experiment_id)

    def on_alert(self, alert: BudgetAlert) -> None:
        with self._lock:
            self._alerts.insert(0, alert)
            del self._alerts[MAX_ALERT_FEED:]

    def latest(self, experiment_id: str) -> Optional[LiveCostUpdate]:
        with self._lock:
            return self._updates.get(experiment_id)

    def running_costs(self) -> dict[str, float]:
        """Latest cost per running experiment; records without a tick yet use their base cost."""
        with self._lock:
            updates = dict(self._updates)
        return {
            r.id: updates[r.id].current_cost if r.id in updates else r.total_cost
            for r in self.catalog.running
        }

    def alerts(self) -> list[BudgetAlert]:
        with self._lock:
            return list(self._alerts)

    def summary(self) -> DashboardSummary:
        return summarize(self.catalog, self.running_costs(), self.monthly_budget)


class LiveBoardSlot:
    """Holds the single live board of a process.

    Switching to a new key stops the previous board before the new one starts,
    so only one set of simulations is ever ticking.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._key = None
        self._board: Optional[LiveBoard] = None

    def switch(self, key, factory: Callable[[], LiveBoard]) -> LiveBoard:
        with self._lock:
            if self._board is not None and self._key == key:
                return self._board
            if self._board is not None:
                self._board.stop()
                logger.info(f"Stopped live board for {self._key!r}")
            board = factory()
            board.start()
            self._key, self._board = key, board
            return board

    @property
    def board(self) -> Optional[LiveBoard]:
        with self._lock:
            return self._board

    def close(self) -> None:
        with self._lock:
            if self._board is not None:
                self._board.stop()
            self._key, self._board = None, None
