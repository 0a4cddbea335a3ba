"""
Live cost simulator for running experiments.

For each running experiment a repeating timer produces a LiveCostUpdate once
per tick: accumulated cost, epoch progress, ETA, a utilization sample and a
throughput sample. The simulator also evaluates monthly-budget alerts and
de-duplicates them over a trailing window.

Usage:
    sim = LiveCostSimulator(catalog.running)
    sim.start_simulation(record.id, record.cost_per_hour, print)
    ...
    sim.stop_all_simulations()
"""

import logging
import math
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from experiments import ExperimentRecord
from formatters import format_eta

logger = logging.getLogger(__name__)

# Base tokens/sec by model-size tier, matched on the lower-cased model name
THROUGHPUT_TIERS = [
    ("70b", 120),
    ("34b", 280),
    ("13b", 450),
    ("7b", 850),
]
DEFAULT_THROUGHPUT = 1200


# ═══════════════════════════════════════════════════════════════════
# SETTINGS & MESSAGES
# ═══════════════════════════════════════════════════════════════════
@dataclass
class SimulatorSettings:
    tick_interval: float = 1.0  # seconds
    alert_dedup_window: float = 300.0  # seconds
    alert_retention: float = 3600.0  # seconds
    utilization_noise: float = 5.0  # +/- percentage points
    throughput_noise: float = 0.10  # +/- fraction of base rate
    warning_pct: float = 75.0
    critical_pct: float = 90.0
    exceeded_pct: float = 100.0


@dataclass
class LiveCostUpdate:
    experiment_id: str
    current_cost: float
    elapsed_hours: float
    estimated_time_remaining: str
    current_epoch: int
    total_epochs: int
    gpu_utilization: float
    throughput: str
    progress: float = 0.0


@dataclass
class BudgetAlert:
    id: str
    kind: str  # warning | critical | exceeded
    message: str
    current_spend: float
    budget_limit: float
    timestamp: datetime
    experiment_id: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════
# SCHEDULING
# ═══════════════════════════════════════════════════════════════════
class RepeatingTimer(threading.Thread):
    """Calls ``function`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, function: Callable[[], None], name: Optional[str] = None):
        super().__init__(name=name, daemon=True)
        self.interval = interval
        self.function = function
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.wait(self.interval):
            self.function()

    def cancel(self):
        self._stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()


class TickScheduler:
    """Hands out one started RepeatingTimer per call."""

    def every(self, interval: float, function: Callable[[], None], name: Optional[str] = None) -> RepeatingTimer:
        timer = RepeatingTimer(interval, function, name=name)
        timer.start()
        return timer


@dataclass
class _Simulation:
    record: ExperimentRecord
    cost_per_hour: float
    on_update: Callable[[LiveCostUpdate], None]
    started_at: float
    base_cost: float
    handle: object = field(default=None, repr=False)


# ═══════════════════════════════════════════════════════════════════
# SIMULATOR
# ═══════════════════════════════════════════════════════════════════
def base_throughput(model_name: str) -> int:
    name = model_name.lower()
    for marker, rate in THROUGHPUT_TIERS:
        if marker in name:
            return rate
    return DEFAULT_THROUGHPUT


class LiveCostSimulator:
    """Owns live cost state and the budget alert list for running experiments.

    Args:
        running: Records that may be simulated. Any other id is ignored.
        settings: Tick period, alert windows, noise and thresholds.
        scheduler: Object with ``every(interval, fn, name)`` returning a
            handle with ``cancel()``. Defaults to a thread-per-id scheduler.
        clock: Monotonic seconds for tick elapsed time, ``time.monotonic`` by default.
        wall_clock: Seconds since the epoch for alert timestamps, ``time.time`` by default.
        rng: Source of utilization and throughput noise.
    """

    def __init__(
        self,
        running: Iterable[ExperimentRecord],
        settings: Optional[SimulatorSettings] = None,
        scheduler=None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or SimulatorSettings()
        self._records = {r.id: r for r in running}
        self._scheduler = scheduler or TickScheduler()
        self._clock = clock
        self._wall_clock = wall_clock
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._simulations: dict[str, _Simulation] = {}
        self._current_costs: dict[str, float] = {}
        self._alerts: list[BudgetAlert] = []

    # ─── Lifecycle ───
    def start_simulation(self, experiment_id: str, cost_per_hour: float, on_update: Callable[[LiveCostUpdate], None]) -> None:
        record = self._records.get(experiment_id)
        if record is None:
            logger.debug(f"Ignoring start for unknown experiment {experiment_id}")
            return

        with self._lock:
            self.stop_simulation(experiment_id)
            base_cost = self._current_costs.get(experiment_id, record.total_cost)
            self._current_costs[experiment_id] = base_cost
            sim = _Simulation(
                record=record,
                cost_per_hour=cost_per_hour,
                on_update=on_update,
                started_at=self._clock(),
                base_cost=base_cost,
            )
            self._simulations[experiment_id] = sim
            sim.handle = self._scheduler.every(
                self.settings.tick_interval, lambda: self._tick(sim), name=f"sim-{experiment_id}"
            )
        logger.info(f"Simulation started for {experiment_id} at {cost_per_hour:.2f}/h from {base_cost:.2f}")

    def stop_simulation(self, experiment_id: str) -> None:
        with self._lock:
            sim = self._simulations.pop(experiment_id, None)
        if sim is not None:
            sim.handle.cancel()
            logger.info(f"Simulation stopped for {experiment_id}")

    def stop_all_simulations(self) -> None:
        with self._lock:
            sims = list(self._simulations.values())
            self._simulations.clear()
        for sim in sims:
            sim.handle.cancel()
        if sims:
            logger.info(f"Stopped {len(sims)} simulation(s)")

    def complete_experiment(self, experiment_id: str, on_complete: Callable[[float], None]) -> None:
        self.stop_simulation(experiment_id)
        on_complete(self.get_current_cost(experiment_id))

    def active_simulations(self) -> list[str]:
        with self._lock:
            return list(self._simulations)

    # ─── Costs ───
    def get_current_cost(self, experiment_id: str) -> float:
        with self._lock:
            return self._current_costs.get(experiment_id, 0.0)

    def get_total_current_spend(self) -> float:
        with self._lock:
            return sum(self._current_costs.values())

    # ─── Ticks ───
    def _snapshot(self, sim: _Simulation, now: float) -> tuple[float, LiveCostUpdate]:
        record = sim.record
        elapsed_hours = max(now - sim.started_at, 0.0) / 3600
        current_cost = sim.base_cost + sim.cost_per_hour * elapsed_hours

        duration = record.duration_hours
        progress = min(elapsed_hours / duration, 1.0) if duration > 0 else 1.0
        current_epoch = min(math.floor(progress * record.epochs) + 1, record.epochs)
        remaining_hours = max(duration - elapsed_hours, 0.0)

        noise = self.settings.utilization_noise
        utilization = record.avg_gpu_utilization + self._rng.uniform(-noise, noise)
        utilization = max(0.0, min(100.0, utilization))

        update = LiveCostUpdate(
            experiment_id=record.id,
            current_cost=round(current_cost, 2),
            elapsed_hours=round(elapsed_hours, 2),
            estimated_time_remaining=format_eta(remaining_hours),
            current_epoch=current_epoch,
            total_epochs=record.epochs,
            gpu_utilization=round(utilization, 1),
            throughput=self._sample_throughput(record.model_name),
            progress=progress,
        )
        return current_cost, update

    def _sample_throughput(self, model_name: str) -> str:
        noise = self.settings.throughput_noise
        rate = round(base_throughput(model_name) * (1 + self._rng.uniform(-noise, noise)))
        return f"{rate:,} tokens/sec"

    def _tick(self, sim: _Simulation) -> None:
        experiment_id = sim.record.id
        current_cost, update = self._snapshot(sim, self._clock())

        with self._lock:
            # A stopped or replaced stream must not emit
            if self._simulations.get(experiment_id) is not sim:
                return
            self._current_costs[experiment_id] = current_cost

        try:
            sim.on_update(update)
        except Exception:
            logger.exception(f"Update callback failed for {experiment_id}")

    # ─── Budget alerts ───
    def _wall_now(self) -> datetime:
        # UTC so alert ages stay positive across DST changes
        return datetime.fromtimestamp(self._wall_clock(), tz=timezone.utc)

    def _alert_kind(self, percentage: float) -> Optional[str]:
        s = self.settings
        if percentage >= s.exceeded_pct:
            return "exceeded"
        if percentage >= s.critical_pct:
            return "critical"
        if percentage >= s.warning_pct:
            return "warning"
        return None

    @staticmethod
    def _alert_message(kind: str, percentage: float, current_spend: float) -> str:
        if kind == "warning":
            return f"You've used {percentage:.0f}% of your monthly GPU budget"
        if kind == "critical":
            return f"Critical: {percentage:.0f}% of monthly GPU budget used"
        return f"Budget exceeded! Current spend: ${current_spend:,.2f}"

    def check_budget_alerts(
        self,
        current_spend: float,
        monthly_budget: float,
        on_alert: Callable[[BudgetAlert], None],
        experiment_id: Optional[str] = None,
    ) -> Optional[BudgetAlert]:
        """Record and emit a budget alert if spend crossed a threshold.

        At most one alert per kind is recorded inside the de-duplication
        window. Returns the new alert, or None when nothing fired.
        """
        if monthly_budget <= 0:
            logger.warning(f"Skipping budget check, non-positive budget {monthly_budget}")
            return None

        percentage = current_spend * 100.0 / monthly_budget
        kind = self._alert_kind(percentage)
        if kind is None:
            return None

        now = self._wall_now()
        window = timedelta(seconds=self.settings.alert_dedup_window)

        with self._lock:
            recent = any(a.kind == kind and now - a.timestamp < window for a in self._alerts)
            if recent:
                return None
            alert = BudgetAlert(
                id=f"alert-{uuid.uuid4().hex[:12]}",
                kind=kind,
                message=self._alert_message(kind, percentage, current_spend),
                current_spend=current_spend,
                budget_limit=monthly_budget,
                timestamp=now,
                experiment_id=experiment_id,
            )
            self._alerts.append(alert)

        logger.info(f"Budget alert ({kind}): {alert.message}")
        try:
            on_alert(alert)
        except Exception:
            logger.exception(f"Alert callback failed for {alert.id}")
        return alert

    def get_alerts(self) -> list[BudgetAlert]:
        with self._lock:
            return sorted(self._alerts, key=lambda a: a.timestamp, reverse=True)

    def clear_old_alerts(self) -> int:
        cutoff = self._wall_now() - timedelta(seconds=self.settings.alert_retention)
        with self._lock:
            kept = [a for a in self._alerts if a.timestamp > cutoff]
            removed = len(self._alerts) - len(kept)
            self._alerts = kept
        if removed:
            logger.debug(f"Purged {removed} alert(s) older than {self.settings.alert_retention:.0f}s")
        return removed
