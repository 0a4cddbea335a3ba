"""Tests for the dashboard summary, leaderboards and the LiveBoard cache."""

import random
from datetime import datetime

import pytest

from dashboard import (
    MAX_ALERT_FEED,
    LiveBoard,
    LiveBoardSlot,
    best_roi,
    budget_level,
    recent_experiments,
    summarize,
    top_expensive,
)
from experiments import ExperimentCatalog, build_catalog
from live_simulator import BudgetAlert, LiveCostSimulator


@pytest.fixture
def board(catalog, scheduler, clock):
    simulator = LiveCostSimulator(catalog.running, scheduler=scheduler, clock=clock, wall_clock=clock, rng=random.Random(0))
    return LiveBoard(catalog, simulator)


def running_totals(catalog):
    return {r.id: r.total_cost for r in catalog.running}


@pytest.mark.parametrize("pct, level", [(0, "ok"), (74.9, "ok"), (75, "warning"), (89.9, "warning"), (90, "critical"), (130, "critical")])
def test_budget_level(pct, level):
    assert budget_level(pct) == level


class TestSummarize:
    def test_totals(self, catalog):
        running = running_totals(catalog)
        summary = summarize(catalog, running, 50_000)
        assert summary.historical_spend == pytest.approx(catalog.total_spend())
        assert summary.running_spend == pytest.approx(sum(running.values()))
        assert summary.current_total == pytest.approx(summary.historical_spend + summary.running_spend)
        assert summary.budget_used_pct == pytest.approx(summary.current_total / 50_000 * 100)
        assert summary.running_count == 3
        assert summary.completed_count == len(catalog.completed())

    def test_budget_level_follows_usage(self, catalog):
        spend = catalog.total_spend()
        assert summarize(catalog, {}, spend / 0.8).budget_level == "warning"
        assert summarize(catalog, {}, spend / 0.95).budget_level == "critical"
        assert summarize(catalog, {}, spend * 10).budget_level == "ok"

    def test_empty_catalog_is_guarded(self):
        summary = summarize(ExperimentCatalog(), {}, 0)
        assert summary.avg_cost == 0.0
        assert summary.avg_utilization == 0.0
        assert summary.budget_used_pct == 0.0
        assert summary.efficiency_label == "N/A"


class TestLeaderboards:
    def test_top_expensive(self, catalog):
        top = top_expensive(catalog)
        assert len(top) == 5
        assert [e.total_cost for e in top] == sorted((e.total_cost for e in top), reverse=True)
        assert top[0].total_cost == max(e.total_cost for e in catalog.experiments)

    def test_best_roi_only_completed(self, catalog):
        best = best_roi(catalog, n=3)
        assert len(best) == 3
        assert all(e.status == "completed" for e in best)
        assert [e.roi for e in best] == sorted((e.roi for e in best), reverse=True)

    def test_recent_experiments_newest_first(self, catalog):
        recent = recent_experiments(catalog)
        assert len(recent) == 10
        starts = [e.start_time for e in recent]
        assert starts == sorted(starts, reverse=True)


class TestLiveBoard:
    def test_start_wires_every_running_record(self, catalog, board):
        board.start()
        assert sorted(board.simulator.active_simulations()) == sorted(r.id for r in catalog.running)

    def test_running_costs_before_first_tick(self, catalog, board):
        assert board.running_costs() == running_totals(catalog)
        assert all(board.latest(r.id) is None for r in catalog.running)

    def test_updates_are_cached(self, catalog, board, scheduler):
        board.start()
        scheduler.advance(3)
        for record in catalog.running:
            update = board.latest(record.id)
            assert update is not None
            assert board.running_costs()[record.id] == update.current_cost
        summary = board.summary()
        assert summary.running_spend == pytest.approx(sum(board.running_costs().values()))

    def test_budget_alert_raised_from_updates(self, catalog, board, scheduler):
        spend = catalog.total_spend() + sum(running_totals(catalog).values())
        board.monthly_budget = spend / 0.8
        board.start()
        scheduler.advance(5)
        alerts = board.alerts()
        assert [a.kind for a in alerts] == ["warning"]
        assert alerts[0].experiment_id in {r.id for r in catalog.running}
        assert board.simulator.get_alerts() == alerts

    def test_no_alert_under_budget(self, board, scheduler):
        board.monthly_budget = 10_000_000
        board.start()
        scheduler.advance(5)
        assert board.alerts() == []

    def test_alert_feed_is_bounded_newest_first(self, board):
        for i in range(MAX_ALERT_FEED + 5):
            board.on_alert(BudgetAlert(
                id=f"alert-{i}", kind="warning", message="m", current_spend=1.0,
                budget_limit=1.0, timestamp=datetime(2026, 10, 16, 12, 0, i),
            ))
        alerts = board.alerts()
        assert len(alerts) == MAX_ALERT_FEED
        assert alerts[0].id == f"alert-{MAX_ALERT_FEED + 4}"

    def test_stop(self, board):
        board.start()
        board.stop()
        assert board.simulator.active_simulations() == []


class TestLiveBoardSlot:
    @pytest.fixture
    def factory(self, scheduler, clock):
        def make(seed):
            catalog = build_catalog(seed=seed, now=datetime(2026, 10, 16, 12, 0))
            simulator = LiveCostSimulator(catalog.running, scheduler=scheduler, clock=clock, wall_clock=clock, rng=random.Random(seed))
            return LiveBoard(catalog, simulator)
        return make

    def test_same_key_reuses_the_board(self, factory, scheduler):
        slot = LiveBoardSlot()
        board = slot.switch(42, lambda: factory(42))
        assert slot.switch(42, lambda: factory(42)) is board
        assert slot.board is board
        assert len(scheduler.active()) == 3

    def test_switching_stops_the_previous_board(self, factory, scheduler):
        slot = LiveBoardSlot()
        first = slot.switch(42, lambda: factory(42))
        second = slot.switch(43, lambda: factory(43))
        assert second is not first
        assert first.simulator.active_simulations() == []
        assert len(second.simulator.active_simulations()) == 3
        assert len(scheduler.active()) == 3

        updates_before = first.latest(first.catalog.running[0].id)
        scheduler.advance(3)
        assert first.latest(first.catalog.running[0].id) is updates_before
        assert second.latest(second.catalog.running[0].id) is not None

    def test_close(self, factory, scheduler):
        slot = LiveBoardSlot()
        slot.switch(42, lambda: factory(42))
        slot.close()
        assert slot.board is None
        assert scheduler.active() == []
