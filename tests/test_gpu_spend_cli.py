"""Tests for the terminal CLI: argument parsing, tables, export and the live view."""

import io
import json
import random

import pytest
from rich.console import Console

from dashboard import LiveBoard
from gpu_pricing import GPU_PRICING
from gpu_spend import (
    build_export,
    build_parser,
    display_history,
    display_summary,
    export_results,
    list_experiments,
    list_gpus,
    main,
    render_live_view,
)
from live_simulator import LiveCostSimulator


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


def output(console):
    return console.file.getvalue()


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.budget == 50_000.0
        assert args.tick == 1.0
        assert args.limit == 20
        assert args.watch is None
        assert not args.verbose

    def test_filters(self):
        args = build_parser().parse_args(["--list-experiments", "--status", "failed", "--team", "Research", "--limit", "5"])
        assert args.list_experiments
        assert args.status == "failed"
        assert args.team == "Research"
        assert args.limit == 5

    def test_unknown_status_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--status", "archived"])


class TestMain:
    @pytest.mark.parametrize("argv", [
        ["--budget", "0", "--summary"],
        ["--budget", "-5", "--summary"],
        ["--watch", "-1"],
        ["--tick", "0", "--summary"],
    ])
    def test_invalid_numbers_exit_with_error(self, argv):
        with pytest.raises(SystemExit) as exc:
            main(argv)
        assert exc.value.code == 1

    def test_list_gpus(self, capsys):
        main(["--list-gpus"])
        assert "GPU Pricing" in capsys.readouterr().out

    def test_summary(self, capsys):
        main(["--summary", "--seed", "1"])
        out = capsys.readouterr().out
        assert "GPU Spend Intelligence" in out
        assert "Best ROI Experiments" in out

    def test_export(self, tmp_path, capsys):
        path = tmp_path / "spend.json"
        main(["--export", str(path), "--seed", "1"])
        data = json.loads(path.read_text())
        assert len(data["running"]) == 3
        assert "exported" in capsys.readouterr().out


def test_list_gpus_table(console):
    rows = list_gpus(console)
    assert rows is GPU_PRICING
    text = output(console)
    assert "H100 80GB" in text
    assert "$8.10" in text


class TestListExperiments:
    def test_status_filter(self, catalog, console):
        records = list_experiments(catalog, status="failed", console=console)
        assert records
        assert all(e.status == "failed" for e in records)

    def test_team_filter_and_limit(self, catalog, console):
        team = catalog.experiments[0].team
        records = list_experiments(catalog, team=team, limit=3, console=console)
        assert 0 < len(records) <= 3
        assert all(e.team == team for e in records)
        assert records[0].name in output(console)

    def test_no_match(self, catalog, console):
        assert list_experiments(catalog, researcher="Nobody", console=console) == []
        assert "No experiments match" in output(console)


def test_display_summary(catalog, console):
    summary = display_summary(catalog, 50_000, console)
    assert summary.running_count == 3
    text = output(console)
    assert "Most Expensive Experiments" in text
    assert "Best ROI Experiments" in text


def test_display_history(console):
    history, projection = display_history(days=10, seed=3, console=console)
    assert len(history) == 10
    assert len(projection) == 7
    assert "Cost Projection" in output(console)


class TestExport:
    def test_build_export_is_json_ready(self, catalog):
        data = build_export(catalog, 50_000, seed=4)
        assert set(data) == {"summary", "average_roi", "efficiency", "running", "top_expensive", "best_roi", "history", "projection"}
        assert data["summary"]["monthly_budget"] == 50_000.0
        assert [r["id"] for r in data["running"]] == [r.id for r in catalog.running]
        assert len(data["history"]) == 30
        json.dumps(data)

    def test_same_seed_same_export(self, catalog):
        assert build_export(catalog, 50_000, seed=4) == build_export(catalog, 50_000, seed=4)

    def test_export_results_writes_file(self, catalog, console, tmp_path):
        path = tmp_path / "out.json"
        data = export_results(catalog, str(path), 50_000, seed=4, console=console)
        assert json.loads(path.read_text()) == data
        assert str(path) in output(console)


def test_render_live_view(catalog, scheduler, clock, console):
    simulator = LiveCostSimulator(catalog.running, scheduler=scheduler, clock=clock, wall_clock=clock, rng=random.Random(0))
    spend = catalog.total_spend() + sum(r.total_cost for r in catalog.running)
    board = LiveBoard(catalog, simulator, monthly_budget=spend / 0.95)

    console.print(render_live_view(board))
    assert catalog.running[0].name in output(console)

    board.start()
    scheduler.advance(2)
    console.print(render_live_view(board))
    text = output(console)
    assert "tokens/sec" in text
    assert "Budget Alerts" in text
    assert "CRITICAL" in text
    board.stop()
