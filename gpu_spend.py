#!/usr/bin/env python3
"""
GPU Spend Intelligence: terminal dashboard
Synthetic GPU-spend analytics for ML experiments: totals, leaderboards,
cost history, pricing, and a live view of running experiments.

Usage:
    python gpu_spend.py                          # Interactive mode
    python gpu_spend.py --summary --budget 40000
    python gpu_spend.py --list-experiments --status failed
    python gpu_spend.py --watch 30               # Live costs for 30 seconds
    python gpu_spend.py --export spend.json
"""

import argparse
import json
import logging
import random
import sys
import time
from dataclasses import asdict
from typing import Optional

import questionary
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from cost_history import generate_cost_projection, generate_historical_data
from dashboard import (
    DEFAULT_MONTHLY_BUDGET,
    LiveBoard,
    best_roi,
    recent_experiments,
    summarize,
    top_expensive,
)
from experiments import STATUSES, ExperimentCatalog, ExperimentRecord, build_catalog
from formatters import (
    efficiency_rating,
    format_currency,
    format_date,
    format_duration,
    format_percent,
    relative_time,
)
from gpu_pricing import GPU_PRICING
from live_simulator import LiveCostSimulator, SimulatorSettings

logger = logging.getLogger(__name__)

STATUS_STYLES = {"completed": "green", "failed": "red", "running": "magenta", "queued": "yellow"}
LEVEL_STYLES = {"ok": "green", "warning": "yellow", "critical": "red"}
ALERT_STYLES = {"warning": "yellow", "critical": "red", "exceeded": "bold red"}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _utilization_style(utilization: float) -> str:
    if utilization >= 70:
        return "green"
    if utilization >= 50:
        return "yellow"
    return "red"


# ═══════════════════════════════════════════════════════════════════
# TABLES
# ═══════════════════════════════════════════════════════════════════
def list_gpus(console: Optional[Console] = None) -> list[dict]:
    console = console or Console()
    table = Table(box=box.ROUNDED, title="GPU Pricing")
    table.add_column("Provider", style="cyan")
    table.add_column("GPU")
    table.add_column("$/hr", justify="right", style="yellow")
    table.add_column("Memory", justify="right")
    table.add_column("Compute", justify="right")
    table.add_column("Availability", justify="center")
    for row in GPU_PRICING:
        avail_style = {"high": "green", "medium": "yellow", "low": "red"}[row["availability"]]
        table.add_row(
            row["provider"].upper(), row["gpu_type"], f"${row['price_hr']:.2f}",
            row["memory"], row["compute"], f"[{avail_style}]{row['availability']}[/]",
        )
    console.print(table)
    return GPU_PRICING


def experiments_table(records: list[ExperimentRecord], title: str = "Recent Experiments") -> Table:
    table = Table(box=box.ROUNDED, title=title)
    table.add_column("Experiment", style="bold")
    table.add_column("Researcher", style="dim")
    table.add_column("Status", justify="center")
    table.add_column("GPU")
    table.add_column("Duration", justify="right")
    table.add_column("Cost", justify="right", style="yellow")
    table.add_column("Accuracy", justify="right")
    table.add_column("Util", justify="right")
    for e in records:
        status_style = STATUS_STYLES.get(e.status, "white")
        util_style = _utilization_style(e.avg_gpu_utilization)
        table.add_row(
            e.name,
            e.researcher,
            f"[{status_style}]{e.status}[/]",
            f"{e.gpu_type} x{e.num_gpus}",
            format_duration(e.duration_hours),
            format_currency(e.total_cost),
            f"{format_percent(e.final_accuracy)} [green]+{format_percent(e.accuracy_gain)}[/]",
            f"[{util_style}]{format_percent(e.avg_gpu_utilization)}[/]",
        )
    return table


def list_experiments(
    catalog: ExperimentCatalog,
    status: Optional[str] = None,
    team: Optional[str] = None,
    researcher: Optional[str] = None,
    limit: int = 20,
    console: Optional[Console] = None,
) -> list[ExperimentRecord]:
    console = console or Console()
    records = recent_experiments(catalog, n=len(catalog.experiments))
    if status:
        records = [e for e in records if e.status == status]
    if team:
        records = [e for e in records if e.team == team]
    if researcher:
        records = [e for e in records if e.researcher == researcher]
    records = records[:limit]

    if not records:
        console.print("[yellow]No experiments match these filters.[/]")
        return records
    console.print(experiments_table(records))
    return records


def display_summary(catalog: ExperimentCatalog, monthly_budget: float, console: Optional[Console] = None):
    console = console or Console()
    running_costs = {r.id: r.total_cost for r in catalog.running}
    summary = summarize(catalog, running_costs, monthly_budget)
    level_style = LEVEL_STYLES[summary.budget_level]

    stats = Table(box=box.SIMPLE_HEAVY, show_header=False, padding=(0, 2))
    stats.add_column(style="bold")
    stats.add_column(justify="right")
    stats.add_row("Total Spend (30 days)", f"[bold]{format_currency(summary.current_total)}[/]")
    stats.add_row("Monthly Budget", format_currency(monthly_budget))
    stats.add_row("Budget Used", f"[{level_style}]{format_percent(summary.budget_used_pct)}[/]")
    stats.add_row("Running Experiments", f"{summary.running_count} ({format_currency(summary.running_spend)})")
    stats.add_row("Avg Cost / Experiment", f"{format_currency(summary.avg_cost)} over {summary.completed_count} completed")
    stats.add_row("Avg GPU Utilization", f"{format_percent(summary.avg_utilization)} ({summary.efficiency_label})")
    stats.add_row("Average ROI", f"{catalog.average_roi():.2f}")
    console.print(Panel(stats, title="[bold]GPU Spend Intelligence[/]", border_style=level_style))

    expensive = Table(box=box.ROUNDED, title="Most Expensive Experiments")
    expensive.add_column("#", justify="right", style="dim")
    expensive.add_column("Experiment", style="cyan")
    expensive.add_column("GPU")
    expensive.add_column("Started", style="dim")
    expensive.add_column("Cost", justify="right", style="yellow")
    for idx, e in enumerate(top_expensive(catalog), start=1):
        expensive.add_row(str(idx), e.name, e.gpu_type, relative_time(e.start_time), format_currency(e.total_cost))
    console.print(expensive)

    roi = Table(box=box.ROUNDED, title="Best ROI Experiments")
    roi.add_column("#", justify="right", style="dim")
    roi.add_column("Experiment", style="cyan")
    roi.add_column("Accuracy Gain", justify="right", style="green")
    roi.add_column("Cost", justify="right", style="yellow")
    roi.add_column("ROI", justify="right", style="bold green")
    for idx, e in enumerate(best_roi(catalog), start=1):
        roi.add_row(str(idx), e.name, f"+{format_percent(e.accuracy_gain)}", format_currency(e.total_cost), f"{e.roi:.1f}")
    console.print(roi)
    return summary


def display_history(days: int = 30, seed: Optional[int] = None, console: Optional[Console] = None):
    console = console or Console()
    rng = random.Random(seed)
    history = generate_historical_data(days, rng=rng)
    projection = generate_cost_projection(history, rng=rng)

    table = Table(box=box.ROUNDED, title=f"Daily Spend (last {days} days)")
    table.add_column("Date", style="cyan")
    table.add_column("Cost", justify="right", style="yellow")
    table.add_column("Experiments", justify="right")
    table.add_column("Avg Util", justify="right")
    for d in history:
        table.add_row(d.date, format_currency(d.total_cost), str(d.experiments), format_percent(d.avg_utilization))
    console.print(table)

    proj_table = Table(box=box.ROUNDED, title="Cost Projection")
    proj_table.add_column("Date", style="cyan")
    proj_table.add_column("Projected", justify="right", style="yellow")
    proj_table.add_column("Confidence", justify="center")
    for p in projection:
        conf_style = {"high": "green", "medium": "yellow", "low": "red"}[p.confidence]
        proj_table.add_row(p.date, format_currency(p.projected_cost), f"[{conf_style}]{p.confidence}[/]")
    console.print(proj_table)
    return history, projection


# ═══════════════════════════════════════════════════════════════════
# LIVE VIEW
# ═══════════════════════════════════════════════════════════════════
def render_live_view(board: LiveBoard) -> Group:
    summary = board.summary()
    level_style = LEVEL_STYLES[summary.budget_level]

    header = Table.grid(expand=True)
    header.add_column()
    header.add_column(justify="right")
    header.add_row(
        f"[bold]Total spend[/] {format_currency(summary.current_total)} "
        f"[dim]of {format_currency(summary.monthly_budget)}[/]",
        f"[{level_style}]{format_percent(summary.budget_used_pct)} used[/]",
    )
    header.add_row(ProgressBar(total=100, completed=min(summary.budget_used_pct, 100), complete_style=level_style), "")

    table = Table(box=box.ROUNDED, title="Live Experiments", expand=True)
    table.add_column("Experiment", style="bold")
    table.add_column("GPU")
    table.add_column("Cost", justify="right", style="yellow")
    table.add_column("Epoch", justify="right")
    table.add_column("ETA", justify="right")
    table.add_column("Util", justify="right")
    table.add_column("Throughput", justify="right", style="cyan")
    for record in board.catalog.running:
        update = board.latest(record.id)
        if update is None:
            table.add_row(record.name, f"{record.gpu_type} x{record.num_gpus}", format_currency(record.total_cost), "-", "-", "-", "-")
            continue
        util_style = _utilization_style(update.gpu_utilization)
        table.add_row(
            record.name,
            f"{record.gpu_type} x{record.num_gpus}",
            format_currency(update.current_cost),
            f"{update.current_epoch}/{update.total_epochs}",
            update.estimated_time_remaining,
            f"[{util_style}]{format_percent(update.gpu_utilization)}[/]",
            update.throughput,
        )

    parts = [Panel(header, border_style=level_style), table]
    alerts = board.alerts()
    if alerts:
        lines = [
            f"[{ALERT_STYLES[a.kind]}]{a.kind.upper()}[/] {a.message} [dim]{a.timestamp.astimezone():%H:%M:%S}[/]"
            for a in alerts[:5]
        ]
        parts.append(Panel("\n".join(lines), title="[bold]Budget Alerts[/]", border_style="red"))
    return Group(*parts)


def watch(
    catalog: ExperimentCatalog,
    seconds: float,
    monthly_budget: float,
    tick_interval: float = 1.0,
    console: Optional[Console] = None,
) -> dict[str, float]:
    console = console or Console()
    simulator = LiveCostSimulator(catalog.running, SimulatorSettings(tick_interval=tick_interval))
    board = LiveBoard(catalog, simulator, monthly_budget)
    board.start()
    logger.info(f"Watching {len(catalog.running)} running experiment(s) for {seconds:.0f}s")

    deadline = time.monotonic() + seconds
    try:
        with Live(render_live_view(board), console=console, refresh_per_second=4) as live:
            while (remaining := deadline - time.monotonic()) > 0:
                time.sleep(min(tick_interval, remaining))
                live.update(render_live_view(board))
    except KeyboardInterrupt:
        console.print("[dim]Live view interrupted.[/]")

    final_costs = {}
    for record in catalog.running:
        simulator.complete_experiment(record.id, lambda cost, rid=record.id: final_costs.__setitem__(rid, cost))
    board.stop()

    table = Table(box=box.SIMPLE_HEAVY, title="Spend During Session")
    table.add_column("Experiment", style="cyan")
    table.add_column("Start", justify="right")
    table.add_column("Now", justify="right", style="yellow")
    table.add_column("Delta", justify="right", style="bold")
    for record in catalog.running:
        now_cost = final_costs.get(record.id, record.total_cost)
        table.add_row(record.name, format_currency(record.total_cost), format_currency(now_cost), format_currency(now_cost - record.total_cost))
    console.print(table)
    return final_costs


# ═══════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════
def _record_row(e: ExperimentRecord) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "status": e.status,
        "gpu": f"{e.gpu_type} x{e.num_gpus}",
        "provider": e.provider,
        "total_cost": e.total_cost,
        "accuracy_gain": e.accuracy_gain,
        "roi": e.roi,
        "started": format_date(e.start_time),
    }


def build_export(catalog: ExperimentCatalog, monthly_budget: float, seed: Optional[int] = None) -> dict:
    running_costs = {r.id: r.total_cost for r in catalog.running}
    summary = summarize(catalog, running_costs, monthly_budget)
    rng = random.Random(seed)
    history = generate_historical_data(rng=rng)
    projection = generate_cost_projection(history, rng=rng)
    return {
        "summary": {k: round(v, 2) if isinstance(v, float) else v for k, v in asdict(summary).items()},
        "average_roi": round(catalog.average_roi(), 2),
        "efficiency": efficiency_rating(summary.avg_utilization)["label"],
        "running": [_record_row(e) for e in catalog.running],
        "top_expensive": [_record_row(e) for e in top_expensive(catalog)],
        "best_roi": [_record_row(e) for e in best_roi(catalog)],
        "history": [asdict(d) for d in history],
        "projection": [asdict(p) for p in projection],
    }


def export_results(catalog: ExperimentCatalog, path: str, monthly_budget: float, seed: Optional[int] = None, console: Optional[Console] = None) -> dict:
    console = console or Console()
    data = build_export(catalog, monthly_budget, seed)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    console.print(f"[bold green]Results exported to {path}[/]")
    return data


# ═══════════════════════════════════════════════════════════════════
# INTERACTIVE MENU
# ═══════════════════════════════════════════════════════════════════
MENU_CHOICES = {
    "Spend summary & leaderboards": "summary",
    "Recent experiments": "experiments",
    "Live view of running experiments": "watch",
    "Cost history & projection": "history",
    "GPU pricing": "gpus",
    "Export to JSON": "export",
}


def _ask_number(prompt_text: str, default: float, min_val: float = 0.0) -> float:
    def _valid(raw: str):
        try:
            return float(raw) > min_val or f"Must be > {min_val}"
        except ValueError:
            return "Invalid number."

    raw = questionary.text(prompt_text, default=str(default), validate=_valid).ask()
    if raw is None:
        sys.exit(0)
    return float(raw)


def interactive_menu(catalog: ExperimentCatalog, monthly_budget: float, seed: Optional[int] = None):
    console = Console()
    console.print(Panel("[bold magenta]GPU Spend Intelligence[/]\n[dim]Interactive Mode[/]", border_style="magenta"))

    while True:
        choice = questionary.select("What would you like to see?", choices=[*MENU_CHOICES, "Quit"]).ask()
        if choice is None or choice == "Quit":
            return
        action = MENU_CHOICES[choice]

        if action == "summary":
            display_summary(catalog, monthly_budget, console)
        elif action == "experiments":
            status = questionary.select("Status:", choices=["any", *STATUSES], default="any").ask()
            list_experiments(catalog, status=None if status in (None, "any") else status, console=console)
        elif action == "watch":
            seconds = _ask_number("Watch for how many seconds?", 15)
            watch(catalog, seconds, monthly_budget, console=console)
        elif action == "history":
            display_history(seed=seed, console=console)
        elif action == "gpus":
            list_gpus(console)
        elif action == "export":
            path = questionary.text("Export path:", default="gpu_spend.json").ask()
            if path:
                export_results(catalog, path, monthly_budget, seed, console)


# ═══════════════════════════════════════════════════════════════════
# CLI (argparse)
# ═══════════════════════════════════════════════════════════════════
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="GPU Spend Intelligence - synthetic GPU spend analytics for ML experiments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # Interactive mode
  %(prog)s --summary --budget 40000
  %(prog)s --list-experiments --team Research --limit 5
  %(prog)s --watch 30 --tick 0.5
  %(prog)s --history --seed 7
  %(prog)s --export spend.json
""",
    )
    parser.add_argument("--summary", action="store_true", help="Show spend totals and leaderboards")
    parser.add_argument("--list-experiments", action="store_true", help="List recent experiments")
    parser.add_argument("--status", type=str, choices=STATUSES, help="Filter experiments by status")
    parser.add_argument("--team", type=str, help="Filter experiments by team")
    parser.add_argument("--researcher", type=str, help="Filter experiments by researcher")
    parser.add_argument("--limit", type=int, default=20, help="Maximum experiments to list")
    parser.add_argument("--list-gpus", action="store_true", help="List GPU pricing by provider")
    parser.add_argument("--history", action="store_true", help="Show daily spend history and projection")
    parser.add_argument("--watch", type=float, metavar="SECONDS", help="Live view of running experiments")
    parser.add_argument("--tick", type=float, default=1.0, help="Live update period in seconds")
    parser.add_argument("--export", type=str, help="Export summary to JSON file")
    parser.add_argument("--budget", type=float, default=DEFAULT_MONTHLY_BUDGET, help="Monthly GPU budget in USD")
    parser.add_argument("--seed", type=int, help="Random seed for the synthetic data")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _fail(console: Console, message: str):
    console.print(f"[bold red]Error:[/] {message}")
    sys.exit(1)


# ═══════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════
def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    console = Console()

    if args.budget <= 0:
        _fail(console, f"Budget must be positive, got {args.budget}")
    if args.watch is not None and args.watch <= 0:
        _fail(console, f"Watch time must be positive, got {args.watch}")
    if args.tick <= 0:
        _fail(console, f"Tick period must be positive, got {args.tick}")

    if args.list_gpus:
        list_gpus(console)
        return

    catalog = build_catalog(seed=args.seed)

    requested = any([args.summary, args.list_experiments, args.history, args.watch, args.export])
    if not requested:
        interactive_menu(catalog, args.budget, args.seed)
        return

    if args.summary:
        display_summary(catalog, args.budget, console)
    if args.list_experiments:
        list_experiments(catalog, args.status, args.team, args.researcher, args.limit, console)
    if args.history:
        display_history(seed=args.seed, console=console)
    if args.watch:
        watch(catalog, args.watch, args.budget, args.tick, console)
    if args.export:
        export_results(catalog, args.export, args.budget, args.seed, console)


if __name__ == "__main__":
    main()
