"""
GPU Spend Intelligence: Streamlit Web Interface
Imports all logic from the core modules (no duplication).

Usage:
    pip install -e .
    streamlit run app.py
"""

import random
from string import Template

import streamlit as st
import plotly.graph_objects as go

from cost_history import generate_cost_projection, generate_historical_data
from dashboard import (
    DEFAULT_MONTHLY_BUDGET,
    LiveBoard,
    LiveBoardSlot,
    best_roi,
    recent_experiments,
    top_expensive,
)
from experiments import build_catalog, generate_epoch_metrics
from formatters import (
    efficiency_rating,
    format_currency,
    format_duration,
    format_number,
    format_percent,
    relative_time,
    status_color,
)
from gpu_pricing import GPU_PRICING, PROVIDERS, all_gpu_types, cheapest_provider, get_gpu_price
from live_simulator import LiveCostSimulator

REFRESH_SECONDS = 1.0

# ─── Theme Configuration ───────────────────────────────────────
def init_theme():
    """Initialize theme state and return current theme mode."""
    if 'theme_mode' not in st.session_state:
        st.session_state['theme_mode'] = 'dark'
    return st.session_state['theme_mode']

def toggle_theme():
    """Toggle between dark and light theme."""
    st.session_state['theme_mode'] = 'light' if st.session_state['theme_mode'] == 'dark' else 'dark'

# ─── Page config ───────────────────────────────────────────────
st.set_page_config(
    page_title="GPU Spend Intelligence",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

theme_mode = init_theme()

# ─── Custom CSS ────────────────────────────────────────────────
PALETTES = {
    'dark': dict(bg="#0a0a0f", card="#13131a", inner="#1a1a24", border="rgba(139, 92, 246, 0.25)",
                 text="#e2e8f0", muted="#94a3b8", accent="#a78bfa"),
    'light': dict(bg="#f8fafc", card="#ffffff", inner="#f1f5f9", border="rgba(99, 102, 241, 0.25)",
                  text="#1e293b", muted="#64748b", accent="#6366f1"),
}

CSS_TEMPLATE = Template("""
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap');
html, body, [class*="css"] { font-family: 'Inter', sans-serif; }
.stApp { background: $bg; }

/* ── Header banner ─────────────────────────── */
.header-banner {
    background: linear-gradient(135deg, #0f0f23 0%, #1a1a3e 50%, #2d1b69 100%);
    border-radius: 12px;
    padding: 1.6rem 2rem;
    margin-bottom: 1.2rem;
    border: 1px solid $border;
}
.header-banner h1 { margin: 0; font-size: 1.6rem; font-weight: 700; color: #fff; }
.header-banner p { margin: 0.3rem 0 0; color: #c4b5fd; font-size: 0.85rem; }
.live-dot {
    display: inline-block; width: 8px; height: 8px; border-radius: 50%;
    background: #34d399; margin-right: 6px; animation: pulse 1.5s infinite;
}
@keyframes pulse { 0%, 100% { opacity: 1; } 50% { opacity: 0.3; } }

/* ── Metric cards ──────────────────────────── */
.metric-card {
    background: $card; border: 1px solid $border; border-radius: 12px;
    padding: 1.1rem 1.3rem; height: 100%;
}
.metric-card .label { color: $accent; font-size: 0.8rem; margin-bottom: 0.2rem; }
.metric-card .value { color: $text; font-size: 1.7rem; font-weight: 700; }
.metric-card .sub { color: $muted; font-size: 0.75rem; margin-top: 0.3rem; }
.metric-card.green .value { color: #22c55e; }
.metric-card.amber .value { color: #f59e0b; }
.metric-card.red .value { color: #ef4444; }

/* ── Budget bar ────────────────────────────── */
.budget-bar-outer { height: 8px; background: $inner; border-radius: 4px; overflow: hidden; margin-top: 0.6rem; }
.budget-bar-inner { height: 100%; border-radius: 4px; transition: width 0.5s; }

/* ── Live experiment cards ─────────────────── */
.live-card {
    background: $inner; border: 1px solid $border; border-radius: 10px;
    padding: 0.9rem 1.1rem; margin-bottom: 0.7rem;
}
.live-card .title { color: $text; font-weight: 600; }
.live-card .badge {
    background: rgba(139, 92, 246, 0.2); color: $accent; font-size: 0.7rem;
    padding: 2px 8px; border-radius: 4px; margin-left: 8px;
}
.live-card .who { color: $muted; font-size: 0.75rem; }
.live-card .cost { color: $text; font-size: 1.4rem; font-weight: 700; text-align: right; }
.live-card .rate { color: $muted; font-size: 0.75rem; text-align: right; }
.live-grid { display: grid; grid-template-columns: repeat(4, 1fr); gap: 0.8rem; margin-top: 0.6rem; }
.live-grid .k { color: $muted; font-size: 0.7rem; }
.live-grid .v { color: $text; font-size: 0.85rem; font-weight: 500; }

/* ── Alerts ────────────────────────────────── */
.alert-card { border-radius: 8px; padding: 0.6rem 0.9rem; margin-bottom: 0.4rem; font-size: 0.85rem; }
.alert-card.warning { background: rgba(245, 158, 11, 0.12); color: #f59e0b; border-left: 3px solid #f59e0b; }
.alert-card.critical { background: rgba(239, 68, 68, 0.12); color: #ef4444; border-left: 3px solid #ef4444; }
.alert-card.exceeded { background: rgba(239, 68, 68, 0.22); color: #fca5a5; border-left: 3px solid #dc2626; }

/* ── Section titles & tables ───────────────── */
.section-title { color: $text; font-size: 1.05rem; font-weight: 600; margin: 1rem 0 0.6rem; }
.styled-table-wrap { overflow-x: auto; }
.styled-table { width: 100%; border-collapse: collapse; font-size: 0.85rem; }
.styled-table th { text-align: left; color: $muted; font-weight: 500; padding: 0.5rem; border-bottom: 1px solid $border; }
.styled-table td { color: $text; padding: 0.5rem; border-bottom: 1px solid $border; }
.status-pill { padding: 2px 8px; border-radius: 4px; font-size: 0.75rem; }
.rank-row {
    display: flex; align-items: center; gap: 0.7rem; background: $inner;
    border-radius: 8px; padding: 0.6rem 0.8rem; margin-bottom: 0.4rem;
}
.rank-row .rank { color: $accent; font-size: 0.75rem; width: 1.2rem; }
.rank-row .name { color: $text; font-size: 0.85rem; font-weight: 500; flex: 1; }
.rank-row .meta { color: $muted; font-size: 0.72rem; }
.rank-row .amount { color: $text; font-weight: 700; font-size: 0.85rem; }
</style>
""")

st.markdown(CSS_TEMPLATE.substitute(**PALETTES[theme_mode]), unsafe_allow_html=True)

# ═══════════════════════════════════════════════════════════════
# HELPER: render metric card
# ═══════════════════════════════════════════════════════════════
def metric_card(label: str, value: str, sub: str = "", color: str = ""):
    cls = f"metric-card {color}" if color else "metric-card"
    sub_html = f'<div class="sub">{sub}</div>' if sub else ""
    return f'<div class="{cls}"><div class="label">{label}</div><div class="value">{value}</div>{sub_html}</div>'


# ═══════════════════════════════════════════════════════════════
# HELPER: render themed HTML table
# ═══════════════════════════════════════════════════════════════
def render_table(rows: list[dict], key_filter: str = "_"):
    """Render a list of dicts as a styled HTML table.
    Skips keys starting with key_filter (default '_')."""
    if not rows:
        return
    headers = [k for k in rows[0] if not k.startswith(key_filter)]
    header_html = "".join(f"<th>{h}</th>" for h in headers)
    body_html = "".join(
        "<tr>" + "".join(f"<td>{row[h]}</td>" for h in headers) + "</tr>"
        for row in rows
    )
    st.markdown(
        f'<div class="styled-table-wrap"><table class="styled-table">'
        f'<thead><tr>{header_html}</tr></thead>'
        f'<tbody>{body_html}</tbody></table></div>',
        unsafe_allow_html=True,
    )


def status_pill(status: str) -> str:
    color = status_color(status)
    return f'<span class="status-pill" style="background:{color}33;color:{color}">{status}</span>'


def rank_row(rank: int, name: str, meta: str, amount: str, amount_color: str = "") -> str:
    style = f' style="color:{amount_color}"' if amount_color else ""
    return (
        f'<div class="rank-row"><div class="rank">{rank}</div>'
        f'<div class="name">{name}<div class="meta">{meta}</div></div>'
        f'<div class="amount"{style}>{amount}</div></div>'
    )


# ═══════════════════════════════════════════════════════════════
# PLOTLY THEME
# ═══════════════════════════════════════════════════════════════
def get_plotly_theme():
    """Get Plotly layout and colors based on current theme."""
    palette = PALETTES[theme_mode]
    return {
        'layout': dict(
            paper_bgcolor="rgba(0,0,0,0)",
            plot_bgcolor="rgba(0,0,0,0)",
            font=dict(family="Inter, sans-serif", color=palette["muted"]),
            margin=dict(l=0, r=0, t=35, b=30),
        ),
        'grid': dict(gridcolor="#1e1e35" if theme_mode == 'dark' else "#e2e8f0",
                     zerolinecolor="#1e1e35" if theme_mode == 'dark' else "#e2e8f0"),
        'colors': ["#8b5cf6", "#ec4899", "#22c55e", "#f59e0b", "#3b82f6", "#06b6d4"],
    }

plotly_theme = get_plotly_theme()
PLOTLY_LAYOUT = plotly_theme['layout']
GRID_STYLE = plotly_theme['grid']
COLORS = plotly_theme['colors']


# ═══════════════════════════════════════════════════════════════
# DATA & SIMULATOR (one per process)
# ═══════════════════════════════════════════════════════════════
def make_live_board(seed: int) -> LiveBoard:
    catalog = build_catalog(seed=seed)
    return LiveBoard(catalog, LiveCostSimulator(catalog.running))


@st.cache_resource
def live_board_slot() -> LiveBoardSlot:
    return LiveBoardSlot()


def load_live_board(seed: int) -> LiveBoard:
    """The process-wide board; a new seed stops the previous board's simulations."""
    return live_board_slot().switch(seed, lambda: make_live_board(seed))


# ═══════════════════════════════════════════════════════════════
# SIDEBAR
# ═══════════════════════════════════════════════════════════════
with st.sidebar:
    col_theme1, col_theme2 = st.columns([3, 1])
    with col_theme1:
        st.markdown("**Appearance**")
    with col_theme2:
        st.button("☀️" if theme_mode == 'dark' else "🌙", on_click=toggle_theme, help="Toggle theme")

    st.markdown("**Budget**")
    monthly_budget = st.number_input("Monthly GPU budget ($)", min_value=1000.0, value=DEFAULT_MONTHLY_BUDGET, step=1000.0)

    st.markdown("**Data**")
    seed = int(st.number_input("Random seed", min_value=0, value=42, step=1))

    board = load_live_board(seed)
    board.monthly_budget = monthly_budget
    catalog = board.catalog
    simulator = board.simulator

    st.markdown("**Live simulation**")
    live_on = bool(simulator.active_simulations())
    c1, c2 = st.columns(2)
    if c1.button("Pause", disabled=not live_on, use_container_width=True):
        board.stop()
        st.rerun()
    if c2.button("Resume", disabled=live_on, use_container_width=True):
        board.start()
        st.rerun()
    if st.button("Clear alerts older than 1h", use_container_width=True):
        removed = simulator.clear_old_alerts()
        st.toast(f"Removed {removed} old alert(s)")


# ═══════════════════════════════════════════════════════════════
# HEADER
# ═══════════════════════════════════════════════════════════════
st.markdown(f"""
<div class="header-banner">
    <h1>GPU Spend Intelligence</h1>
    <p><span class="live-dot"></span>{len(catalog.running)} experiments running &nbsp;&middot;&nbsp;
    {len(catalog.experiments)} runs in the last 30 days &nbsp;&middot;&nbsp; budget {format_currency(monthly_budget)}</p>
</div>
""", unsafe_allow_html=True)

tab1, tab2, tab3 = st.tabs(["Overview", "Cost Trends", "GPU Pricing"])


# ───────────────────────────────────────────────────────────────
# LIVE PANEL: re-rendered every tick
# ───────────────────────────────────────────────────────────────
@st.fragment(run_every=REFRESH_SECONDS)
def live_panel():
    summary = board.summary()
    used = summary.budget_used_pct
    bar_color = "#ef4444" if used >= 90 else ("#f59e0b" if used >= 75 else "linear-gradient(90deg,#8b5cf6,#ec4899)")
    eff = efficiency_rating(summary.avg_utilization)
    eff_color = {"green": "green", "blue": "amber", "yellow": "amber", "red": "red"}[eff["color"]]

    c1, c2, c3, c4 = st.columns(4)
    c1.markdown(
        metric_card("Total Spend (30 days)", format_currency(summary.current_total),
                    f"Budget: {format_currency(monthly_budget)} ({format_percent(used)} used)"
                    f'<div class="budget-bar-outer"><div class="budget-bar-inner" '
                    f'style="width:{min(used, 100):.1f}%;background:{bar_color}"></div></div>'),
        unsafe_allow_html=True,
    )
    c2.markdown(metric_card("Running Experiments", str(summary.running_count),
                            f"Current cost: {format_currency(summary.running_spend)}"), unsafe_allow_html=True)
    c3.markdown(metric_card("Avg Cost per Experiment", format_currency(summary.avg_cost),
                            f"{summary.completed_count} completed experiments"), unsafe_allow_html=True)
    c4.markdown(metric_card("Avg GPU Utilization", format_percent(summary.avg_utilization),
                            f"{summary.efficiency_label} efficiency", eff_color), unsafe_allow_html=True)

    st.markdown('<div class="section-title">Live Experiments</div>', unsafe_allow_html=True)
    for record in catalog.running:
        update = board.latest(record.id)
        cost = update.current_cost if update else record.total_cost
        details = ""
        if update:
            details = (
                '<div class="live-grid">'
                f'<div><div class="k">Progress</div><div class="v">Epoch {update.current_epoch}/{update.total_epochs}</div></div>'
                f'<div><div class="k">ETA</div><div class="v">{update.estimated_time_remaining}</div></div>'
                f'<div><div class="k">GPU Utilization</div><div class="v">{format_percent(update.gpu_utilization)}</div></div>'
                f'<div><div class="k">Throughput</div><div class="v">{update.throughput}</div></div>'
                '</div>'
                f'<div class="budget-bar-outer"><div class="budget-bar-inner" '
                f'style="width:{update.progress * 100:.1f}%;background:#8b5cf6"></div></div>'
            )
        st.markdown(f"""
        <div class="live-card">
            <div style="display:flex;justify-content:space-between">
                <div>
                    <span class="title">{record.name}</span><span class="badge">{record.gpu_type} x{record.num_gpus}</span>
                    <div class="who">{record.researcher} &bull; {record.team}</div>
                </div>
                <div><div class="cost">{format_currency(cost)}</div><div class="rate">{format_currency(record.cost_per_hour)}/hour</div></div>
            </div>
            {details}
        </div>
        """, unsafe_allow_html=True)

    alerts = board.alerts()
    if alerts:
        st.markdown('<div class="section-title">Budget Alerts</div>', unsafe_allow_html=True)
        for alert in alerts[:5]:
            st.markdown(
                f'<div class="alert-card {alert.kind}">{alert.message} '
                f'<span style="opacity:0.6">&middot; {relative_time(alert.timestamp)}</span></div>',
                unsafe_allow_html=True,
            )


# ───────────────────────────────────────────────────────────────
# TAB 1: OVERVIEW
# ───────────────────────────────────────────────────────────────
with tab1:
    live_panel()

    left_col, right_col = st.columns(2)
    with left_col:
        st.markdown('<div class="section-title">Most Expensive Experiments</div>', unsafe_allow_html=True)
        st.markdown("".join(
            rank_row(idx, e.name, f"{e.gpu_type} &bull; {relative_time(e.start_time)}", format_currency(e.total_cost))
            for idx, e in enumerate(top_expensive(catalog), start=1)
        ), unsafe_allow_html=True)

    with right_col:
        st.markdown('<div class="section-title">Best ROI Experiments</div>', unsafe_allow_html=True)
        st.markdown("".join(
            rank_row(idx, e.name, f"+{format_percent(e.accuracy_gain)} accuracy &bull; {format_currency(e.total_cost)}",
                     f"ROI: {e.roi:.1f}", "#22c55e")
            for idx, e in enumerate(best_roi(catalog), start=1)
        ), unsafe_allow_html=True)

    st.markdown('<div class="section-title">Recent Experiments</div>', unsafe_allow_html=True)
    render_table([
        {
            "Experiment": f"{e.name}<br><span style='opacity:0.6;font-size:0.75rem'>{e.researcher}</span>",
            "Status": status_pill(e.status),
            "GPU": f"{e.gpu_type} x{e.num_gpus}",
            "Duration": format_duration(e.duration_hours),
            "Cost": format_currency(e.total_cost),
            "Accuracy": f"{format_percent(e.final_accuracy)} <span style='color:#22c55e'>+{format_percent(e.accuracy_gain)}</span>",
            "Utilization": format_percent(e.avg_gpu_utilization),
        }
        for e in recent_experiments(catalog)
    ])


# ───────────────────────────────────────────────────────────────
# TAB 2: COST TRENDS
# ───────────────────────────────────────────────────────────────
with tab2:
    rng = random.Random(seed)
    history = generate_historical_data(30, rng=rng)
    projection = generate_cost_projection(history, rng=rng)

    st.markdown('<div class="section-title">Daily Spend & 7-day Projection</div>', unsafe_allow_html=True)
    fig_trend = go.Figure()
    fig_trend.add_trace(go.Scatter(
        x=[d.date for d in history],
        y=[d.total_cost for d in history],
        name="Daily cost ($)",
        mode="lines+markers",
        line=dict(color=COLORS[0], width=2.5),
        marker=dict(size=6),
        fill="tozeroy",
        fillcolor="rgba(139,92,246,0.08)",
    ))
    if projection:
        fig_trend.add_trace(go.Scatter(
            x=[history[-1].date] + [p.date for p in projection],
            y=[history[-1].total_cost] + [p.projected_cost for p in projection],
            name="Projected ($)",
            mode="lines+markers",
            line=dict(color=COLORS[1], width=2, dash="dash"),
            marker=dict(size=6, symbol="diamond"),
            text=[""] + [p.confidence for p in projection],
            hovertemplate="%{x}<br>$%{y:,.2f}<br>%{text}<extra></extra>",
        ))
    fig_trend.add_trace(go.Bar(
        x=[d.date for d in history],
        y=[d.avg_utilization for d in history],
        name="Avg utilization (%)",
        marker=dict(color="rgba(34,197,94,0.25)"),
        yaxis="y2",
    ))
    fig_trend.update_layout(
        **PLOTLY_LAYOUT,
        height=380,
        xaxis=dict(**GRID_STYLE, title=""),
        yaxis=dict(**GRID_STYLE, title="Cost ($)"),
        yaxis2=dict(title="Utilization (%)", side="right", overlaying="y", range=[0, 100], gridcolor="rgba(0,0,0,0)"),
        legend=dict(orientation="h", yanchor="bottom", y=1.04, xanchor="center", x=0.5),
    )
    st.plotly_chart(fig_trend, use_container_width=True)

    t1, t2, t3 = st.columns(3)
    t1.markdown(metric_card("30-day Total", format_currency(sum(d.total_cost for d in history)),
                            f"{format_number(sum(d.experiments for d in history))} experiments"), unsafe_allow_html=True)
    if projection:
        t2.markdown(metric_card("Next 7 days (projected)", format_currency(sum(p.projected_cost for p in projection)),
                                "moving average + trend", "amber"), unsafe_allow_html=True)
    t3.markdown(metric_card("Average ROI", f"{catalog.average_roi():.2f}", "completed experiments", "green"),
                unsafe_allow_html=True)

    # ── Epoch drill-down ──
    st.markdown('<div class="section-title">Epoch Breakdown</div>', unsafe_allow_html=True)
    records = {f"{e.name} ({e.id})": e for e in catalog.all_records()}
    choice = st.selectbox("Experiment", list(records), label_visibility="collapsed")
    record = records[choice]
    epochs = generate_epoch_metrics(record, random.Random(f"{seed}-{record.id}"))

    fig_epochs = go.Figure()
    fig_epochs.add_trace(go.Bar(
        x=[m.epoch for m in epochs], y=[m.cost for m in epochs],
        name="Cumulative cost ($)", marker=dict(color=COLORS[0]),
    ))
    fig_epochs.add_trace(go.Scatter(
        x=[m.epoch for m in epochs], y=[m.accuracy for m in epochs],
        name="Accuracy (%)", mode="lines+markers", line=dict(color=COLORS[2], width=2.5), yaxis="y2",
    ))
    fig_epochs.update_layout(
        **PLOTLY_LAYOUT,
        height=320,
        xaxis=dict(**GRID_STYLE, title="Epoch"),
        yaxis=dict(**GRID_STYLE, title="Cost ($)"),
        yaxis2=dict(title="Accuracy (%)", side="right", overlaying="y", gridcolor="rgba(0,0,0,0)"),
        legend=dict(orientation="h", yanchor="bottom", y=1.04, xanchor="center", x=0.5),
    )
    st.plotly_chart(fig_epochs, use_container_width=True)


# ───────────────────────────────────────────────────────────────
# TAB 3: GPU PRICING
# ───────────────────────────────────────────────────────────────
with tab3:
    st.markdown('<div class="section-title">Hourly Price by Provider</div>', unsafe_allow_html=True)
    gpu_types = all_gpu_types()
    fig_price = go.Figure()
    for idx, provider in enumerate(PROVIDERS):
        fig_price.add_trace(go.Bar(
            x=gpu_types,
            y=[get_gpu_price(g, provider) or None for g in gpu_types],
            name=provider.upper(),
            marker=dict(color=COLORS[idx]),
        ))
    fig_price.update_layout(
        **PLOTLY_LAYOUT,
        height=340,
        barmode="group",
        xaxis=dict(**GRID_STYLE, title=""),
        yaxis=dict(**GRID_STYLE, title="$ / GPU-hour"),
        legend=dict(orientation="h", yanchor="bottom", y=1.04, xanchor="center", x=0.5),
    )
    st.plotly_chart(fig_price, use_container_width=True)

    pricing_rows = []
    for row in GPU_PRICING:
        best = cheapest_provider(row["gpu_type"])
        pricing_rows.append({
            "Provider": row["provider"].upper(),
            "GPU": row["gpu_type"],
            "$/hr": f"${row['price_hr']:.2f}",
            "Memory": row["memory"],
            "Compute": row["compute"],
            "Availability": row["availability"],
            "Cheapest": "✓" if best is row else "",
        })
    render_table(pricing_rows)
