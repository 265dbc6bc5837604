"""Chart generation using Plotly."""

from typing import Any, Dict, List

import plotly.graph_objects as go

from ..engine.accounting import LedgerSnapshot
from ..engine.fixed_point import SCALE
from ..engine.vesting import VestingSchedule, vested_amount

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "cyan_fill": "rgba(0, 212, 255, 0.12)",
    "amber": "#ffab00",
    "amber_fill": "rgba(255, 171, 0, 0.12)",
    "red": "#ff5252",
    "green": "#00e676",
}

DAY = 86400


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply the dark chart layout."""
    fig.update_layout(
        title={"text": title, "x": 0, "xanchor": "left", "font": {"size": 11, "color": THEME["text_secondary"]}},
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0, bgcolor="rgba(0,0,0,0)"),
        plot_bgcolor="rgba(8, 9, 10, 1)",
        paper_bgcolor="rgba(8, 9, 10, 1)",
        font={"color": THEME["text"], "size": 11},
        xaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
    )


def create_staking_chart(snapshots: List[LedgerSnapshot]) -> go.Figure:
    """Total staked and pool reward reserve over time."""
    days = [s.t / DAY for s in snapshots]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=days,
        y=[s.total_staked for s in snapshots],
        name='Total staked',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2),
        fill='tozeroy',
        fillcolor=THEME["cyan_fill"]
    ))
    fig.add_trace(go.Scatter(
        x=days,
        y=[s.reward_reserve for s in snapshots],
        name='Reward reserve',
        mode='lines',
        line=dict(color=THEME["amber"], width=2, dash='dot')
    ))
    apply_dark_layout(fig, "Stake Pool", "Time (days)", "Units")
    return fig


def create_accumulator_chart(snapshots: List[LedgerSnapshot]) -> go.Figure:
    """Rewards per staked unit (unscaled) over time."""
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=[s.t / DAY for s in snapshots],
        y=[s.accumulated / SCALE for s in snapshots],
        name='Rewards per token',
        mode='lines',
        line=dict(color=THEME["green"], width=2, shape='hv')
    ))
    apply_dark_layout(fig, "Reward-per-Token Accumulator", "Time (days)", "Reward per staked unit", showlegend=False)
    return fig


def create_rewards_chart(metrics: List[Dict[str, Any]]) -> go.Figure:
    """Emitted vs distributed rewards."""
    days = [m['t'] / DAY for m in metrics]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=days, y=[m['rewards_emitted'] for m in metrics],
        name='Emitted', mode='lines', line=dict(color=THEME["text_secondary"], width=2, dash='dot')
    ))
    fig.add_trace(go.Scatter(
        x=days, y=[m['rewards_distributed'] for m in metrics],
        name='Distributed', mode='lines', line=dict(color=THEME["cyan"], width=2)
    ))
    fig.add_trace(go.Scatter(
        x=days, y=[m['rewards_paid'] for m in metrics],
        name='Paid out', mode='lines', line=dict(color=THEME["amber"], width=2)
    ))
    apply_dark_layout(fig, "Rewards", "Time (days)", "Units")
    return fig


def create_vesting_chart(schedules: Dict[str, VestingSchedule], points: int = 200) -> go.Figure:
    """Vested amount curve for each schedule."""
    fig = go.Figure()
    if not schedules:
        apply_dark_layout(fig, "Vesting Schedules", "Time (days)", "Vested")
        return fig

    first = min(s.start_time for s in schedules.values())
    last = max(s.end_time for s in schedules.values())
    step = max(1, (last - first) // points)
    times = list(range(first, last + step, step))

    colors = [THEME["cyan"], THEME["amber"], THEME["green"], THEME["red"], THEME["text_secondary"]]
    for i, (beneficiary, schedule) in enumerate(sorted(schedules.items())):
        fig.add_trace(go.Scatter(
            x=[t / DAY for t in times],
            y=[vested_amount(schedule, t) for t in times],
            name=beneficiary,
            mode='lines',
            line=dict(color=colors[i % len(colors)], width=2)
        ))
    apply_dark_layout(fig, "Vesting Schedules", "Time (days)", "Vested")
    return fig
