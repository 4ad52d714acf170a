"""Display helpers for 0-100 scores and market capitalisation (INR)."""

from typing import Dict, List

import plotly.graph_objects as go

# (lower bound, label, colour); first match wins.
_SCORE_BANDS = [
    (70.0, "Strong", "#059669"),
    (55.0, "Good", "#65a30d"),
    (40.0, "Fair", "#f59e0b"),
]
_WEAK = ("Weak", "#ef4444")


def _band(score: float):
    s = float(score or 0)
    for lower, label, color in _SCORE_BANDS:
        if s >= lower:
            return label, color
    return _WEAK


def score_label(score: float) -> str:
    return _band(score)[0]


def score_color(score: float) -> str:
    return _band(score)[1]


def _group_indian(n: int) -> str:
    """12345678 -> 1,23,45,678"""
    s = str(abs(n))
    if len(s) > 3:
        head, tail = s[:-3], s[-3:]
        parts = []
        while len(head) > 2:
            parts.insert(0, head[-2:])
            head = head[:-2]
        if head:
            parts.insert(0, head)
        s = ",".join(parts + [tail])
    return ("-" if n < 0 else "") + s


def format_market_cap(cap: float) -> str:
    cap = float(cap or 0)
    if cap >= 1e12:
        return f"₹{cap / 1e12:.1f}T"
    if cap >= 1e9:
        return f"₹{cap / 1e9:.0f}B"
    if cap >= 1e7:
        return f"₹{cap / 1e7:.0f}Cr"
    return f"₹{_group_indian(int(round(cap)))}"


def factor_radar_figure(profiles: Dict[str, Dict[str, float]], factor_names: List[str], height: int = 380) -> go.Figure:
    """Polar chart of 0-100 factor scores, one closed trace per profile (company or ticker)."""
    fig = go.Figure()
    for label, scores in profiles.items():
        r = [float(scores.get(name, 0) or 0) for name in factor_names]
        # Repeat the first point so the outline closes.
        fig.add_trace(go.Scatterpolar(r=r + r[:1], theta=factor_names + factor_names[:1], fill="toself", name=label))
    fig.update_layout(
        height=height,
        margin=dict(l=30, r=30, t=30, b=30),
        showlegend=len(profiles) > 1,
        polar=dict(
            radialaxis=dict(visible=True, range=[0, 100], tickvals=[0, 20, 40, 60, 80, 100]),
            angularaxis=dict(direction="clockwise"),
        ),
    )
    return fig
