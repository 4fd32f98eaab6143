"""
review_view.py
----------------
Recurring Transactions review page.

Layout:
    Header
    KPI row (4 cards): detected patterns, recurring income, expenses, net
    Confidence chart
    One card per pending pattern with Confirm / Dismiss buttons
    Confirmed recurring schedules table
"""

import html

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from core.exceptions import ConfirmationError
from core.pattern_actions import summarize_patterns


TYPE_COLORS = {
    "income":  "#27ae60",
    "expense": "#e74c3c",
}


def render_review_view(pipeline):
    """Renders the full review page for the pipeline's pending patterns."""

    # --- Header ---
    st.markdown("""
        <div class="main-header">
            <h1>🔁 Recurring Transactions</h1>
            <p>Patterns detected in the last six months, waiting for your review</p>
        </div>
    """, unsafe_allow_html=True)

    patterns = pipeline.patterns

    _render_kpis(patterns)

    if not patterns:
        st.info(
            "No recurring patterns detected yet. As you add more transactions, "
            "patterns will be automatically identified."
        )
    else:
        st.markdown('<div class="section-title" style="margin-top:24px;">Confidence</div>', unsafe_allow_html=True)
        _render_confidence_chart(patterns)

        st.markdown('<div class="section-title" style="margin-top:24px;">Detected Recurring Patterns</div>', unsafe_allow_html=True)
        for idx, pattern in enumerate(patterns):
            _render_pattern_card(pipeline, pattern, idx)

    st.markdown('<div class="section-title" style="margin-top:28px;">Confirmed Schedules</div>', unsafe_allow_html=True)
    confirmed = pipeline.store.list_recurring_transactions(pipeline.user_id)
    if confirmed.empty:
        st.caption("Nothing confirmed yet.")
    else:
        st.dataframe(
            confirmed[["vendor_name", "type", "frequency", "amount", "start_date", "next_due_date", "is_active"]],
            use_container_width=True,
            hide_index=True,
        )


# =============================================================================
# KPIs
# =============================================================================

def _render_kpis(patterns: list):
    """Renders the 4 KPI cards."""
    totals = summarize_patterns(patterns)
    net_color = "green" if totals["net_recurring"] >= 0 else "red"

    kpis = [
        ("Detected Patterns", f"{totals['pattern_count']:,}", ""),
        ("Recurring Income", f"${totals['recurring_income']:,.2f}", "green"),
        ("Recurring Expenses", f"${totals['recurring_expenses']:,.2f}", "red"),
        ("Net Recurring", f"${totals['net_recurring']:,.2f}", net_color),
    ]

    cols = st.columns(4, gap="small")
    for col, (label, value, color_class) in zip(cols, kpis):
        with col:
            st.markdown(f"""
                <div class="kpi-card {color_class}">
                    <div class="kpi-value">{value}</div>
                    <div class="kpi-label">{label}</div>
                </div>
            """, unsafe_allow_html=True)


# =============================================================================
# CONFIDENCE CHART
# =============================================================================

def _render_confidence_chart(patterns: list):
    """Horizontal bar chart of pattern confidence, colored by direction."""
    labels = [f"{p.vendor_name} ({p.frequency})" for p in patterns]
    values = [p.confidence for p in patterns]
    colors = [TYPE_COLORS.get(p.type, "#95a5a6") for p in patterns]

    fig = go.Figure(go.Bar(
        x=values,
        y=labels,
        orientation="h",
        marker_color=colors,
        text=[f"{v:.0f}%" for v in values],
        textposition="outside",
    ))
    fig.update_layout(
        height=max(160, 36 * len(patterns)),
        margin=dict(l=160, r=40, t=10, b=20),
        plot_bgcolor="white",
        xaxis=dict(range=[0, 110], title="Confidence"),
        yaxis=dict(autorange="reversed"),
    )
    st.plotly_chart(fig, use_container_width=True)


# =============================================================================
# PATTERN CARDS
# =============================================================================

def _pattern_card_html(pattern) -> str:
    """Card markup for one pattern. Vendor names are user data and are escaped."""
    badge = "badge-high" if pattern.confidence >= 80 else "badge-medium"
    return f"""
        <div class="product-card">
            <div class="product-card-header">
                <h4>{html.escape(pattern.vendor_name)}</h4>
                <span class="badge {badge}">{pattern.confidence:.0f}%</span>
            </div>
            <div style="font-size:13px; color:#2c3e50; line-height:1.7;">
                <b>{html.escape(pattern.type.title())}</b> · {html.escape(pattern.frequency)}<br>
                Amount: ${pattern.amount:,.2f} · {pattern.occurrences} times<br>
                Last payment: {pattern.last_date:%b %d, %Y} · Next expected: {pattern.next_expected_date:%b %d, %Y}
            </div>
        </div>
    """


def _render_pattern_card(pipeline, pattern, idx: int):
    """One card per pattern. Confirm persists; Dismiss only hides until the next scan."""
    info, actions = st.columns([4, 1])
    with info:
        st.markdown(_pattern_card_html(pattern), unsafe_allow_html=True)

    with actions:
        if st.button("Confirm", key=f"confirm_{idx}", use_container_width=True):
            try:
                pipeline.confirm(pattern)
                st.toast(f"{pattern.vendor_name} marked as {pattern.frequency} recurring transaction")
            except ConfirmationError as e:
                st.error(str(e))
            st.rerun()
        if st.button("Dismiss", key=f"dismiss_{idx}", use_container_width=True):
            pipeline.dismiss(pattern)
            st.rerun()
