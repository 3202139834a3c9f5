from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def monthly_bar(values: Sequence[float], *, value_title: str, value_format: str = ",") -> alt.Chart:
    df = pd.DataFrame({"month": MONTH_LABELS, "value": list(values)})
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("month:N", title="Month", sort=MONTH_LABELS),
            y=alt.Y("value:Q", title=value_title, axis=alt.Axis(format=value_format, gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=["month", alt.Tooltip("value:Q", title=value_title, format=value_format)],
        )
        .properties(height=240)
    )


def counts_bar(counts: Mapping[str, float], *, label_title: str, value_title: str = "Trips") -> alt.Chart:
    df = pd.DataFrame({"label": list(counts.keys()), "value": list(counts.values())})
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("label:N", title=label_title, sort=list(counts.keys())),
            y=alt.Y("value:Q", title=value_title),
            tooltip=[alt.Tooltip("label:N", title=label_title), alt.Tooltip("value:Q", title=value_title)],
        )
        .properties(height=240)
    )


def share_pie(counts: Mapping[str, float], *, label_title: str) -> alt.Chart:
    df = pd.DataFrame({"label": list(counts.keys()), "value": list(counts.values())})
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=40)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("label:N", title=label_title),
            tooltip=[alt.Tooltip("label:N", title=label_title), alt.Tooltip("value:Q", format=",")],
        )
        .properties(height=240)
    )


def marker_scatter(markers: List[Dict[str, Any]]) -> alt.Chart:
    df = pd.DataFrame(
        {
            "key": [m["key"] for m in markers],
            "x": [m["percent_position"][0] for m in markers],
            "y": [m["percent_position"][1] for m in markers],
            "trips": [m["trip_count"] for m in markers],
            "area": [m["marker_size"] ** 2 for m in markers],
            "overridden": [m["overridden"] for m in markers],
        }
    )
    return (
        alt.Chart(df)
        .mark_circle(opacity=0.8)
        .encode(
            x=alt.X("x:Q", scale=alt.Scale(domain=[0, 100]), axis=None),
            y=alt.Y("y:Q", scale=alt.Scale(domain=[0, 100], reverse=True), axis=None),
            size=alt.Size("area:Q", legend=None, scale=alt.Scale(type="identity")),
            color=alt.Color("overridden:N", title="Manually placed"),
            tooltip=["key", "trips"],
        )
        .properties(height=360)
    )
