import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Optional

from core.data import OVERRIDES_PATH, expenses_frame, load_travel_data, prepare_context, trips_frame
from core.filters import ALL_YEARS, normalize_filters
from core.metrics_expenses import compute_expenses
from core.metrics_habits import compute_habits
from core.metrics_map import compute_map
from core.metrics_yearly import compute_yearly
from core.overrides import JsonFileOverrideStore, MarkerDragSession

alt.data_transformers.disable_max_rows()

# Virtual map canvas used to translate slider positions into drag events.
CANVAS_WIDTH = 1000
CANVAS_HEIGHT = 500


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def show_chart(spec: Optional[dict]):
    if spec:
        st.vega_lite_chart(spec, use_container_width=True)
    else:
        st.info("No data for this chart.")


def get_drag_session() -> MarkerDragSession:
    if "drag_session" not in st.session_state:
        st.session_state["drag_session"] = MarkerDragSession(JsonFileOverrideStore(OVERRIDES_PATH))
    return st.session_state["drag_session"]


# ---------- UI setup ----------
st.set_page_config(page_title="Travel Analytics", layout="wide")
inject_base_styles()
st.title("Travel Analytics")
st.caption("Yearly travel overview, spending, destinations and habits.")

data_ctx = load_travel_data()
if not data_ctx["trips"]:
    st.info("No trips recorded yet. Add trips.json to the data directory to get started.")
    st.stop()

years = data_ctx["years"]
default = normalize_filters({}, available_years=years).year
options = [ALL_YEARS] + years
with st.sidebar:
    st.markdown("### Filters")
    year_choice = st.selectbox(
        "Year",
        options,
        index=options.index(default) if default in options else 0,
        format_func=lambda y: "All years" if y == ALL_YEARS else str(y),
    )
    top_n = st.slider("Top preferences", min_value=1, max_value=10, value=3)

filters = normalize_filters({"year": year_choice, "top_n": top_n}, available_years=years)
ctx = prepare_context(filters, data_ctx)
st.markdown(
    f"<div class='chip-row'><span class='chip'>Year: {'All' if filters.year == ALL_YEARS else filters.year}</span>"
    f"<span class='chip'>Trips: {len(ctx['filtered_trips'])}</span></div>",
    unsafe_allow_html=True,
)

tab_yearly, tab_expenses, tab_map, tab_habits = st.tabs(["Yearly Overview", "Yearly Expenses", "Travel Map", "Travel Habits"])

with tab_yearly:
    payload = compute_yearly(filters, ctx)
    kpis = payload["kpis"]
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Trips", kpis["trip_count"])
    c2.metric("Travel days", kpis["total_days"])
    c3.metric("Countries", kpis["total_countries"])
    c4.metric("Cities", kpis["total_cities"])
    with card("Trips per month"):
        show_chart(payload["charts"].get("monthly_trips"))
    with card("Trip types"):
        show_chart(payload["charts"].get("trip_types"))

with tab_expenses:
    payload = compute_expenses(filters, ctx)
    kpis = payload["kpis"]
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total spend", f"${kpis['total_expenses']:,.0f}")
    largest = kpis["largest_category"]
    c2.metric("Largest category", f"{largest['category']} (${largest['amount']:,.0f})" if largest else "N/A")
    c3.metric("Average per trip", f"${kpis['average_per_trip']:,.0f}")
    c4.metric("Average per month", f"${kpis['average_per_month']:,.0f}")
    left, right = st.columns(2)
    with left:
        with card("Spend by category"):
            show_chart(payload["charts"].get("by_category"))
    with right:
        with card("Monthly spend"):
            show_chart(payload["charts"].get("monthly_expenses"))
    with card("Top expenses"):
        top_df = pd.DataFrame(payload["stats"]["top_expenses"])
        if top_df.empty:
            st.info("No expenses for this selection.")
        else:
            st.dataframe(top_df, use_container_width=True, hide_index=True)
    exp_df = expenses_frame(ctx["filtered_expenses"])
    if not exp_df.empty:
        st.download_button("Export expenses CSV", data=exp_df.to_csv(index=False).encode("utf-8"), file_name="expenses.csv", mime="text/csv")

with tab_map:
    session = get_drag_session()
    payload = compute_map(filters, ctx, overrides=session.overrides)
    with card("Destinations"):
        show_chart(payload["charts"].get("markers"))
        if payload["dropped"]:
            st.warning(f"Not shown (coordinates out of range): {', '.join(payload['dropped'])}")
    markers = payload["markers"]
    if markers:
        with card("Move a marker"):
            keys = [m["key"] for m in markers]
            key = st.selectbox("Destination", keys)
            current = next(m for m in markers if m["key"] == key)
            x_pct = st.slider("Horizontal position (%)", 0.0, 100.0, float(current["percent_position"][0]))
            y_pct = st.slider("Vertical position (%)", 0.0, 100.0, float(current["percent_position"][1]))
            b1, b2 = st.columns(2)
            if b1.button("Save position"):
                if session.press(key):
                    session.move(x_pct / 100 * CANVAS_WIDTH, y_pct / 100 * CANVAS_HEIGHT, CANVAS_WIDTH, CANVAS_HEIGHT)
                    session.release()
                    st.rerun()
            if b2.button("Reset all positions"):
                session.reset_all()
                st.rerun()
    with card("Popular regions"):
        regions = pd.DataFrame(payload["popular_regions"])
        if regions.empty:
            st.info("No country information in these trips.")
        else:
            st.dataframe(regions, use_container_width=True, hide_index=True)
    trip_df = trips_frame(ctx["filtered_trips"])
    st.download_button("Export trips CSV", data=trip_df.to_csv(index=False).encode("utf-8"), file_name="trips.csv", mime="text/csv")

with tab_habits:
    payload = compute_habits(filters, ctx)
    stats = payload["stats"]
    if stats is None:
        st.info("No trips for this selection.")
    else:
        duration = stats["duration"]
        companions = stats["companions"]
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Average length (days)", f"{duration['average']:.1f}")
        c2.metric("Shortest / longest", f"{duration['shortest']} / {duration['longest']}")
        c3.metric("Most common length", duration["most_common"] or "N/A")
        c4.metric("Average group size", f"{companions['average_group_size']:.1f}")
        left, right = st.columns(2)
        with left:
            with card("Trip length"):
                show_chart(payload["charts"].get("duration_distribution"))
            with card("Companions"):
                show_chart(payload["charts"].get("companions"))
        with right:
            with card("Seasons"):
                show_chart(payload["charts"].get("seasons"))
            with card("Top preferences"):
                for label, rows in payload["top"].items():
                    if rows:
                        st.markdown(f"**{label.replace('_', ' ').title()}**")
                        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
