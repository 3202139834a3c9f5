from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from core.charts import monthly_bar, share_pie, to_vega_spec
from core.data import Expense, Trip, percentage, round_half_up
from core.filters import AnalyticsFilters
from core.stats import calculate_year_expense_stats


def compute_expenses(filters: AnalyticsFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    trips: List[Trip] = ctx.get("trips", []) or []
    expenses: List[Expense] = ctx.get("expenses", []) or []
    stats = calculate_year_expense_stats(trips, expenses, filters.year, top=filters.top_expenses)

    trip_comparison = sorted(
        (
            {
                "trip_id": trip_id,
                "trip_name": stats.trip_names.get(trip_id, trip_id),
                "amount": amount,
                "percentage": round_half_up(percentage(amount, stats.total_expenses), 1),
            }
            for trip_id, amount in stats.by_trip_total.items()
        ),
        key=lambda r: r["amount"],
        reverse=True,
    )

    charts: Dict[str, Any] = {}
    if stats.total_expenses > 0:
        charts = {
            "by_category": to_vega_spec(share_pie(stats.by_category_total, label_title="Category")),
            "monthly_expenses": to_vega_spec(monthly_bar(stats.monthly_expenses, value_title="Spend", value_format="$,.0f")),
        }

    largest = stats.category_shares[0] if stats.category_shares else None
    return {
        "filters": asdict(filters),
        "kpis": {
            "total_expenses": stats.total_expenses,
            "largest_category": asdict(largest) if largest else None,
            "average_per_trip": stats.average_per_trip,
            "average_per_month": stats.average_per_month,
        },
        "stats": asdict(stats),
        "trip_comparison": trip_comparison,
        "charts": charts,
    }
