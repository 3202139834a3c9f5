from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import AnalyticsFiltersModel, DragMoveRequest, DragPressRequest
from core.data import OVERRIDES_PATH, expenses_frame, load_travel_data, prepare_context, trips_frame
from core.filters import AnalyticsFilters, default_year, normalize_filters
from core.metrics_expenses import compute_expenses
from core.metrics_habits import compute_habits
from core.metrics_map import compute_map
from core.metrics_yearly import compute_yearly
from core.overrides import DragInProgress, JsonFileOverrideStore, MarkerDragSession


app = FastAPI(title="Travel Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session: Optional[MarkerDragSession] = None
_session_lock = threading.Lock()


def get_data_ctx() -> Dict[str, Any]:
    return load_travel_data()


def get_drag_session() -> MarkerDragSession:
    global _session
    with _session_lock:
        if _session is None:
            _session = MarkerDragSession(JsonFileOverrideStore(OVERRIDES_PATH))
        return _session


def _filters_from_model(model: AnalyticsFiltersModel, *, available_years: list[int]) -> AnalyticsFilters:
    raw = model.model_dump()
    return normalize_filters(raw, available_years=available_years)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _session_state(session: MarkerDragSession) -> Dict[str, Any]:
    return {
        "phase": session.phase,
        "active_key": session.active_key,
        "overrides": {k: [v[0], v[1]] for k, v in session.overrides.items()},
    }


@app.get("/meta/years")
def meta_years(data_ctx: Dict[str, Any] = Depends(get_data_ctx)):
    try:
        years = [int(y) for y in data_ctx.get("years", []) or []]
        return _json({"years": years, "default_year": default_year(years)})
    except Exception as exc:
        logger.exception("meta_years failed")
        return _error(exc)


@app.post("/habits")
def habits(filters: AnalyticsFiltersModel, data_ctx: Dict[str, Any] = Depends(get_data_ctx)):
    try:
        f = _filters_from_model(filters, available_years=data_ctx.get("years", []))
        ctx = prepare_context(f, data_ctx)
        return _json(compute_habits(f, ctx))
    except Exception as exc:
        logger.exception("habits failed")
        return _error(exc)


@app.post("/yearly")
def yearly(filters: AnalyticsFiltersModel, data_ctx: Dict[str, Any] = Depends(get_data_ctx)):
    try:
        f = _filters_from_model(filters, available_years=data_ctx.get("years", []))
        ctx = prepare_context(f, data_ctx)
        return _json(compute_yearly(f, ctx))
    except Exception as exc:
        logger.exception("yearly failed")
        return _error(exc)


@app.post("/expenses")
def expenses(filters: AnalyticsFiltersModel, data_ctx: Dict[str, Any] = Depends(get_data_ctx)):
    try:
        f = _filters_from_model(filters, available_years=data_ctx.get("years", []))
        ctx = prepare_context(f, data_ctx)
        return _json(compute_expenses(f, ctx))
    except Exception as exc:
        logger.exception("expenses failed")
        return _error(exc)


@app.post("/map")
def travel_map(
    filters: AnalyticsFiltersModel,
    data_ctx: Dict[str, Any] = Depends(get_data_ctx),
    session: MarkerDragSession = Depends(get_drag_session),
):
    try:
        f = _filters_from_model(filters, available_years=data_ctx.get("years", []))
        ctx = prepare_context(f, data_ctx)
        return _json(compute_map(f, ctx, overrides=session.overrides))
    except Exception as exc:
        logger.exception("map failed")
        return _error(exc)


@app.get("/map/overrides")
def map_overrides(session: MarkerDragSession = Depends(get_drag_session)):
    return _json(_session_state(session))


@app.post("/map/drag/press")
def drag_press(body: DragPressRequest, session: MarkerDragSession = Depends(get_drag_session)):
    with _session_lock:
        accepted = session.press(body.key)
        return _json({"accepted": accepted, **_session_state(session)})


@app.post("/map/drag/move")
def drag_move(body: DragMoveRequest, session: MarkerDragSession = Depends(get_drag_session)):
    with _session_lock:
        coord = session.move(body.x, body.y, body.width, body.height)
        return _json({"coordinate": list(coord) if coord is not None else None, **_session_state(session)})


@app.post("/map/drag/release")
def drag_release(session: MarkerDragSession = Depends(get_drag_session)):
    try:
        with _session_lock:
            committed = session.release()
            return _json({"committed": committed, **_session_state(session)})
    except Exception as exc:
        logger.exception("drag_release failed")
        return _error(exc)


@app.post("/map/overrides/reset")
def reset_overrides(session: MarkerDragSession = Depends(get_drag_session)):
    try:
        with _session_lock:
            session.reset_all()
            return _json(_session_state(session))
    except DragInProgress as exc:
        return _error(exc, status_code=409)
    except Exception as exc:
        logger.exception("reset_overrides failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: AnalyticsFiltersModel, data_ctx: Dict[str, Any] = Depends(get_data_ctx)):
    f = _filters_from_model(filters, available_years=data_ctx.get("years", []))
    ctx = prepare_context(f, data_ctx)

    filename = f"{page}.csv"
    if page == "trips":
        export_df = trips_frame(ctx["filtered_trips"])
    elif page == "expenses":
        export_df = expenses_frame(ctx["filtered_expenses"])
    else:
        export_df = pd.DataFrame()

    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
