"""Per-destination coordinate overrides and the marker drag state machine.

Overrides never touch trip records: they live in a key-value blob keyed by
destination key and are applied on top of computed coordinates at render
time. The store is injectable so tests can swap the JSON file for memory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Literal, Mapping, Optional, Protocol, Tuple

from core.data import Coordinate, parse_coordinates
from core.geo import inverse_project

logger = logging.getLogger(__name__)

Phase = Literal["idle", "dragging"]


class DragInProgress(RuntimeError):
    pass


class OverrideStore(Protocol):
    def get(self) -> Dict[str, Coordinate]: ...

    def set(self, mapping: Mapping[str, Coordinate]) -> None: ...

    def clear(self) -> None: ...


def _clean_mapping(raw: object) -> Dict[str, Coordinate]:
    if not isinstance(raw, dict):
        return {}
    out: Dict[str, Coordinate] = {}
    for key, value in raw.items():
        coord = parse_coordinates(value)
        if coord is None:
            logger.warning("Ignoring malformed override for %r: %r", key, value)
            continue
        out[str(key)] = coord
    return out


class InMemoryOverrideStore:
    def __init__(self, initial: Optional[Mapping[str, Coordinate]] = None):
        self._data: Dict[str, Coordinate] = dict(initial or {})
        self.writes = 0

    def get(self) -> Dict[str, Coordinate]:
        return dict(self._data)

    def set(self, mapping: Mapping[str, Coordinate]) -> None:
        self._data = dict(mapping)
        self.writes += 1

    def clear(self) -> None:
        self._data = {}
        self.writes += 1


class JsonFileOverrideStore:
    """Durable override blob in a single JSON file.

    A missing, unreadable or corrupt file reads as an empty mapping. Writes go
    through a temp file and ``os.replace`` so a reader never sees half a blob.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self) -> Dict[str, Coordinate]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read overrides from %s: %s", self.path, exc)
            return {}
        return _clean_mapping(raw)

    def set(self, mapping: Mapping[str, Coordinate]) -> None:
        payload = {k: [float(v[0]), float(v[1])] for k, v in mapping.items()}
        with self._lock:
            self._write(payload)

    def clear(self) -> None:
        with self._lock:
            self._write({})

    def _write(self, payload: Dict[str, list]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".overrides-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Wrote %d overrides to %s", len(payload), self.path)


def pixel_to_percent(x_px: float, y_px: float, width: float, height: float) -> Tuple[float, float]:
    """Container-relative pixel position to percent, clamped to the container."""
    if width <= 0 or height <= 0:
        raise ValueError("container size must be positive")
    x_pct = max(0.0, min(100.0, x_px / width * 100))
    y_pct = max(0.0, min(100.0, y_px / height * 100))
    return x_pct, y_pct


class MarkerDragSession:
    """Idle -> Dragging(key) -> Idle.

    Moves update the in-memory override continuously; the store is written
    once per gesture, on release.
    """

    def __init__(self, store: OverrideStore):
        self.store = store
        self.phase: Phase = "idle"
        self.active_key: Optional[str] = None
        self._overrides: Dict[str, Coordinate] = store.get()

    @property
    def overrides(self) -> Dict[str, Coordinate]:
        return dict(self._overrides)

    @property
    def is_dragging(self) -> bool:
        return self.phase == "dragging"

    def press(self, key: str) -> bool:
        if self.is_dragging:
            logger.debug("Ignoring press on %r while dragging %r", key, self.active_key)
            return False
        self.phase = "dragging"
        self.active_key = key
        return True

    def move(self, x_px: float, y_px: float, width: float, height: float) -> Optional[Coordinate]:
        if not self.is_dragging or self.active_key is None:
            return None
        x_pct, y_pct = pixel_to_percent(x_px, y_px, width, height)
        coord = inverse_project(x_pct, y_pct)
        self._overrides[self.active_key] = coord
        return coord

    def release(self) -> Optional[str]:
        if not self.is_dragging:
            return None
        key = self.active_key
        # phase stays dragging until the flush succeeds
        self.store.set(self._overrides)
        self.phase = "idle"
        self.active_key = None
        logger.info("Committed override for %r (%d total)", key, len(self._overrides))
        return key

    def reset_all(self) -> None:
        if self.is_dragging:
            raise DragInProgress(f"cannot reset overrides while dragging {self.active_key!r}")
        self.store.clear()
        self._overrides = {}
        logger.info("Cleared all coordinate overrides")
