"""Core (UI-agnostic) travel analytics logic.

This package contains:
- record normalization and loading (JSON -> Trip / Expense)
- filter normalization (year selection, map settings)
- typed reducers over trips and expenses
- destination projection and coordinate overrides
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
