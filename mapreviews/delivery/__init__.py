"""Delivery of run artifacts: file exports and persisted history."""

from mapreviews.delivery.export import CSV_HEADER, to_csv, to_json
from mapreviews.delivery.history import HistoryEntry, HistoryStore

__all__ = [
    "CSV_HEADER",
    "HistoryEntry",
    "HistoryStore",
    "to_csv",
    "to_json",
]
