"""Write the brewing history to a spreadsheet."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from openpyxl import Workbook

from .models import Batch
from .utils import format_date

HISTORY_HEADERS = [
    "Name",
    "Started",
    "Completed",
    "Days",
    "Tea",
    "SCOBY",
    "Sugar",
    "Starter Liquid",
    "Brewing Notes",
    "Rating",
    "Tasting Notes",
]


def history_rows(batches: Iterable[Batch]) -> List[list]:
    rows = []
    for batch in batches:
        profile = batch.profile
        rows.append(
            [
                batch.name,
                format_date(batch.start_date),
                format_date(batch.end_date),
                batch.duration_days,
                profile.tea_type.display_name if profile.tea_type else "",
                profile.scoby_name or "",
                profile.sugar or "",
                profile.starter_liquid_amount or "",
                profile.active_notes or "",
                batch.rating if batch.rating is not None else "",
                batch.notes or "",
            ]
        )
    return rows


def build_workbook(batches: Iterable[Batch]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = "History"
    ws.append(HISTORY_HEADERS)
    for row in history_rows(batches):
        ws.append(row)
    return wb


def export_history(batches: Iterable[Batch], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = build_workbook(batches)
    wb.save(path)
    return path


__all__ = ["export_history", "build_workbook", "history_rows", "HISTORY_HEADERS"]
