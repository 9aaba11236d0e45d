from openpyxl import load_workbook

from kombucha.export import HISTORY_HEADERS, export_history
from kombucha.models import BrewingProfile, TeaType


def test_export_history_writes_one_row_per_batch(manager, tmp_path):
    batch = manager.start_batch(5, BrewingProfile(tea_type=TeaType.BLACK, sugar="1 cup"))
    manager.finish_early(batch.id)
    manager.complete_pending_review(rating=4, notes="tangy")

    path = export_history(manager.history, tmp_path / "out" / "history.xlsx")

    ws = load_workbook(path).active
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == HISTORY_HEADERS
    assert rows[1][0] == "Batch #1"
    assert rows[1][4] == "Black"
    assert rows[1][6] == "1 cup"
    assert rows[1][9] == 4
    assert rows[1][10] == "tangy"
