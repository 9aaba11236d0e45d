from typer.testing import CliRunner

from kombucha import cli
from kombucha.cli import app
from kombucha.manager import FermentationManager
from kombucha.notifications import ReminderOutbox

runner = CliRunner()


def invoke(*args):
    return runner.invoke(app, list(args))


def test_full_batch_lifecycle(tmp_path):
    result = invoke("start", "7", "--tea", "black", "--scoby", "Mother")
    assert result.exit_code == 0, result.output
    assert "Started Batch #1" in result.output

    result = invoke("status")
    assert "Batch #1" in result.output
    assert "tea: Black, scoby: Mother" in result.output

    result = invoke("duration", "1", "3")
    assert "now runs 3 days" in result.output

    result = invoke("finish", "#1")
    assert result.exit_code == 0, result.output

    result = invoke("status")
    assert "Batch #1 is ready!" in result.output
    assert "No active fermentations." in result.output

    result = invoke("review", "--rating", "4", "--notes", "tangy")
    assert "Batch #1 added to history" in result.output

    result = invoke("history")
    assert "Batch #1" in result.output
    assert "****" in result.output
    assert "tangy" in result.output

    target = tmp_path / "history.xlsx"
    result = invoke("export", "--out", str(target))
    assert result.exit_code == 0, result.output
    assert target.exists()

    result = invoke("delete", "1")
    assert "Deleted Batch #1 from history" in result.output
    assert "No completed fermentations yet." in invoke("history").output


def test_edit_and_history_edit():
    invoke("start", "2")
    invoke("edit", "1", "--sugar", "1 cup", "--notes", "extra ginger")
    assert "sugar: 1 cup, notes: extra ginger" in invoke("status").output

    invoke("finish", "1")
    invoke("review")
    result = invoke("history-edit", "1", "--rating", "5", "--notes", "best yet")
    assert result.exit_code == 0, result.output
    history = invoke("history").output
    assert "*****" in history
    assert "best yet" in history


def test_discard_removes_active_batch():
    invoke("start", "4")

    result = invoke("discard", "1")

    assert "Discarded Batch #1" in result.output
    assert "No active fermentations." in invoke("status").output


def test_domain_errors_are_reported_as_bad_parameters():
    assert invoke("start", "0").exit_code != 0
    assert invoke("start", "3", "--tea", "coffee").exit_code != 0
    assert invoke("finish", "99").exit_code != 0
    assert invoke("review", "--rating", "4").exit_code != 0

    invoke("start", "3")
    invoke("finish", "1")
    assert invoke("review", "--rating", "9").exit_code != 0


def test_watch_single_pass():
    invoke("start", "1")

    result = invoke("watch", "--once")

    assert result.exit_code == 0, result.output


def test_watch_announces_batch_that_finishes_while_running(monkeypatch, clock):
    FermentationManager(notifier=ReminderOutbox(), clock=clock).start_batch(1)

    def running_watcher():
        watcher = FermentationManager(notifier=ReminderOutbox(), clock=clock)
        clock.advance(days=1, seconds=1)
        return watcher

    with monkeypatch.context() as patch:
        patch.setattr(cli, "build_manager", running_watcher)
        result = invoke("watch", "--once")

    assert result.exit_code == 0, result.output
    assert "Batch #1 Ready! 🍵" in result.output
    assert "Batch #1 is ready!" in result.output
    assert ReminderOutbox().pending() == []
    assert "Batch #1 is ready! Rate it" in invoke("status").output


def test_watch_keeps_batches_started_after_it_began(monkeypatch, clock):
    watcher = FermentationManager(notifier=ReminderOutbox(), clock=clock)
    watcher.start_batch(1)
    later = FermentationManager(notifier=ReminderOutbox(), clock=clock).start_batch(7)
    clock.advance(days=1, seconds=1)

    with monkeypatch.context() as patch:
        patch.setattr(cli, "build_manager", lambda: watcher)
        result = invoke("watch", "--once")

    assert result.exit_code == 0, result.output
    assert "Batch #1 is ready!" in result.output
    reloaded = FermentationManager(notifier=ReminderOutbox(), clock=clock)
    assert [batch.id for batch in reloaded.active_batches] == [later.id]
    assert reloaded.pending_completion.name == "Batch #1"
