from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Optional

import typer

from . import init_db
from .config import get_settings
from .errors import KombuchaError
from .export import export_history
from .manager import FermentationManager
from .models import Batch, BrewingProfile, TeaType
from .notifications import ReminderOutbox
from .utils import format_date, format_time_remaining

app = typer.Typer(help="Kombucha fermentation tracker")


@app.callback()
def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


@contextmanager
def domain_errors() -> Iterator[None]:
    try:
        yield
    except (KombuchaError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc


def build_manager() -> FermentationManager:
    init_db()
    return FermentationManager(notifier=ReminderOutbox())


def resolve(batches, ref: str) -> Batch:
    """Find a batch by full id, unique id prefix, or batch number ("3" or "#3")."""
    ref = ref.strip()
    for batch in batches:
        if batch.id == ref:
            return batch
    number = ref.lstrip("#")
    if number.isdigit():
        for batch in batches:
            if batch.name == f"Batch #{int(number)}":
                return batch
    matches = [batch for batch in batches if batch.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise typer.BadParameter(f"'{ref}' matches more than one batch")
    raise typer.BadParameter(f"Batch '{ref}' not found")


def merge_profile(
    profile: BrewingProfile,
    tea: Optional[str],
    scoby: Optional[str],
    sugar: Optional[str],
    starter: Optional[str],
    notes: Optional[str],
) -> BrewingProfile:
    changes = {}
    if tea is not None:
        changes["tea_type"] = TeaType.parse(tea)
    if scoby is not None:
        changes["scoby_name"] = scoby
    if sugar is not None:
        changes["sugar"] = sugar
    if starter is not None:
        changes["starter_liquid_amount"] = starter
    if notes is not None:
        changes["active_notes"] = notes
    return replace(profile, **changes)


def describe(batch: Batch) -> str:
    profile = batch.profile
    details = [
        f"tea: {profile.tea_type.display_name}" if profile.tea_type else None,
        f"scoby: {profile.scoby_name}" if profile.scoby_name else None,
        f"sugar: {profile.sugar}" if profile.sugar else None,
        f"starter: {profile.starter_liquid_amount}" if profile.starter_liquid_amount else None,
        f"notes: {profile.active_notes}" if profile.active_notes else None,
    ]
    return ", ".join(item for item in details if item)


TEA_HELP = "Tea type: Black, Green, Herbal, Oolong or Other"


@app.command()
def init(db_url: Optional[str] = typer.Option(None, help="Override database URL")) -> None:
    """Initialise the local store."""
    if db_url:
        settings = get_settings()
        settings.db_url = db_url
    init_db()
    typer.echo("Brew store initialised.")


@app.command()
def start(
    days: int = typer.Argument(..., help="Fermentation length in days"),
    tea: Optional[str] = typer.Option(None, help=TEA_HELP),
    scoby: Optional[str] = typer.Option(None, help="SCOBY name"),
    sugar: Optional[str] = typer.Option(None, help="Sugar used"),
    starter: Optional[str] = typer.Option(None, help="Starter liquid amount"),
    notes: Optional[str] = typer.Option(None, help="Brewing notes"),
) -> None:
    """Start a new fermentation."""
    manager = build_manager()
    with domain_errors():
        profile = merge_profile(BrewingProfile(), tea, scoby, sugar, starter, notes)
        batch = manager.start_batch(days, profile)
    typer.echo(f"Started {batch.name} ({batch.id}), ready {format_date(batch.end_date)}")


@app.command()
def status() -> None:
    """Show active batches and any batch waiting for review."""
    manager = build_manager()
    if manager.has_pending_completion:
        pending = manager.pending_completion
        typer.echo(f"{pending.name} is ready! Rate it with `kombucha review`.")
    if not manager.has_active_batches:
        typer.echo("No active fermentations.")
        return
    typer.echo(f"Active fermentations ({manager.total_active_batches}):")
    for batch in manager.active_batches:
        percent = round(manager.progress(batch) * 100)
        remaining = format_time_remaining(manager.time_remaining(batch))
        typer.echo(f"- {batch.name} [{batch.id[:8]}] {percent}% done, {remaining} left")
        details = describe(batch)
        if details:
            typer.echo(f"  {details}")


@app.command()
def edit(
    ref: str = typer.Argument(..., help="Batch id, id prefix or number"),
    tea: Optional[str] = typer.Option(None, help=TEA_HELP),
    scoby: Optional[str] = typer.Option(None),
    sugar: Optional[str] = typer.Option(None),
    starter: Optional[str] = typer.Option(None),
    notes: Optional[str] = typer.Option(None),
) -> None:
    """Edit the brewing details of an active batch."""
    manager = build_manager()
    batch = resolve(manager.active_batches, ref)
    with domain_errors():
        profile = merge_profile(batch.profile, tea, scoby, sugar, starter, notes)
        manager.update_metadata(batch.id, profile)
    typer.echo(f"Updated {batch.name}")


@app.command()
def duration(
    ref: str = typer.Argument(..., help="Batch id, id prefix or number"),
    days: int = typer.Argument(..., help="New total length in days"),
) -> None:
    """Change how long an active batch ferments."""
    manager = build_manager()
    batch = resolve(manager.active_batches, ref)
    with domain_errors():
        updated = manager.set_duration(batch.id, days)
    typer.echo(f"{updated.name} now runs {updated.duration_days} days, ready {format_date(updated.end_date)}")


@app.command()
def finish(ref: str = typer.Argument(..., help="Batch id, id prefix or number")) -> None:
    """Finish an active batch now."""
    manager = build_manager()
    batch = resolve(manager.active_batches, ref)
    with domain_errors():
        finished = manager.finish_early(batch.id)
    typer.echo(f"{finished.name} finished. Rate it with `kombucha review`.")


@app.command()
def discard(ref: str = typer.Argument(..., help="Batch id, id prefix or number")) -> None:
    """Throw away an active batch without keeping it in history."""
    manager = build_manager()
    batch = resolve(manager.active_batches, ref)
    with domain_errors():
        manager.delete_active(batch.id)
    typer.echo(f"Discarded {batch.name}")


@app.command()
def review(
    rating: Optional[int] = typer.Option(None, help="Rating from 1 to 5"),
    notes: Optional[str] = typer.Option(None, help="Tasting notes"),
) -> None:
    """Rate the finished batch and move it to history. Omit both options to skip."""
    manager = build_manager()
    with domain_errors():
        reviewed = manager.complete_pending_review(rating, notes)
    typer.echo(f"{reviewed.name} added to history")


@app.command()
def history() -> None:
    """List completed batches, newest first."""
    manager = build_manager()
    if not manager.history:
        typer.echo("No completed fermentations yet.")
        return
    for batch in manager.history:
        stars = "*" * batch.rating if batch.rating else "unrated"
        typer.echo(
            f"- {batch.name} [{batch.id[:8]}] completed {format_date(batch.end_date)}, "
            f"{batch.duration_days} days, {stars}"
        )
        if batch.notes:
            typer.echo(f"  {batch.notes}")


@app.command("history-edit")
def history_edit(
    ref: str = typer.Argument(..., help="Batch id, id prefix or number"),
    rating: Optional[int] = typer.Option(None, help="Rating from 1 to 5"),
    notes: Optional[str] = typer.Option(None, help="Tasting notes"),
    tea: Optional[str] = typer.Option(None, help=TEA_HELP),
    scoby: Optional[str] = typer.Option(None),
    sugar: Optional[str] = typer.Option(None),
    starter: Optional[str] = typer.Option(None),
    brewing_notes: Optional[str] = typer.Option(None, help="Brewing notes"),
) -> None:
    """Edit the rating, notes or brewing details of a completed batch."""
    manager = build_manager()
    batch = resolve(manager.history, ref)
    with domain_errors():
        profile = merge_profile(batch.profile, tea, scoby, sugar, starter, brewing_notes)
        updated = replace(
            batch,
            rating=rating if rating is not None else batch.rating,
            notes=notes if notes is not None else batch.notes,
            profile=profile,
        )
        manager.update_history_entry(updated)
    typer.echo(f"Updated {batch.name}")


@app.command()
def delete(ref: str = typer.Argument(..., help="Batch id, id prefix or number")) -> None:
    """Remove a batch from history."""
    manager = build_manager()
    batch = resolve(manager.history, ref)
    with domain_errors():
        manager.delete_from_history(batch.id)
    typer.echo(f"Deleted {batch.name} from history")


@app.command()
def export(out: Optional[Path] = typer.Option(None, help="Target .xlsx file")) -> None:
    """Export history to a spreadsheet."""
    settings = get_settings()
    manager = build_manager()
    target = out or settings.export_dir / "kombucha_history.xlsx"
    path = export_history(manager.history, target)
    typer.echo(f"History written to {path}")


@app.command()
def watch(once: bool = typer.Option(False, help="Run a single pass and exit")) -> None:
    """Run the countdowns and deliver reminders as batches become ready."""
    settings = get_settings()
    manager = build_manager()
    outbox = manager.notifier

    def announce(event: str, batch: Batch) -> None:
        if event == "finished":
            typer.echo(f"{batch.name} is ready!")

    manager.subscribe(announce)
    try:
        while True:
            # Other commands write to the same store while this loop runs.
            manager.reload()
            # Deliver first: finishing a batch withdraws its reminder.
            for reminder in outbox.pop_due(manager.clock.now()):
                typer.echo(f"{reminder.title} {reminder.body}")
            manager.tick()
            if once:
                break
            time.sleep(settings.tick_seconds)
    except KeyboardInterrupt:
        typer.echo("Stopped.")
    finally:
        manager.close()


if __name__ == "__main__":
    app()
