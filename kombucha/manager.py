from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from .clock import SystemClock
from .config import Settings, get_settings
from .errors import DecodeFailure, InvalidDates, InvalidDuration, InvalidRating, NotFound, PersistenceFailure
from .models import Batch, BrewingProfile, whole_days
from .notifications import REMINDER_BODY, Notifier, ReminderOutbox, reminder_title
from .scheduler import CountdownScheduler
from .store import (
    ACTIVE_KEY,
    HISTORY_KEY,
    PENDING_KEY,
    BatchCounter,
    KeyValueStore,
)
from .utils import deserialize_batch, deserialize_batches, serialize_batch, serialize_batches

logger = logging.getLogger(__name__)

Listener = Callable[[str, Batch], None]


def validate_rating(rating: Optional[int]) -> Optional[int]:
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRating(rating)
    return rating


class FermentationManager:
    """Owns every batch from the moment it starts brewing until it is archived.

    Batches live in exactly one place at a time: the active set, the single
    pending-completion slot (finished, waiting for a rating), or history.
    Each mutation is written straight through to the key-value store; write
    failures are logged and the in-memory state stays authoritative.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        notifier: Optional[Notifier] = None,
        clock=None,
        counter: Optional[BatchCounter] = None,
        scheduler: Optional[CountdownScheduler] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or KeyValueStore()
        self.notifier = notifier if notifier is not None else ReminderOutbox()
        self.clock = clock or SystemClock()
        self.counter = counter or BatchCounter(self.store)
        self.scheduler = scheduler or CountdownScheduler(self.settings.tick_seconds)
        self._active: Dict[str, Batch] = {}
        self._history: List[Batch] = []
        self._pending: Optional[Batch] = None
        self._listeners: List[Listener] = []
        self._last_batch_number = self._load_counter()

        self._load_history()
        self._load_pending()
        self._load_active()
        self._start_all_countdowns()

    # ------------------------------------------------------------------
    # Published state

    @property
    def active_batches(self) -> List[Batch]:
        return list(self._active.values())

    @property
    def history(self) -> List[Batch]:
        return list(self._history)

    @property
    def pending_completion(self) -> Optional[Batch]:
        return self._pending

    @property
    def has_active_batches(self) -> bool:
        return bool(self._active)

    @property
    def total_active_batches(self) -> int:
        return len(self._active)

    @property
    def has_pending_completion(self) -> bool:
        return self._pending is not None

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self._active.get(batch_id)

    def get_history_entry(self, batch_id: str) -> Optional[Batch]:
        for batch in self._history:
            if batch.id == batch_id:
                return batch
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Active batches

    def start_batch(self, duration_days: int, profile: Optional[BrewingProfile] = None) -> Batch:
        if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days <= 0:
            raise InvalidDuration(duration_days)

        now = self.clock.now()
        number = self._next_batch_number()
        batch = Batch(
            id=str(uuid.uuid4()),
            name=f"Batch #{number}",
            start_date=now,
            end_date=now + timedelta(days=duration_days),
            duration_days=duration_days,
            profile=profile or BrewingProfile(),
        )

        self._active[batch.id] = batch
        self._schedule_reminder(batch)
        self._save_active()
        self.scheduler.arm(batch.id, now)
        logger.info("Started %s for %d days (%s)", batch.name, duration_days, batch.id)
        self._publish("started", batch)
        return batch

    def update_metadata(self, batch_id: str, profile: BrewingProfile) -> Batch:
        batch = self._require_active(batch_id)
        updated = replace(batch, profile=profile)
        self._active[batch_id] = updated
        self._save_active()
        self._publish("updated", updated)
        return updated

    def set_duration(self, batch_id: str, days: int) -> Batch:
        batch = self._require_active(batch_id)
        clamped = max(1, int(days))

        # Stop first so no tick evaluates the old end date mid-edit.
        self.scheduler.cancel(batch_id)
        updated = batch.with_duration(clamped)
        self._active[batch_id] = updated
        self._schedule_reminder(updated)
        self._save_active()
        self.scheduler.arm(batch_id, self.clock.now())

        logger.info("%s duration changed %d -> %d days", batch.name, batch.duration_days, clamped)
        self._publish("duration_changed", updated)
        return updated

    def finish_early(self, batch_id: str) -> Batch:
        batch = self._require_active(batch_id)
        finished = batch.with_end_date(self.clock.now())

        del self._active[batch_id]
        self.scheduler.cancel(batch_id)
        self._cancel_reminder(batch_id)

        if self._pending is not None and self._pending.id != finished.id:
            logger.warning(
                "%s replaces %s awaiting review; the earlier batch is dropped",
                finished.name,
                self._pending.name,
            )
        self._pending = finished
        self._save_active()
        self._save_pending()
        logger.info("%s finished after %d days", finished.name, finished.duration_days)
        self._publish("finished", finished)
        return finished

    def delete_active(self, batch_id: str) -> Batch:
        batch = self._require_active(batch_id)
        del self._active[batch_id]
        self.scheduler.cancel(batch_id)
        self._cancel_reminder(batch_id)
        self._save_active()
        logger.info("Discarded %s", batch.name)
        self._publish("deleted", batch)
        return batch

    def tick(self) -> List[Batch]:
        """Run every due countdown; batches whose time is up are finished."""
        now = self.clock.now()
        expired: List[Batch] = []
        for tick in self.scheduler.pop_due(now):
            # A listener may have edited or finished the batch earlier in this pass.
            if not self.scheduler.is_current(tick):
                continue
            batch = self._active.get(tick.batch_id)
            if batch is None:
                self.scheduler.cancel(tick.batch_id)
                continue
            if batch.is_complete(now):
                expired.append(self.finish_early(batch.id))
        return expired

    def progress(self, batch: Batch) -> float:
        return batch.progress(self.clock.now())

    def time_remaining(self, batch: Batch) -> timedelta:
        return batch.time_remaining(self.clock.now())

    # ------------------------------------------------------------------
    # Review and history

    def complete_pending_review(self, rating: Optional[int] = None, notes: Optional[str] = None) -> Batch:
        if self._pending is None:
            raise NotFound(None, "pending-completion")
        rating = validate_rating(rating)
        if notes is not None:
            notes = notes.strip() or None

        reviewed = replace(self._pending, rating=rating, notes=notes)
        self._pending = None
        self._add_to_history(reviewed)
        self._save_pending()
        self._save_history()
        self._publish("reviewed", reviewed)
        return reviewed

    def delete_from_history(self, batch_id: str) -> Batch:
        for index, batch in enumerate(self._history):
            if batch.id == batch_id:
                removed = self._history.pop(index)
                self._save_history()
                self._publish("history_deleted", removed)
                return removed
        raise NotFound(batch_id, "history")

    def update_history_entry(self, batch: Batch) -> Batch:
        validate_rating(batch.rating)
        if batch.end_date < batch.start_date:
            raise InvalidDates(batch.id, "end date is before start date")
        if batch.duration_days != whole_days(batch.start_date, batch.end_date):
            raise InvalidDates(batch.id, f"{batch.duration_days} days does not match the start and end dates")
        for index, existing in enumerate(self._history):
            if existing.id == batch.id:
                self._history[index] = batch
                self._sort_history()
                self._save_history()
                self._publish("history_updated", batch)
                return batch
        raise NotFound(batch.id, "history")

    def reload(self) -> None:
        """Pick up changes other processes made to the store since startup.

        Elapsed batches stay active so the next `tick()` finishes them and they
        reach the review slot, as they would have if this process had kept
        its own copy.
        """
        self._last_batch_number = max(self._last_batch_number, self._load_counter())
        self._load_history()
        self._load_pending()
        self._load_active(archive_elapsed=False)

        now = self.clock.now()
        for batch_id in self.scheduler.running:
            if batch_id not in self._active:
                self.scheduler.cancel(batch_id)
        for batch_id in self._active:
            if not self.scheduler.is_running(batch_id):
                self.scheduler.arm(batch_id, now, delay=timedelta(0))

    def close(self) -> None:
        self.scheduler.cancel_all()

    # ------------------------------------------------------------------
    # Internals

    def _require_active(self, batch_id: str) -> Batch:
        batch = self._active.get(batch_id)
        if batch is None:
            raise NotFound(batch_id, "active")
        return batch

    def _publish(self, event: str, batch: Batch) -> None:
        for listener in list(self._listeners):
            listener(event, batch)

    def _load_counter(self) -> int:
        try:
            return self.counter.current()
        except DecodeFailure:
            logger.warning("Batch counter unreadable; continuing from 0", exc_info=True)
            return 0

    def _next_batch_number(self) -> int:
        try:
            number = self.counter.next()
        except PersistenceFailure:
            logger.exception("Could not advance the batch counter")
            number = self._last_batch_number + 1
        number = max(number, self._last_batch_number + 1)
        self._last_batch_number = number
        return number

    def _start_all_countdowns(self) -> None:
        now = self.clock.now()
        for batch_id in self._active:
            self.scheduler.arm(batch_id, now, delay=timedelta(0))

    def _add_to_history(self, batch: Batch) -> None:
        self._history.insert(0, batch)
        self._sort_history()
        limit = self.settings.history_limit
        if len(self._history) > limit:
            dropped = self._history[limit:]
            self._history = self._history[:limit]
            logger.debug("History full; dropped %d oldest batch(es)", len(dropped))

    def _sort_history(self) -> None:
        self._history.sort(key=lambda batch: batch.end_date, reverse=True)

    def _schedule_reminder(self, batch: Batch) -> None:
        now = self.clock.now()
        horizon = timedelta(days=self.settings.reminder_horizon_days)
        delay = max(timedelta(0), min(batch.end_date - now, horizon))
        try:
            self.notifier.cancel(batch.id)
            self.notifier.schedule(batch.id, now + delay, reminder_title(batch), REMINDER_BODY)
        except Exception:
            logger.exception("Could not schedule reminder for %s", batch.name)

    def _cancel_reminder(self, batch_id: str) -> None:
        try:
            self.notifier.cancel(batch_id)
        except Exception:
            logger.exception("Could not cancel reminder for %s", batch_id)

    def _write(self, key: str, value) -> None:
        try:
            self.store.write_json(key, value)
        except PersistenceFailure:
            logger.exception("Keeping %s in memory only", key)

    def _save_active(self) -> None:
        self._write(ACTIVE_KEY, serialize_batches(self._active.values()))

    def _save_history(self) -> None:
        self._write(HISTORY_KEY, serialize_batches(self._history))

    def _save_pending(self) -> None:
        if self._pending is None:
            try:
                self.store.delete(PENDING_KEY)
            except PersistenceFailure:
                logger.exception("Could not clear %s", PENDING_KEY)
        else:
            self._write(PENDING_KEY, serialize_batch(self._pending))

    def _load_history(self) -> None:
        try:
            batches = deserialize_batches(self.store.read_json(HISTORY_KEY, []), HISTORY_KEY)
        except DecodeFailure:
            logger.warning("Discarding unreadable history", exc_info=True)
            batches = []
        self._history = batches
        self._sort_history()
        del self._history[self.settings.history_limit:]

    def _load_pending(self) -> None:
        try:
            payload = self.store.read_json(PENDING_KEY)
            self._pending = deserialize_batch(payload, PENDING_KEY) if payload is not None else None
        except DecodeFailure:
            logger.warning("Discarding unreadable batch awaiting review", exc_info=True)
            self._pending = None

    def _load_active(self, archive_elapsed: bool = True) -> None:
        try:
            batches = deserialize_batches(self.store.read_json(ACTIVE_KEY, []), ACTIVE_KEY)
        except DecodeFailure:
            logger.warning("Discarding unreadable active batches", exc_info=True)
            batches = []

        if not archive_elapsed:
            self._active = {batch.id: batch for batch in batches}
            return

        now = self.clock.now()
        elapsed = [batch for batch in batches if batch.end_date <= now]
        self._active = {batch.id: batch for batch in batches if batch.end_date > now}
        if not elapsed:
            return

        # Finished while the tracker was not running: archive without review.
        for batch in elapsed:
            self._cancel_reminder(batch.id)
            self._add_to_history(batch)
        logger.info("Archived %d batch(es) that finished while stopped", len(elapsed))
        self._save_active()
        self._save_history()


__all__ = ["FermentationManager", "validate_rating"]
