import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kombucha import init_db
from kombucha.clock import ManualClock
from kombucha.config import get_settings
from kombucha import db as db_module
from kombucha.manager import FermentationManager
from kombucha.store import KeyValueStore


class RecordingNotifier:
    def __init__(self):
        self.scheduled = {}
        self.cancelled = []
        self.fail = False

    def schedule(self, batch_id, fire_at, title, body):
        if self.fail:
            raise RuntimeError("notifications unavailable")
        self.scheduled[batch_id] = (fire_at, title, body)

    def cancel(self, batch_id):
        if self.fail:
            raise RuntimeError("notifications unavailable")
        self.cancelled.append(batch_id)
        self.scheduled.pop(batch_id, None)


@pytest.fixture(autouse=True)
def configure_env(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    export_path = tmp_path / "exports"
    monkeypatch.setenv("KOMBUCHA_DB_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("KOMBUCHA_EXPORT_DIR", str(export_path))
    try:
        get_settings.cache_clear()
    except AttributeError:
        pass
    init_db()
    yield
    try:
        get_settings.cache_clear()
    except AttributeError:
        pass
    db_module.close_connections()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return KeyValueStore()


@pytest.fixture
def make_manager(store, notifier, clock):
    def factory(**overrides):
        options = {"store": store, "notifier": notifier, "clock": clock}
        options.update(overrides)
        return FermentationManager(**options)

    return factory


@pytest.fixture
def manager(make_manager):
    return make_manager()
