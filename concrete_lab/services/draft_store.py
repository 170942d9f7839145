"""Debounced local persistence of the in-progress compression form.

The draft lives in a key/value store under one well-known key
(``DRAFT_STORAGE_KEY``), so a single form session per process is assumed
to own it. Writes are debounced: every change restarts a timer and only
the latest snapshot is written once the form has been quiet for the
configured window. Item rows are sanitized on the way in and on the way
out; every other field is stored verbatim.
"""
import json
import logging
import threading
from typing import Callable, Dict, Optional

from flask import Flask

from concrete_lab.extensions import db
from concrete_lab.models import DraftEntry, FormDraft

from .item_sanitizer import sanitize_items

logger = logging.getLogger(__name__)

# Quiescence window in seconds
DEFAULT_DEBOUNCE_SECONDS = 1.0


class DatabaseKeyValueStore:
    """Key/value store on the ``draft_entries`` table.

    Each call pushes its own app context so it can run from the debounce
    timer thread as well as from a request.
    """

    def __init__(self, app: Flask):
        self.app = app

    def get(self, key: str) -> Optional[str]:
        with self.app.app_context():
            entry = db.session.get(DraftEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self.app.app_context():
            entry = db.session.get(DraftEntry, key)
            if entry is None:
                db.session.add(DraftEntry(key=key, value=value))
            else:
                entry.value = value
            db.session.commit()

    def remove(self, key: str) -> None:
        with self.app.app_context():
            entry = db.session.get(DraftEntry, key)
            if entry is not None:
                db.session.delete(entry)
                db.session.commit()


class Debouncer:
    """Per-key trailing-edge debounce on ``threading.Timer``.

    Scheduling a key again before its timer fires replaces the pending
    call; only the last one runs.
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self.delay = delay
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        self._pending: Dict[str, Callable[[], None]] = {}

    def schedule(self, key: str, func: Callable[[], None]) -> None:
        with self._lock:
            previous = self._timers.get(key)
            if previous is not None:
                previous.cancel()
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            self._pending[key] = func
        timer.start()

    def _fire(self, key: str) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is not threading.current_thread():
                # Superseded or cancelled after this timer started firing
                return
            del self._timers[key]
            func = self._pending.pop(key)
        func()

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def flush(self, key: Optional[str] = None) -> None:
        """Run pending calls now instead of waiting for the timer."""
        for func in self._take(key):
            func()

    def cancel(self, key: Optional[str] = None) -> None:
        """Drop pending calls without running them."""
        self._take(key)

    def _take(self, key: Optional[str]):
        with self._lock:
            keys = [key] if key is not None else list(self._pending)
            funcs = []
            for k in keys:
                timer = self._timers.pop(k, None)
                if timer is not None:
                    timer.cancel()
                func = self._pending.pop(k, None)
                if func is not None:
                    funcs.append(func)
            return funcs


class DraftStore:
    """Save, load and clear form drafts in a key/value store.

    Parameters
    ----------
    store
        Object with ``get(key)``, ``set(key, value)`` and ``remove(key)``
    delay : float
        Debounce window in seconds
    """

    def __init__(self, store, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self.store = store
        self._debouncer = Debouncer(delay)
        self._has_saved_data = False

    @property
    def has_saved_data(self) -> bool:
        """Set by a successful save or load, cleared only by ``clear``."""
        return self._has_saved_data

    def save(self, key: str, draft: FormDraft) -> None:
        """Schedule a debounced write of ``draft``.

        The snapshot is taken now; later edits to ``draft`` only reach the
        store through another ``save``.
        """
        snapshot = draft.to_dict()
        self._debouncer.schedule(key, lambda: self._write(key, snapshot))

    def _write(self, key: str, snapshot: dict) -> None:
        if isinstance(snapshot.get('items'), list):
            snapshot['items'] = sanitize_items(snapshot['items'])
        try:
            self.store.set(key, json.dumps(snapshot))
        except Exception:
            logger.exception("Failed to write draft '%s'", key)
            return
        self._has_saved_data = True
        logger.debug("Draft '%s' saved (%d rows)", key, len(snapshot.get('items') or []))

    def load(self, key: str) -> Optional[FormDraft]:
        """Read the draft back, or None when absent or unreadable."""
        raw = self.store.get(key)
        if not raw:
            return None

        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error("Error loading saved draft '%s': %s", key, exc)
            return None
        if not isinstance(parsed, dict):
            logger.error("Error loading saved draft '%s': not an object", key)
            return None

        if isinstance(parsed.get('items'), list):
            parsed['items'] = sanitize_items(parsed['items'])

        self._has_saved_data = True
        logger.info("Restored draft '%s' (%d rows)", key, len(parsed.get('items') or []))
        return FormDraft.from_dict(parsed)

    def clear(self, key: str) -> None:
        """Remove the stored draft. The in-memory form is left untouched."""
        self._debouncer.cancel(key)
        self.store.remove(key)
        self._has_saved_data = False

    def is_pending(self, key: str) -> bool:
        return self._debouncer.is_pending(key)

    def flush(self, key: Optional[str] = None) -> None:
        """Write pending snapshots immediately."""
        self._debouncer.flush(key)

    def cancel(self, key: Optional[str] = None) -> None:
        """Discard pending snapshots (form session ended)."""
        self._debouncer.cancel(key)
