"""Remote mirroring of the checklist store.

Local saves are authoritative and always happen first. The remote copy is
eventually consistent: the full store is pushed as one snapshot (so a
duplicate or reordered delivery is harmless), and when pulling, the copy with
the newer updated_at wins per checklist.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from studyflow.checklist_parser import generate_id
from studyflow.checklists import normalize_checklist
from studyflow.models import Checklist, ChecklistStore

logger = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], Any]


def _snapshot(store: ChecklistStore) -> str:
    return json.dumps(store.to_dict(), sort_keys=True, ensure_ascii=False)


class SyncQueue:
    """Holds the latest unsent store snapshot."""

    def __init__(self) -> None:
        self._pending: str | None = None
        self._last_synced = ""

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def enqueue(self, store: ChecklistStore) -> bool:
        """Queue *store* for upload. Returns False if it matches what was last sent."""
        snapshot = _snapshot(store)
        if snapshot == self._last_synced:
            self._pending = None
            return False
        self._pending = snapshot
        return True

    def mark_synced(self, store: ChecklistStore) -> None:
        """Record *store* as already present remotely (e.g. just pulled)."""
        self._last_synced = _snapshot(store)
        self._pending = None

    def flush(self, sender: Sender) -> bool:
        """Push the pending snapshot. On failure it stays queued for the next flush."""
        if self._pending is None:
            return True
        snapshot = self._pending
        try:
            sender(json.loads(snapshot))
        except Exception as e:
            logger.warning("Remote sync failed, will retry: %s", e)
            return False
        self._last_synced = snapshot
        if self._pending == snapshot:
            self._pending = None
        return True


def _timestamp(value: str) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def merge_remote(local: list[Checklist], remote: list[dict[str, Any]]) -> list[Checklist]:
    """Merge a pulled remote list into the local one.

    Per id the newer updated_at wins (remote on ties); local-only checklists
    are kept. The result is sorted newest first. Applying the same remote
    list twice gives the same result, as long as its entries carry ids.
    """
    merged: dict[str, Checklist] = {c.id: c for c in local}
    for raw in remote:
        if not isinstance(raw, dict):
            continue
        incoming = Checklist.from_dict(raw)
        if not incoming.id:
            incoming.id = generate_id()
            logger.warning("Remote checklist %r had no id, assigned %s", incoming.title, incoming.id)
        incoming = normalize_checklist(incoming)
        current = merged.get(incoming.id)
        if current is None or _timestamp(incoming.updated_at) >= _timestamp(current.updated_at):
            merged[incoming.id] = incoming
    return sorted(merged.values(), key=lambda c: _timestamp(c.updated_at), reverse=True)


def pull_into_store(
    store: ChecklistStore, remote: list[dict[str, Any]], queue: SyncQueue | None = None
) -> ChecklistStore:
    """Apply merge_remote to *store* in place; the merged state is queued for upload."""
    store.checklists = merge_remote(store.checklists, remote)
    if store.active_checklist_id and store.active_checklist is None:
        store.active_checklist_id = None
    if queue is not None:
        queue.enqueue(store)
    return store
