# budgetbuilder/realtime.py
"""In-process change feed for table rows.

Row changes are collected when the session flushes and published to
subscribers only after the transaction commits; a rollback discards them.
Subscribers filter by table and by column values, mirroring channel filters
such as ``project_id=eq.42``.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from budgetbuilder.models import SerializerMixin

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'

PENDING_KEY = 'pending_changes'


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new: Optional[dict] = None
    old: Optional[dict] = None


@dataclass
class Subscription:
    id: int
    table: str
    callback: Callable[[ChangeEvent], None]
    filter: dict = field(default_factory=dict)

    def matches(self, evt: ChangeEvent) -> bool:
        if evt.table != self.table:
            return False
        payload = evt.new or evt.old or {}
        return all(payload.get(k) == v for k, v in self.filter.items())


class ChangeFeed:
    """Process-wide subscriber registry fed by the session hooks below.

    A push transport (websocket, server-sent events) attaches here with
    ``feed.subscribe``; nothing in the HTTP layer consumes it directly.
    """

    def __init__(self) -> None:
        self._subs: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        filter: Mapping[str, Any] | None = None,
    ) -> Subscription:
        with self._lock:
            sub = Subscription(next(self._ids), table, callback, dict(filter or {}))
            self._subs[sub.id] = sub
            return sub

    def unsubscribe(self, subscription: Subscription | None) -> None:
        if subscription is None:
            return
        with self._lock:
            self._subs.pop(subscription.id, None)

    def publish(self, evt: ChangeEvent) -> int:
        with self._lock:
            targets = [s for s in self._subs.values() if s.matches(evt)]
        for sub in targets:
            try:
                sub.callback(evt)
            except Exception:
                # one broken listener must not stop delivery to the others
                logging.exception("change subscriber %s failed on %s", sub.id, evt.table)
        return len(targets)


feed = ChangeFeed()


def apply_change(records: list[dict], evt: ChangeEvent) -> list[dict]:
    """Patch a cached list of row dicts with a change event.

    A soft delete arrives as an UPDATE carrying ``deleted_at``; the row is
    dropped from the list just like a hard DELETE.
    """
    if evt.event_type == INSERT and evt.new:
        return [*records, evt.new]
    if evt.event_type == UPDATE and evt.new:
        if evt.new.get('deleted_at'):
            return [r for r in records if r.get('id') != evt.new.get('id')]
        return [evt.new if r.get('id') == evt.new.get('id') else r for r in records]
    if evt.event_type == DELETE and evt.old:
        return [r for r in records if r.get('id') != evt.old.get('id')]
    return list(records)


def _payload(obj) -> dict:
    # column values only; relationships must not lazy-load mid-flush
    return SerializerMixin.to_dict(obj)


@event.listens_for(Session, 'after_flush')
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(PENDING_KEY, [])
    for obj in session.new:
        if isinstance(obj, SerializerMixin):
            pending.append(ChangeEvent(obj.__tablename__, INSERT, new=_payload(obj)))
    for obj in session.dirty:
        if isinstance(obj, SerializerMixin) and session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(obj.__tablename__, UPDATE, new=_payload(obj), old={'id': obj.id}))
    for obj in session.deleted:
        if isinstance(obj, SerializerMixin):
            pending.append(ChangeEvent(obj.__tablename__, DELETE, old=_payload(obj)))


@event.listens_for(Session, 'after_commit')
def _publish_changes(session):
    pending = session.info.pop(PENDING_KEY, [])
    for evt in pending:
        feed.publish(evt)


@event.listens_for(Session, 'after_rollback')
def _discard_changes(session):
    session.info.pop(PENDING_KEY, None)
