"""
Change feed for analysis jobs.

Every write to the job table is announced on ``job_changed`` as an
INSERT/UPDATE/DELETE event. Observers subscribe per session; delivery is
at-least-once, so observers must tolerate seeing the same terminal state twice
(``QueueView`` does).
"""
import logging
import queue
import threading
import uuid

from django.dispatch import Signal

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'

TERMINAL = ('completed', 'failed')

# kwargs: event (dict)
job_changed = Signal()


def make_event(event_type, session_id, new=None, old=None):
    return {'eventType': event_type, 'session_id': session_id, 'new': new, 'old': old}


def publish(event_type, session_id, new=None, old=None):
    event = make_event(event_type, session_id, new=new, old=old)
    for receiver, response in job_changed.send_robust(sender=None, event=event):
        if isinstance(response, Exception):
            logger.error("Feed subscriber %r failed: %s", receiver, response)
    return event


def subscribe(session_id, callback):
    """Call ``callback(event)`` for every event of ``session_id``.

    Returns a function that removes the subscription.
    """
    uid = f'feed-{session_id}-{uuid.uuid4().hex}'

    def receiver(sender, event, **kwargs):
        if event.get('session_id') == session_id:
            callback(event)

    job_changed.connect(receiver, weak=False, dispatch_uid=uid)

    def unsubscribe():
        job_changed.disconnect(dispatch_uid=uid)

    return unsubscribe


def stream(session_id, heartbeat=15.0, stop=None):
    """Yield events for a session as they arrive; ``None`` on each idle heartbeat."""
    inbox = queue.Queue()
    unsubscribe = subscribe(session_id, inbox.put)
    stop = stop or threading.Event()
    try:
        while not stop.is_set():
            try:
                yield inbox.get(timeout=heartbeat)
            except queue.Empty:
                yield None
    finally:
        unsubscribe()


class QueueView:
    """The live queue as an observer sees it: newest first, bounded."""

    def __init__(self, items=None, limit=10):
        self.limit = limit
        self.items = list(items or [])[:limit]

    def _index(self, job_id):
        for i, item in enumerate(self.items):
            if item['id'] == job_id:
                return i
        return None

    def apply(self, event):
        """Apply one feed event. Returns False when it changed nothing."""
        kind = event.get('eventType')
        if kind == DELETE:
            old = event.get('old') or {}
            i = self._index(old.get('id'))
            if i is None:
                return False
            del self.items[i]
            return True

        new = event.get('new') or {}
        i = self._index(new.get('id'))
        if i is None:
            if kind != INSERT:
                return False
            self.items = [new] + self.items[:self.limit - 1]
            return True

        current = self.items[i]
        if current.get('status') in TERMINAL:
            # Repeats of a terminal state, and any late non-terminal update, are ignored
            return False
        if current == new:
            return False
        self.items[i] = new
        return True
