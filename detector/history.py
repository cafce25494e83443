from dataclasses import dataclass, asdict

SESSION_KEY = 'analysis_history'


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    filename: str
    date: str
    confidence: float
    is_deepfake: bool
    processing_time_ms: int

    @property
    def key(self):
        return (self.confidence, self.processing_time_ms)

    @classmethod
    def from_job(cls, job):
        stamp = job.completed_at or job.updated_at
        return cls(
            id=str(job.id),
            filename=job.file_name,
            date=stamp.isoformat() if stamp else '',
            confidence=job.confidence if job.confidence is not None else 0.0,
            is_deepfake=bool(job.is_deepfake),
            processing_time_ms=job.processing_time_ms or 0,
        )


class HistoryLedger:
    """Most-recent-first list of finished analyses, capped and de-duplicated.

    Two entries with the same (confidence, processing time) are treated as the
    same outcome and only the first is kept.
    """

    def __init__(self, capacity=10, entries=None):
        self.capacity = capacity
        self._entries = list(entries or [])[:capacity]

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def entries(self):
        return list(self._entries)

    def record(self, entry):
        if any(e.key == entry.key for e in self._entries):
            return False
        self._entries.insert(0, entry)
        del self._entries[self.capacity:]
        return True

    def to_list(self):
        return [asdict(e) for e in self._entries]

    @classmethod
    def load(cls, session, capacity=10):
        raw = session.get(SESSION_KEY) or []
        return cls(capacity, [HistoryEntry(**item) for item in raw])

    def save(self, session):
        session[SESSION_KEY] = self.to_list()
