import pytest

from detector.history import SESSION_KEY, HistoryEntry, HistoryLedger
from detector.job_queue import AnalysisQueue, Upload
from detector.results import fallback_result


def entry(n, confidence=None, ms=None):
    return HistoryEntry(
        id=f'job-{n}',
        filename=f'file{n}.png',
        date='2024-01-01T00:00:00+00:00',
        confidence=float(n) if confidence is None else confidence,
        is_deepfake=False,
        processing_time_ms=n * 10 if ms is None else ms,
    )


def test_newest_first_and_capped():
    ledger = HistoryLedger(capacity=10)
    for n in range(12):
        assert ledger.record(entry(n))
    assert len(ledger) == 10
    assert [e.id for e in ledger][:2] == ['job-11', 'job-10']
    assert ledger.entries[-1].id == 'job-2'


def test_same_outcome_recorded_once():
    ledger = HistoryLedger()
    assert ledger.record(entry(1, confidence=80.0, ms=1200))
    # Same confidence and processing time counts as the same outcome
    assert not ledger.record(entry(2, confidence=80.0, ms=1200))
    assert ledger.record(entry(3, confidence=80.0, ms=1300))
    assert [e.id for e in ledger] == ['job-3', 'job-1']


def test_session_round_trip():
    session = {}
    ledger = HistoryLedger(capacity=3)
    ledger.record(entry(1))
    ledger.record(entry(2))
    ledger.save(session)
    assert session[SESSION_KEY][0]['id'] == 'job-2'

    restored = HistoryLedger.load(session, capacity=3)
    assert restored.entries == ledger.entries


def test_load_from_empty_session():
    assert len(HistoryLedger.load({})) == 0


@pytest.mark.django_db
def test_entry_from_finished_job():
    queue = AnalysisQueue()
    job = queue.submit('session_x', Upload(name='me.jpg', mime_type='image/jpeg', data=b'x', size=1))
    queue.begin(job.id)
    done = queue.complete(job.id, fallback_result(), processing_time_ms=420)
    e = HistoryEntry.from_job(done)
    assert e.id == str(job.id)
    assert e.filename == 'me.jpg'
    assert e.confidence == 50.0
    assert e.is_deepfake is False
    assert e.processing_time_ms == 420
    assert e.date == done.completed_at.isoformat()
