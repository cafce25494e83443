"""
Tests for the job lifecycle (job_queue.AnalysisQueue) and its row store.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from detector import feed
from detector.exceptions import FileTooLargeError, InvalidUploadError, JobNotFound
from detector.job_queue import AnalysisQueue, Upload
from detector.models import AnalysisJob
from detector.results import fallback_result

pytestmark = pytest.mark.django_db

SESSION = 'session_1700000000000_abcdefghi'


@pytest.fixture
def events():
    received = []
    unsubscribe = feed.subscribe(SESSION, received.append)
    yield received
    unsubscribe()


@pytest.fixture
def queue():
    return AnalysisQueue(max_upload_bytes=1024)


@pytest.fixture
def upload():
    return Upload(name='face.png', mime_type='image/png', data=b'pixels', size=6)


@pytest.fixture
def job(queue, upload):
    return queue.submit(SESSION, upload)


def test_submit_creates_queued_job(queue, upload, events):
    job = queue.submit(SESSION, upload)
    assert job.status == AnalysisJob.STATUS_QUEUED
    assert job.progress == 0
    assert job.file_name == 'face.png'
    assert job.file_type == 'image/png'
    assert job.is_deepfake is None
    assert [e['eventType'] for e in events] == [feed.INSERT]
    assert events[0]['new']['id'] == str(job.id)


def test_oversized_upload_creates_no_job(queue, events):
    big = Upload(name='big.mp4', mime_type='video/mp4', data=b'', size=2048)
    with pytest.raises(FileTooLargeError) as excinfo:
        queue.submit(SESSION, big)
    assert excinfo.value.status_code == 413
    assert AnalysisJob.objects.count() == 0
    assert events == []


def test_upload_without_name_is_rejected(queue):
    with pytest.raises(InvalidUploadError):
        queue.submit(SESSION, Upload(name='', mime_type='image/png', data=b'x', size=1))
    assert AnalysisJob.objects.count() == 0


def test_missing_mime_type_is_stored_as_octet_stream(queue):
    job = queue.submit(SESSION, Upload(name='blob', mime_type='', data=b'x', size=1))
    assert job.file_type == 'application/octet-stream'


def test_long_client_strings_are_truncated(queue):
    mime_type = 'image/png; ' + 'x' * 150
    name = 'n' * 300 + '.png'
    job = queue.submit(SESSION, Upload(name=name, mime_type=mime_type, data=b'x', size=1))
    stored = AnalysisJob.objects.get(pk=job.id)
    assert stored.file_type == mime_type[:100]
    assert stored.file_name == name[:255]


def test_begin_only_once(queue, job):
    started = queue.begin(job.id)
    assert started.status == AnalysisJob.STATUS_PROCESSING
    assert started.progress == 10
    assert queue.begin(job.id) is None


def test_advance_never_goes_backwards(queue, job):
    queue.begin(job.id)
    assert queue.advance(job.id, 30).progress == 30
    assert queue.advance(job.id, 20) is None
    assert AnalysisJob.objects.get(pk=job.id).progress == 30


def test_advance_caps_below_100(queue, job):
    queue.begin(job.id)
    assert queue.advance(job.id, 250).progress == 99


def test_advance_requires_processing(queue, job):
    assert queue.advance(job.id, 50) is None
    assert AnalysisJob.objects.get(pk=job.id).progress == 0


def test_complete_stores_result(queue, job):
    queue.begin(job.id)
    done = queue.complete(job.id, fallback_result(), processing_time_ms=1234)
    assert done.status == AnalysisJob.STATUS_COMPLETED
    assert done.progress == 100
    assert done.completed_at is not None
    assert done.is_deepfake is False
    assert done.confidence == 50.0
    assert done.explanation == 'analysis failed'
    assert done.raw_result['processingTimeMs'] == 1234
    assert done.raw_result['engine'] == 'fallback'
    assert done.processing_time_ms == 1234
    assert done.is_terminal


def test_complete_is_idempotent(queue, job, events):
    queue.begin(job.id)
    queue.complete(job.id, fallback_result(), processing_time_ms=5)
    count = len(events)
    assert queue.complete(job.id, fallback_result(), processing_time_ms=9) is None
    assert len(events) == count
    assert AnalysisJob.objects.get(pk=job.id).raw_result['processingTimeMs'] == 5


def test_complete_requires_processing(queue, job):
    assert queue.complete(job.id, fallback_result()) is None
    assert AnalysisJob.objects.get(pk=job.id).status == AnalysisJob.STATUS_QUEUED


def test_fail_from_queued_or_processing(queue, upload):
    queued = queue.submit(SESSION, upload)
    failed = queue.fail(queued.id, 'boom')
    assert failed.status == AnalysisJob.STATUS_FAILED
    assert failed.explanation == 'boom'
    assert failed.completed_at is not None
    assert failed.is_deepfake is None
    assert failed.confidence is None

    running = queue.submit(SESSION, upload)
    queue.begin(running.id)
    assert queue.fail(running.id, 'boom').status == AnalysisJob.STATUS_FAILED


def test_terminal_states_are_final(queue, job):
    queue.begin(job.id)
    queue.complete(job.id, fallback_result())
    assert queue.fail(job.id, 'late failure') is None
    assert queue.advance(job.id, 95) is None
    stored = AnalysisJob.objects.get(pk=job.id)
    assert stored.status == AnalysisJob.STATUS_COMPLETED
    assert stored.progress == 100

    other = queue.submit(SESSION, Upload(name='b.png', mime_type='image/png', data=b'x', size=1))
    queue.fail(other.id, 'first')
    assert queue.fail(other.id, 'second') is None
    assert AnalysisJob.objects.get(pk=other.id).explanation == 'first'


def test_lifecycle_events_in_order(queue, job, events):
    queue.begin(job.id)
    queue.advance(job.id, 30)
    queue.complete(job.id, fallback_result())
    statuses = [(e['eventType'], e['new']['status'], e['new']['progress']) for e in events]
    assert statuses == [
        (feed.UPDATE, 'processing', 10),
        (feed.UPDATE, 'processing', 30),
        (feed.UPDATE, 'completed', 100),
    ]


def test_unknown_job_raises(queue):
    missing = '00000000-0000-0000-0000-000000000000'
    with pytest.raises(JobNotFound):
        queue.begin(missing)
    with pytest.raises(JobNotFound):
        queue.fail(missing, 'nope')


def test_store_scopes_jobs_by_session(queue, job):
    assert queue.store.get(job.id, session_id=SESSION).pk == job.pk
    with pytest.raises(JobNotFound):
        queue.store.get(job.id, session_id='someone_else')


def test_store_recent_is_newest_first(queue, upload):
    first = queue.submit(SESSION, upload)
    second = queue.submit(SESSION, upload)
    queue.submit('someone_else', upload)
    AnalysisJob.objects.filter(pk=first.pk).update(created_at=timezone.now() - timedelta(minutes=1))
    assert [j.pk for j in queue.store.recent(SESSION)] == [second.pk, first.pk]


def test_store_delete_publishes(queue, job, events):
    queue.store.delete(job.id)
    assert events[-1]['eventType'] == feed.DELETE
    assert events[-1]['old']['id'] == str(job.id)
    assert not AnalysisJob.objects.filter(pk=job.id).exists()


def test_upload_from_uploaded_file_checks_size_first():
    from django.core.files.uploadedfile import SimpleUploadedFile

    f = SimpleUploadedFile('clip.mp4', b'x' * 100, content_type='video/mp4')
    with pytest.raises(FileTooLargeError):
        Upload.from_uploaded_file(f, max_bytes=10)

    upload = Upload.from_uploaded_file(f, max_bytes=1000)
    assert (upload.name, upload.mime_type, upload.size) == ('clip.mp4', 'video/mp4', 100)
    assert upload.data == b'x' * 100
