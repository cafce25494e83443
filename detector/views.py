import json
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import JsonResponse, StreamingHttpResponse
from django.shortcuts import render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from . import feed
from .exceptions import JobNotFound, UploadValidationError
from .history import HistoryEntry, HistoryLedger
from .job_queue import AnalysisQueue, Upload
from .pipeline import dispatch
from .store import JobStore
from .user_tracking import get_session_id, set_session_cookie

logger = logging.getLogger(__name__)


def _json(request, session_id, payload, status=200):
    response = JsonResponse(payload, status=status)
    return set_session_cookie(response, session_id)


def index(request):
    session_id = get_session_id(request)
    response = render(request, 'detector/index.html', {
        'max_upload_mb': settings.ANALYSIS_MAX_UPLOAD_BYTES // (1024 * 1024),
    })
    return set_session_cookie(response, session_id)


@csrf_exempt
@require_POST
def analyze(request):
    session_id = get_session_id(request)
    uploaded_file = request.FILES.get('file')
    if uploaded_file is None:
        return _json(request, session_id, {'success': False, 'error': 'Please select a file'}, status=400)

    queue = AnalysisQueue()
    try:
        upload = Upload.from_uploaded_file(uploaded_file, queue.max_upload_bytes)
        job = queue.submit(session_id, upload)
    except UploadValidationError as e:
        return _json(request, session_id, {'success': False, 'error': str(e)}, status=e.status_code)
    except DatabaseError:
        return _json(request, session_id, {'success': False, 'error': 'Could not queue analysis'}, status=500)

    dispatch(job.id, upload)
    return _json(request, session_id, {
        'success': True,
        'job_id': str(job.id),
        'status_url': f'/jobs/{job.id}/',
    }, status=202)


def _record_history(request, jobs):
    """Add finished jobs to the session's history, oldest first so the newest ends up on top."""
    ledger = HistoryLedger.load(request.session, settings.ANALYSIS_HISTORY_CAPACITY)
    changed = False
    for job in reversed(jobs):
        if job.is_terminal and ledger.record(HistoryEntry.from_job(job)):
            changed = True
    if changed:
        ledger.save(request.session)
    return ledger


@require_GET
def job_detail(request, job_id):
    session_id = get_session_id(request)
    try:
        job = JobStore().get(job_id, session_id=session_id)
    except JobNotFound as e:
        return _json(request, session_id, {'success': False, 'error': str(e)}, status=404)

    _record_history(request, [job])
    return _json(request, session_id, {'success': True, 'job': job.to_dict()})


@require_GET
def queue_list(request):
    session_id = get_session_id(request)
    jobs = JobStore().recent(session_id, limit=settings.ANALYSIS_QUEUE_LIMIT)
    _record_history(request, jobs)
    return _json(request, session_id, {'success': True, 'jobs': [j.to_dict() for j in jobs]})


@require_GET
def history(request):
    session_id = get_session_id(request)
    ledger = HistoryLedger.load(request.session, settings.ANALYSIS_HISTORY_CAPACITY)
    return _json(request, session_id, {'success': True, 'history': ledger.to_list()})


def _live_changes(events, view):
    """Pass through heartbeats and the events that change ``view``; drop repeats and late updates."""
    for event in events:
        if event is None or view.apply(event):
            yield event


def _sse(events):
    for event in events:
        if event is None:
            yield ': keepalive\n\n'
        else:
            yield f"event: change\ndata: {json.dumps(event, default=str)}\n\n"


@require_GET
def queue_events(request):
    """Server-sent events with every change to this session's live queue."""
    session_id = get_session_id(request)
    limit = settings.ANALYSIS_QUEUE_LIMIT
    view = feed.QueueView([j.to_dict() for j in JobStore().recent(session_id, limit=limit)], limit=limit)
    changes = _live_changes(feed.stream(session_id), view)
    response = StreamingHttpResponse(_sse(changes), content_type='text/event-stream')
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return set_session_cookie(response, session_id)
