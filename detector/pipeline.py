import logging
import threading
import time

from django.conf import settings
from django.db import DatabaseError, close_old_connections

from .detector import DeepfakeDetector
from .exceptions import RemoteProviderError
from .job_queue import AnalysisQueue

logger = logging.getLogger(__name__)


def _fail_quietly(queue, job_id, reason):
    # If this write fails too the job stays in processing until the client gives up
    try:
        queue.fail(job_id, reason)
    except DatabaseError:
        logger.exception("Could not mark job %s as failed", job_id)


def run_job(job_id, upload, queue=None, detector=None):
    """Run one job from queued to a terminal state. Returns the stored job or None."""
    queue = queue or AnalysisQueue()
    if queue.begin(job_id) is None:
        logger.warning("Job %s was not queued; skipping", job_id)
        return None

    start = time.monotonic()
    try:
        detector = detector or DeepfakeDetector()
        queue.advance(job_id, 30)
        result = detector.analyze(upload.data, upload.mime_type, upload.name)
        queue.advance(job_id, 90)
    except RemoteProviderError as e:
        logger.warning("Remote analysis of %s failed: %s", job_id, e.message)
        _fail_quietly(queue, job_id, e.message)
        return None
    except DatabaseError:
        logger.exception("Progress update failed for job %s", job_id)
        raise
    except Exception as e:
        logger.exception("Analysis of job %s crashed", job_id)
        _fail_quietly(queue, job_id, f'Analysis failed: {e}')
        return None

    elapsed_ms = int((time.monotonic() - start) * 1000)
    return queue.complete(job_id, result, processing_time_ms=elapsed_ms)


def _run_in_thread(job_id, upload):
    close_old_connections()
    try:
        run_job(job_id, upload)
    except DatabaseError:
        logger.error("Job %s left unfinished after a database error", job_id)
    except Exception:
        logger.exception("Worker for job %s crashed", job_id)
    finally:
        close_old_connections()


def dispatch(job_id, upload, inline=None):
    """Start the worker for a job: inline when configured, otherwise on its own thread."""
    if inline is None:
        inline = settings.ANALYSIS_RUN_INLINE
    if inline:
        return run_job(job_id, upload)
    worker = threading.Thread(
        target=_run_in_thread, args=(job_id, upload),
        name=f'analysis-{job_id}', daemon=True)
    worker.start()
    return None
