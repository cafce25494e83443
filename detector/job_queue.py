"""
Analysis job lifecycle: queued -> processing -> completed | failed.

Terminal states are final. A transition whose source state no longer matches
is a no-op and returns None, which makes ``complete`` and ``fail`` idempotent.
"""
import logging
from dataclasses import dataclass

from django.conf import settings
from django.utils import timezone

from .exceptions import FileTooLargeError, InvalidUploadError
from .models import AnalysisJob
from .store import JobStore

logger = logging.getLogger(__name__)

BEGIN_PROGRESS = 10
MAX_ACTIVE_PROGRESS = 99


def _fit(field_name, value):
    """Truncate client-supplied text to the column width."""
    return value[:AnalysisJob._meta.get_field(field_name).max_length]


@dataclass
class Upload:
    name: str
    mime_type: str
    data: bytes
    size: int

    @classmethod
    def from_uploaded_file(cls, uploaded_file, max_bytes=None):
        """Build from a Django UploadedFile, rejecting oversized files before reading them."""
        limit = max_bytes or settings.ANALYSIS_MAX_UPLOAD_BYTES
        if uploaded_file.size > limit:
            raise FileTooLargeError(uploaded_file.size, limit)
        data = b''.join(uploaded_file.chunks())
        return cls(
            name=uploaded_file.name,
            mime_type=uploaded_file.content_type or '',
            data=data,
            size=uploaded_file.size,
        )


class AnalysisQueue:
    def __init__(self, store=None, max_upload_bytes=None):
        self.store = store or JobStore()
        self.max_upload_bytes = max_upload_bytes or settings.ANALYSIS_MAX_UPLOAD_BYTES

    def validate(self, upload):
        if upload.size is not None and upload.size > self.max_upload_bytes:
            raise FileTooLargeError(upload.size, self.max_upload_bytes)
        if not upload.name:
            raise InvalidUploadError('File name is required')
        if upload.data is None:
            raise InvalidUploadError('File content is required')

    def submit(self, session_id, upload):
        self.validate(upload)
        job = self.store.insert(
            session_id=session_id,
            file_name=_fit('file_name', upload.name),
            file_type=_fit('file_type', upload.mime_type or 'application/octet-stream'),
            status=AnalysisJob.STATUS_QUEUED,
            progress=0,
        )
        logger.info("Queued %s (%s, %d bytes) as %s",
                    upload.name, upload.mime_type, upload.size or 0, job.id)
        return job

    def begin(self, job_id):
        return self.store.update_where(
            job_id, {'status': AnalysisJob.STATUS_QUEUED},
            status=AnalysisJob.STATUS_PROCESSING,
            progress=BEGIN_PROGRESS,
        )

    def advance(self, job_id, progress):
        progress = int(min(MAX_ACTIVE_PROGRESS, max(0, progress)))
        return self.store.update_where(
            job_id,
            {'status': AnalysisJob.STATUS_PROCESSING, 'progress__lte': progress},
            progress=progress,
        )

    def complete(self, job_id, result, processing_time_ms=None):
        raw = result.to_dict()
        if processing_time_ms is not None:
            raw['processingTimeMs'] = int(processing_time_ms)
        job = self.store.update_where(
            job_id, {'status': AnalysisJob.STATUS_PROCESSING},
            status=AnalysisJob.STATUS_COMPLETED,
            progress=100,
            completed_at=timezone.now(),
            is_deepfake=bool(result.is_deepfake),
            confidence=float(result.confidence),
            explanation=result.explanation,
            raw_result=raw,
        )
        if job is None:
            logger.info("Job %s is not processing; completion ignored", job_id)
        return job

    def fail(self, job_id, reason):
        job = self.store.update_where(
            job_id, {'status__in': AnalysisJob.ACTIVE_STATUSES},
            status=AnalysisJob.STATUS_FAILED,
            completed_at=timezone.now(),
            explanation=reason,
        )
        if job is None:
            logger.info("Job %s already finished; failure ignored", job_id)
        return job
