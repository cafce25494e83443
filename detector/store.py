import logging

from django.db import DatabaseError
from django.utils import timezone

from . import feed
from .exceptions import JobNotFound
from .models import AnalysisJob

logger = logging.getLogger(__name__)


class JobStore:
    """Row store for AnalysisJob with a change feed.

    Each write is a single UPDATE keyed by job id. Only the pipeline that owns
    a job writes to it, so no row locking is used.
    """

    def insert(self, **fields):
        try:
            job = AnalysisJob.objects.create(**fields)
        except DatabaseError:
            logger.exception("Failed to insert analysis job for %s", fields.get('file_name'))
            raise
        feed.publish(feed.INSERT, job.session_id, new=job.to_dict())
        return job

    def get(self, job_id, session_id=None):
        qs = AnalysisJob.objects.filter(pk=job_id)
        if session_id is not None:
            qs = qs.filter(session_id=session_id)
        job = qs.first()
        if job is None:
            raise JobNotFound(job_id)
        return job

    def recent(self, session_id, limit=10):
        return list(AnalysisJob.objects.filter(session_id=session_id).order_by('-created_at')[:limit])

    def update_where(self, job_id, filters, **fields):
        """Apply ``fields`` if the row still matches ``filters``.

        Returns the updated job, or None when the guard did not match.
        """
        fields['updated_at'] = timezone.now()
        try:
            rows = AnalysisJob.objects.filter(pk=job_id, **filters).update(**fields)
        except DatabaseError:
            logger.exception("Failed to update analysis job %s", job_id)
            raise
        if not rows:
            if not AnalysisJob.objects.filter(pk=job_id).exists():
                raise JobNotFound(job_id)
            return None
        job = AnalysisJob.objects.get(pk=job_id)
        feed.publish(feed.UPDATE, job.session_id, new=job.to_dict())
        return job

    def delete(self, job_id):
        job = self.get(job_id)
        old = job.to_dict()
        job.delete()
        feed.publish(feed.DELETE, job.session_id, old=old)
