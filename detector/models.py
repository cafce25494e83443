import uuid

from django.db import models


class AnalysisJob(models.Model):
    STATUS_QUEUED = 'queued'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_QUEUED, 'Queued'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]
    ACTIVE_STATUSES = (STATUS_QUEUED, STATUS_PROCESSING)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session_id = models.CharField(max_length=64, db_index=True)
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=100)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_QUEUED)
    progress = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Written once, by the terminal transition
    is_deepfake = models.BooleanField(null=True, blank=True)
    confidence = models.FloatField(null=True, blank=True)
    explanation = models.TextField(null=True, blank=True)
    raw_result = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [models.Index(fields=['session_id', '-created_at'], name='job_session_created_idx')]

    def __str__(self):
        return f"{self.file_name} [{self.status}]"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def processing_time_ms(self):
        if isinstance(self.raw_result, dict) and 'processingTimeMs' in self.raw_result:
            return int(self.raw_result['processingTimeMs'])
        if self.completed_at and self.created_at:
            return int((self.completed_at - self.created_at).total_seconds() * 1000)
        return None

    def to_dict(self):
        return {
            'id': str(self.id),
            'file_name': self.file_name,
            'file_type': self.file_type,
            'status': self.status,
            'progress': self.progress,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'is_deepfake': self.is_deepfake,
            'confidence': self.confidence,
            'explanation': self.explanation,
            'analysis_result': self.raw_result,
        }
