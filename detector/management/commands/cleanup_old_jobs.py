"""
Management command to delete finished analysis jobs older than N days
"""
from django.core.management.base import BaseCommand
from django.utils import timezone
from datetime import timedelta
from detector.models import AnalysisJob
from detector.store import JobStore


class Command(BaseCommand):
    help = 'Delete completed and failed analysis jobs older than N days (default: 7)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=7,
            help='Delete jobs finished more than this many days ago (default: 7)',
        )

    def handle(self, *args, **options):
        days = options['days']
        cutoff_date = timezone.now() - timedelta(days=days)

        old_jobs = AnalysisJob.objects.filter(
            status__in=AnalysisJob.TERMINAL_STATUSES,
            created_at__lt=cutoff_date,
        )
        job_ids = list(old_jobs.values_list('pk', flat=True))

        if not job_ids:
            self.stdout.write(self.style.SUCCESS(f'No finished jobs older than {days} days found.'))
            return

        store = JobStore()
        for job_id in job_ids:
            store.delete(job_id)

        self.stdout.write(
            self.style.SUCCESS(f'Deleted {len(job_ids)} analysis jobs older than {days} days.')
        )
