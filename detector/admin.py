from django.contrib import admin

from .models import AnalysisJob
from .store import JobStore


@admin.register(AnalysisJob)
class AnalysisJobAdmin(admin.ModelAdmin):
    list_display = ['file_name', 'file_type', 'status', 'progress', 'verdict', 'confidence', 'session_short', 'created_at']
    list_filter = ['status', 'is_deepfake', 'created_at']
    search_fields = ['file_name', 'session_id', 'id']
    readonly_fields = ['id', 'session_id', 'created_at', 'updated_at', 'completed_at', 'is_deepfake', 'confidence', 'explanation', 'raw_result']

    fieldsets = (
        ('Job', {
            'fields': ('id', 'session_id', 'file_name', 'file_type', 'status', 'progress')
        }),
        ('Timing', {
            'fields': ('created_at', 'updated_at', 'completed_at')
        }),
        ('Result', {
            'fields': ('is_deepfake', 'confidence', 'explanation', 'raw_result')
        }),
    )

    def session_short(self, obj):
        return f"{obj.session_id[:16]}..."
    session_short.short_description = "Session"

    def verdict(self, obj):
        if obj.is_deepfake is None:
            return "-"
        return "Deepfake" if obj.is_deepfake else "Authentic"
    verdict.short_description = "Verdict"

    def delete_model(self, request, obj):
        JobStore().delete(obj.pk)

    def delete_queryset(self, request, queryset):
        store = JobStore()
        for pk in queryset.values_list('pk', flat=True):
            store.delete(pk)
