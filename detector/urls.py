from django.urls import path
from . import views

app_name = 'detector'

urlpatterns = [
    path('', views.index, name='index'),
    path('analyze/', views.analyze, name='analyze'),
    path('jobs/<uuid:job_id>/', views.job_detail, name='job_detail'),
    path('queue/', views.queue_list, name='queue'),
    path('queue/events/', views.queue_events, name='queue_events'),
    path('history/', views.history, name='history'),
]
