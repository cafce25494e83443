"""
WSGI config for the nexus_guard project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'nexus_guard.settings')

application = get_wsgi_application()
