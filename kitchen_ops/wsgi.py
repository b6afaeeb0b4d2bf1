"""
WSGI config for kitchen_ops project.

Usage:
    gunicorn kitchen_ops.wsgi --env DJANGO_SETTINGS_MODULE=kitchen_ops.settings.cloud
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'kitchen_ops.settings.local')

application = get_wsgi_application()
