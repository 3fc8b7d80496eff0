"""
WSGI config for Lawdesk.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lawdesk.settings')

application = get_wsgi_application()
