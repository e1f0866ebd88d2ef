"""
WSGI config for the Ccurity platform.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ccurity.config.settings')

application = get_wsgi_application()
