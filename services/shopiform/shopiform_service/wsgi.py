"""WSGI config for the ShopiForm service."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "shopiform_service.settings")

application = get_wsgi_application()
