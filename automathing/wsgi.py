"""
WSGI config for the automathing project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "automathing.settings")

application = get_wsgi_application()
