"""
ASGI config for the automathing project.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "automathing.settings")

application = get_asgi_application()
