import logging
from urllib.parse import urlencode

from django.shortcuts import redirect, render

from .exceptions import ConfigurationError
from .services.auth import get_user
from .services.supabase import missing_config

logger = logging.getLogger(__name__)

AUTH_PAGES = ("/login/", "/signup/")


def is_protected_path(path: str) -> bool:
    return path == "/dashboard" or path.startswith("/dashboard/")


def login_redirect(path: str):
    return redirect(f"/login/?{urlencode({'redirectedFrom': path})}")


def render_config_error(request, missing):
    return render(request, "config_error.html", {"missing_vars": missing}, status=503)


class SessionGateMiddleware:
    """
    Keep signed-out visitors out of the dashboard and signed-in users off
    the login and signup pages.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path
        if is_protected_path(path) or path in AUTH_PAGES:
            response = self._gate(request, path)
            if response is not None:
                return response
        return self.get_response(request)

    def _gate(self, request, path):
        missing = missing_config()
        if missing:
            logger.warning(f"Supabase settings missing ({', '.join(missing)}), skipping session check")
            if is_protected_path(path):
                return redirect("/")
            return None

        try:
            try:
                user = get_user(request)
            except Exception as e:
                logger.error(f"Error while loading the session for {path}: {e}")
                if is_protected_path(path):
                    return login_redirect(path)
                return None

            if user is None and is_protected_path(path):
                return login_redirect(path)

            if user is not None and path in AUTH_PAGES:
                return redirect("/dashboard/")
        except Exception as e:
            # Never block the request on an unexpected gate failure
            logger.error(f"Unexpected error in session gate for {path}: {e}", exc_info=True)
        return None

    def process_exception(self, request, exception):
        if isinstance(exception, ConfigurationError):
            logger.error(f"Configuration error on {request.path}: {exception}")
            return render_config_error(request, exception.missing)
        return None
