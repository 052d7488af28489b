import logging

from .services.auth import get_user
from .services.supabase import missing_config

logger = logging.getLogger(__name__)


def auth_state(request):
    """Expose the signed-in user and configuration problems to every template."""
    missing = missing_config()
    if missing:
        return {
            "auth_user": None,
            "auth_error": "Supabase configuration missing. Contact the administrator.",
            "config_missing": missing,
        }

    try:
        user = get_user(request)
    except Exception as e:
        logger.error(f"Could not load the current user: {e}")
        return {"auth_user": None, "auth_error": "Could not load the current user.", "config_missing": []}

    return {"auth_user": user, "auth_error": None, "config_missing": []}
