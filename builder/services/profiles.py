"""
Profile service for the ``profiles`` table.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from django.http import HttpRequest
from supabase import PostgrestAPIError

from ..exceptions import BackendError, NotAuthenticatedError
from .auth import AuthUser, get_user
from .supabase import get_data_client

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "theme": "light",
    "language": "en",
    "timezone": "utc",
    "email_notifications": True,
    "error_notifications": True,
    "success_notifications": False,
    "product_updates": True,
    "marketing_emails": False,
}


class ProfileService:
    """Read and update the signed-in user's profile row."""

    table = "profiles"

    def _require_user(self, request: HttpRequest) -> AuthUser:
        user = get_user(request)
        if user is None:
            raise NotAuthenticatedError("You must be signed in to manage your profile.")
        return user

    def get_profile(self, request: HttpRequest) -> Optional[Dict[str, Any]]:
        user = self._require_user(request)
        client = get_data_client(request)
        try:
            result = client.table(self.table).select("*").eq("id", user.id).limit(1).execute()
        except PostgrestAPIError as exc:
            logger.error(f"Could not load profile for {user.id}: {exc.message}")
            raise BackendError(exc.message) from exc
        return result.data[0] if result.data else None

    def get_preferences(self, request: HttpRequest) -> Dict[str, Any]:
        profile = self.get_profile(request) or {}
        preferences = dict(DEFAULT_PREFERENCES)
        preferences.update(profile.get("preferences") or {})
        return preferences

    def _upsert(self, request: HttpRequest, user: AuthUser, values: Dict[str, Any]) -> Dict[str, Any]:
        client = get_data_client(request)
        payload = {"id": user.id, "updated_at": datetime.now(timezone.utc).isoformat()}
        payload.update(values)
        try:
            result = client.table(self.table).upsert(payload).execute()
        except PostgrestAPIError as exc:
            logger.error(f"Could not save profile for {user.id}: {exc.message}")
            raise BackendError(exc.message) from exc
        return result.data[0] if result.data else payload

    def update_profile(
        self,
        request: HttpRequest,
        first_name: str,
        last_name: str,
        company: str = "",
        job_title: str = "",
    ) -> Dict[str, Any]:
        user = self._require_user(request)
        current = self.get_profile(request) or {}
        preferences = dict(current.get("preferences") or {})
        preferences["job_title"] = job_title

        profile = self._upsert(request, user, {
            "first_name": first_name or None,
            "last_name": last_name or None,
            "company": company or None,
            "preferences": preferences,
        })
        logger.info(f"Profile updated for user {user.id}")
        return profile

    def update_preferences(self, request: HttpRequest, **preferences: Any) -> Dict[str, Any]:
        """Merge ``preferences`` into the stored preferences JSON."""
        user = self._require_user(request)
        current = self.get_profile(request) or {}
        merged = dict(current.get("preferences") or {})
        merged.update(preferences)

        profile = self._upsert(request, user, {"preferences": merged})
        logger.info(f"Preferences updated for user {user.id}: {sorted(preferences)}")
        return profile


profile_service = ProfileService()
