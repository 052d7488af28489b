"""
Supabase client factory.

Per-request clients keep their auth storage (the PKCE code verifier) in the
Django session; tokens of the signed-in user are stored there as well.
"""
import logging
from typing import Any, List, Optional, Tuple

import httpx
from django.conf import settings
from django.http import HttpRequest
from supabase import Client, create_client
from supabase.client import ClientOptions

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_ANON_KEY")

SESSION_ACCESS_TOKEN = "sb_access_token"
SESSION_REFRESH_TOKEN = "sb_refresh_token"
STORAGE_PREFIX = "sb_storage:"

# Network failures the Supabase clients let through unwrapped
TRANSPORT_ERRORS = (httpx.HTTPError, OSError)

_admin_client: Optional[Client] = None


class SessionStorage:
    """Auth storage for supabase-py backed by a Django session."""

    def __init__(self, session):
        self.session = session

    def get_item(self, key: str) -> Optional[str]:
        return self.session.get(STORAGE_PREFIX + key)

    def set_item(self, key: str, value: str) -> None:
        self.session[STORAGE_PREFIX + key] = value

    def remove_item(self, key: str) -> None:
        self.session.pop(STORAGE_PREFIX + key, None)


def missing_config() -> List[str]:
    """Names of required Supabase settings that are empty."""
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name, "")]


def is_configured() -> bool:
    return not missing_config()


def get_client(request: HttpRequest) -> Client:
    """Return the Supabase client bound to this request's session."""
    client = getattr(request, "_supabase_client", None)
    if client is not None:
        return client

    missing = missing_config()
    if missing:
        raise ConfigurationError(missing)

    options = ClientOptions(
        storage=SessionStorage(request.session),
        flow_type="pkce",
        auto_refresh_token=False,
        persist_session=False,
    )
    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, options=options)
    request._supabase_client = client
    return client


def get_data_client(request: HttpRequest) -> Client:
    """Client whose table queries run as the signed-in user."""
    client = get_client(request)
    access_token, _refresh = session_tokens(request)
    if access_token:
        client.postgrest.auth(access_token)
    return client


def get_admin_client() -> Client:
    """Service-role client shared by the process."""
    global _admin_client
    if _admin_client is not None:
        return _admin_client

    missing = [
        name for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
        if not getattr(settings, name, "")
    ]
    if missing:
        raise ConfigurationError(missing)

    _admin_client = create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
    logger.info("Supabase admin client initialised")
    return _admin_client


def reset_admin_client() -> None:
    """Forget the cached admin client (settings changed, tests)."""
    global _admin_client
    _admin_client = None


def session_tokens(request: HttpRequest) -> Tuple[Optional[str], Optional[str]]:
    return (
        request.session.get(SESSION_ACCESS_TOKEN),
        request.session.get(SESSION_REFRESH_TOKEN),
    )


def store_session(request: HttpRequest, session: Any) -> None:
    """Persist the tokens of a Supabase session in the Django session."""
    request.session[SESSION_ACCESS_TOKEN] = session.access_token
    request.session[SESSION_REFRESH_TOKEN] = session.refresh_token
    # New login: drop any user cached for this request
    if hasattr(request, "_auth_user"):
        del request._auth_user


def clear_session(request: HttpRequest) -> None:
    request.session.pop(SESSION_ACCESS_TOKEN, None)
    request.session.pop(SESSION_REFRESH_TOKEN, None)
    request._auth_user = None
