"""
Auth service delegating to Supabase Auth.

The Django session only carries the Supabase access and refresh tokens;
everything else about the user comes back from the auth API.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.conf import settings
from django.http import HttpRequest
from supabase import AuthError as SupabaseAuthError
from supabase import PostgrestAPIError

from ..exceptions import AuthError
from .supabase import (
    TRANSPORT_ERRORS,
    clear_session,
    get_admin_client,
    get_client,
    is_configured,
    session_tokens,
    store_session,
)

logger = logging.getLogger(__name__)

FRIENDLY_AUTH_MESSAGES = {
    "Invalid login credentials": "Invalid login credentials. Please check your email and password.",
    "Email not confirmed": "Email not confirmed. Check your inbox for the confirmation link.",
}

SIGN_UP_SUCCESS = "Check your email to confirm your registration."
RESET_PASSWORD_SUCCESS = "We sent you a link to reset your password."

SIGN_IN_FAILED = "An error occurred during login. Please try again later."
SIGN_UP_FAILED = "An error occurred during registration. Please try again later."
RESET_PASSWORD_FAILED = "An error occurred while resetting the password. Please try again later."
UPDATE_PASSWORD_FAILED = "An error occurred while updating the password. Please try again later."


@dataclass
class AuthUser:
    """The signed-in user as seen by views and templates."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    created_at: Any = None

    @classmethod
    def from_supabase(cls, user: Any) -> "AuthUser":
        metadata = getattr(user, "user_metadata", None) or {}
        return cls(
            id=str(user.id),
            email=getattr(user, "email", "") or "",
            first_name=metadata.get("first_name", "") or "",
            last_name=metadata.get("last_name", "") or "",
            created_at=getattr(user, "created_at", None),
        )

    @property
    def initials(self) -> str:
        if not self.email:
            return "U"
        return self.email[0].upper()

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return FRIENDLY_AUTH_MESSAGES.get(message, message)


def get_user(request: HttpRequest) -> Optional[AuthUser]:
    """
    Return the user of the current session, or None.

    The result is cached on the request. A rejected access token is
    refreshed once with the stored refresh token; transport failures
    propagate to the caller.
    """
    if hasattr(request, "_auth_user"):
        return request._auth_user
    user = _load_user(request)
    request._auth_user = user
    return user


def _load_user(request: HttpRequest) -> Optional[AuthUser]:
    access_token, refresh_token = session_tokens(request)
    if not access_token:
        return None

    client = get_client(request)
    try:
        response = client.auth.get_user(access_token)
    except SupabaseAuthError as exc:
        logger.debug(f"Access token rejected: {_error_message(exc)}")
        response = None

    if response and getattr(response, "user", None):
        return AuthUser.from_supabase(response.user)

    if not refresh_token:
        clear_session(request)
        return None

    try:
        refreshed = client.auth.refresh_session(refresh_token)
    except SupabaseAuthError as exc:
        logger.info(f"Could not refresh Supabase session: {_error_message(exc)}")
        clear_session(request)
        return None

    if not refreshed or not refreshed.session or not refreshed.user:
        clear_session(request)
        return None

    store_session(request, refreshed.session)
    logger.debug(f"Refreshed session for user {refreshed.user.id}")
    return AuthUser.from_supabase(refreshed.user)


def sign_in(request: HttpRequest, email: str, password: str) -> AuthUser:
    client = get_client(request)
    try:
        response = client.auth.sign_in_with_password({"email": email, "password": password})
    except SupabaseAuthError as exc:
        logger.info(f"Sign-in failed for {email}: {exc}")
        raise AuthError(_error_message(exc)) from exc
    except TRANSPORT_ERRORS as exc:
        logger.error(f"Auth backend unreachable during sign-in: {exc}", exc_info=True)
        raise AuthError(SIGN_IN_FAILED) from exc

    if not response.session or not response.user:
        raise AuthError(SIGN_IN_FAILED)

    # Avoid session fixation before the tokens are written
    request.session.cycle_key()
    store_session(request, response.session)
    user = AuthUser.from_supabase(response.user)
    request._auth_user = user
    logger.info(f"User {user.id} signed in")
    return user


def sign_up(
    request: HttpRequest,
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
) -> str:
    """Register a user and create their profile row. Returns the success message."""
    client = get_client(request)
    try:
        response = client.auth.sign_up({
            "email": email,
            "password": password,
            "options": {
                "email_redirect_to": f"{settings.SITE_URL}/auth/callback",
                "data": {"first_name": first_name, "last_name": last_name},
            },
        })
    except SupabaseAuthError as exc:
        logger.info(f"Sign-up failed for {email}: {exc}")
        raise AuthError(_error_message(exc)) from exc
    except TRANSPORT_ERRORS as exc:
        logger.error(f"Auth backend unreachable during sign-up: {exc}", exc_info=True)
        raise AuthError(SIGN_UP_FAILED) from exc

    if response.user:
        profile_client = get_admin_client() if settings.SUPABASE_SERVICE_ROLE_KEY else client
        try:
            profile_client.table("profiles").insert({
                "id": str(response.user.id),
                "first_name": first_name or None,
                "last_name": last_name or None,
            }).execute()
        except PostgrestAPIError as exc:
            logger.error(f"Could not create profile for {response.user.id}: {exc.message}")
            raise AuthError(exc.message) from exc
        except TRANSPORT_ERRORS as exc:
            logger.error(f"Could not create profile for {response.user.id}: {exc}", exc_info=True)
            raise AuthError(SIGN_UP_FAILED) from exc
        logger.info(f"User {response.user.id} registered")

    if response.session:
        # Projects without e-mail confirmation sign the user in straight away
        store_session(request, response.session)

    return SIGN_UP_SUCCESS


def reset_password(request: HttpRequest, email: str) -> str:
    client = get_client(request)
    try:
        client.auth.reset_password_for_email(
            email,
            {"redirect_to": f"{settings.SITE_URL}/reset-password/confirm/"},
        )
    except SupabaseAuthError as exc:
        logger.info(f"Password reset failed for {email}: {exc}")
        raise AuthError(_error_message(exc)) from exc
    except TRANSPORT_ERRORS as exc:
        logger.error(f"Auth backend unreachable during password reset: {exc}", exc_info=True)
        raise AuthError(RESET_PASSWORD_FAILED) from exc
    return RESET_PASSWORD_SUCCESS


def exchange_code(request: HttpRequest, code: str) -> Optional[AuthUser]:
    """Turn the code from an e-mail link into a session."""
    client = get_client(request)
    try:
        response = client.auth.exchange_code_for_session({"auth_code": code})
    except SupabaseAuthError as exc:
        logger.warning(f"Auth code exchange failed: {exc}")
        raise AuthError(_error_message(exc)) from exc
    except TRANSPORT_ERRORS as exc:
        logger.error(f"Auth backend unreachable during code exchange: {exc}", exc_info=True)
        raise AuthError(SIGN_IN_FAILED) from exc

    if not response.session:
        return None
    request.session.cycle_key()
    store_session(request, response.session)
    user = AuthUser.from_supabase(response.user) if response.user else None
    request._auth_user = user
    return user


def update_password(request: HttpRequest, new_password: str) -> None:
    access_token, refresh_token = session_tokens(request)
    if not access_token:
        raise AuthError("Your session has expired. Please sign in again.")

    client = get_client(request)
    try:
        client.auth.set_session(access_token, refresh_token or "")
        client.auth.update_user({"password": new_password})
    except SupabaseAuthError as exc:
        raise AuthError(_error_message(exc)) from exc
    except TRANSPORT_ERRORS as exc:
        logger.error(f"Auth backend unreachable during password update: {exc}", exc_info=True)
        raise AuthError(UPDATE_PASSWORD_FAILED) from exc

    session = client.auth.get_session()
    if session:
        store_session(request, session)


def sign_out(request: HttpRequest) -> None:
    """Revoke the session remotely when possible, always forget it locally."""
    access_token, refresh_token = session_tokens(request)
    try:
        if access_token and is_configured():
            client = get_client(request)
            client.auth.set_session(access_token, refresh_token or "")
            client.auth.sign_out()
    except SupabaseAuthError as exc:
        logger.warning(f"Remote sign-out failed: {exc}")
    except TRANSPORT_ERRORS as exc:
        logger.warning(f"Remote sign-out failed, auth backend unreachable: {exc}", exc_info=True)
    finally:
        request.session.flush()
        request._auth_user = None
