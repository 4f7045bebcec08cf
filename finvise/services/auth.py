"""
Email/password authentication over the Firebase Identity Toolkit REST API.

Sessions are not persisted by this module. A successful call returns a
UserSession; the caller decides where to keep it.
"""

import asyncio
from typing import Optional

import requests
import structlog

from finvise.config import FirebaseAuthSettings, get_settings
from finvise.models.session import UserSession


logger = structlog.get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"


class AuthError(Exception):
    """Sign-in or sign-up was refused. The message comes from the provider."""
    pass


class FirebaseAuthService:
    """
    Sign-in / sign-up against Firebase Auth.

    Error messages are passed through as returned by the provider
    (e.g. INVALID_LOGIN_CREDENTIALS, EMAIL_EXISTS).
    """

    def __init__(
        self,
        settings: Optional[FirebaseAuthSettings] = None,
        http: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().firebase
        self._http = http or requests.Session()

    def _post(self, endpoint: str, payload: dict, fallback_message: str) -> dict:
        url = f"{IDENTITY_TOOLKIT_URL}/{endpoint}?key={self._settings.web_api_key}"
        try:
            response = self._http.post(
                url,
                json=payload,
                timeout=self._settings.request_timeout_seconds,
            )
        except requests.RequestException as e:
            raise AuthError(f"{fallback_message}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            message = data.get("error", {}).get("message", fallback_message)
            raise AuthError(message)
        return data

    @staticmethod
    def _session_from(data: dict, display_name: Optional[str] = None) -> UserSession:
        return UserSession(
            user_id=data["localId"],
            email=data.get("email", ""),
            id_token=data.get("idToken", ""),
            refresh_token=data.get("refreshToken", ""),
            display_name=display_name or data.get("displayName") or None,
        )

    async def sign_in(self, email: str, password: str) -> UserSession:
        """
        Raises:
            AuthError: Wrong credentials, disabled account or network failure
        """
        data = await asyncio.to_thread(
            self._post,
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
            "Login failed",
        )
        return self._session_from(data)

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> UserSession:
        """
        Create an account and sign it in.

        The display name is attached with a follow-up profile update; if that
        update fails the account still exists and the session is returned.
        """
        data = await asyncio.to_thread(
            self._post,
            "accounts:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
            "Sign up failed",
        )

        if display_name:
            try:
                await asyncio.to_thread(
                    self._post,
                    "accounts:update",
                    {
                        "idToken": data.get("idToken", ""),
                        "displayName": display_name,
                        "returnSecureToken": False,
                    },
                    "Profile update failed",
                )
            except AuthError as e:
                logger.warning("display_name_not_saved", error=str(e))

        return self._session_from(data, display_name)
