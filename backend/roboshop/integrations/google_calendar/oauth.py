"""Google Calendar OAuth 2.0 flow and client lifecycle"""

import asyncio
import json
import logging
import os
from datetime import datetime, timedelta
from typing import Optional, Tuple
from urllib.parse import urlencode

import aiohttp
from cryptography.fernet import Fernet, InvalidToken

from roboshop.core.config import (
    CALENDAR_TIMEOUT_SECONDS,
    CALENDAR_TOKEN_REFRESH_MINUTES,
    ENCRYPTION_KEY,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_TOKEN_FILE,
)
from roboshop.core.errors import ExternalServiceError
from roboshop.integrations.google_calendar.client import GoogleCalendarClient

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh a little before Google says the token dies
EXPIRY_MARGIN = timedelta(minutes=2)


class CalendarClientProvider:
    """Owns the Google credentials and hands out ready clients.

    Lifecycle: ``initialize()`` loads the stored refresh token and fetches an
    access token, ``start()`` keeps it fresh in a background task, ``stop()``
    cancels that task. Until then ``ready()`` is False and
    ``current_client()`` raises ``ExternalServiceError``.
    """

    def __init__(
        self,
        client_id: Optional[str] = GOOGLE_CLIENT_ID,
        client_secret: Optional[str] = GOOGLE_CLIENT_SECRET,
        redirect_uri: Optional[str] = GOOGLE_REDIRECT_URI,
        token_file: str = GOOGLE_TOKEN_FILE,
        encryption_key: Optional[str] = ENCRYPTION_KEY,
        refresh_interval_minutes: int = CALENDAR_TOKEN_REFRESH_MINUTES,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_file = token_file
        self.refresh_interval = refresh_interval_minutes * 60
        self.scopes = [
            "https://www.googleapis.com/auth/calendar",
            "https://www.googleapis.com/auth/calendar.events",
        ]

        if not encryption_key:
            logger.warning(
                "ENCRYPTION_KEY not set; stored calendar credentials will not survive a restart"
            )
            encryption_key = Fernet.generate_key()
        self._cipher = Fernet(encryption_key)

        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

        if not all([self.client_id, self.client_secret, self.redirect_uri]):
            logger.warning("Google Calendar OAuth credentials not configured")

    # ==================== STATE ====================

    def ready(self) -> bool:
        return (
            self._access_token is not None
            and self._expires_at is not None
            and datetime.utcnow() < self._expires_at
        )

    def current_client(self) -> GoogleCalendarClient:
        if not self.ready():
            raise ExternalServiceError("Google Calendar is not authenticated")
        return GoogleCalendarClient(self._access_token, timeout=CALENDAR_TIMEOUT_SECONDS)

    # ==================== LIFECYCLE ====================

    async def initialize(self) -> bool:
        """Load the stored refresh token and get a first access token."""
        self._refresh_token = self._load_refresh_token()
        if not self._refresh_token:
            logger.warning("No stored Google Calendar credentials; visit the authorization URL")
            return False
        return await self.refresh()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def refresh(self) -> bool:
        """Swap the refresh token for a new access token. Never raises."""
        if not self._refresh_token:
            return False
        try:
            access_token, expires_in = await self.refresh_access_token(self._refresh_token)
        except ExternalServiceError as e:
            logger.error(f"Google Calendar token refresh failed: {e}")
            self._access_token = None
            self._expires_at = None
            return False
        self._set_access_token(access_token, expires_in)
        return True

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()

    # ==================== OAUTH FLOW ====================

    def get_authorization_url(self, state: str = "") -> str:
        """Generate the Google OAuth authorization URL"""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Force consent screen
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> None:
        """Finish the consent flow: store the refresh token and become ready."""
        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        refresh_token = data.get("refresh_token")
        if not refresh_token:
            raise ExternalServiceError("Google did not return a refresh token")

        self._refresh_token = refresh_token
        self._save_refresh_token(refresh_token)
        self._set_access_token(data["access_token"], data.get("expires_in", 3600))
        logger.info("Google Calendar connected")

    async def refresh_access_token(self, refresh_token: str) -> Tuple[str, int]:
        """Use refresh token to get new access token"""
        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        logger.info("Successfully refreshed Google Calendar access token")
        return data["access_token"], data.get("expires_in", 3600)

    async def _post_token(self, form: dict) -> dict:
        timeout = aiohttp.ClientTimeout(total=CALENDAR_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(GOOGLE_TOKEN_URL, data=form) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        logger.error(f"Token endpoint returned {resp.status}: {error_text}")
                        raise ExternalServiceError(
                            f"Token request failed: {resp.status}", status=resp.status
                        )
                    data = await resp.json()
        except asyncio.TimeoutError as e:
            raise ExternalServiceError("Token request timed out") from e
        except aiohttp.ClientError as e:
            raise ExternalServiceError(f"Token endpoint unreachable: {e}") from e

        if not data.get("access_token"):
            raise ExternalServiceError("No access token in response")
        return data

    def _set_access_token(self, access_token: str, expires_in: int) -> None:
        self._access_token = access_token
        self._expires_at = datetime.utcnow() + timedelta(seconds=expires_in) - EXPIRY_MARGIN

    # ==================== TOKEN STORAGE ====================

    def encrypt_token(self, token: str) -> str:
        return self._cipher.encrypt(token.encode()).decode()

    def decrypt_token(self, encrypted_token: str) -> str:
        return self._cipher.decrypt(encrypted_token.encode()).decode()

    def _load_refresh_token(self) -> Optional[str]:
        if not os.path.exists(self.token_file):
            return None
        with open(self.token_file) as f:
            stored = json.load(f)
        try:
            return self.decrypt_token(stored["refresh_token"])
        except (KeyError, InvalidToken):
            logger.error(f"Unreadable calendar credentials in {self.token_file}")
            return None

    def _save_refresh_token(self, refresh_token: str) -> None:
        with open(self.token_file, "w") as f:
            json.dump(
                {
                    "refresh_token": self.encrypt_token(refresh_token),
                    "saved_at": datetime.utcnow().isoformat(),
                },
                f,
            )
