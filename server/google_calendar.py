# google_calendar.py
"""
Google Calendar via google-api-python-client, authenticated with an OAuth 2.0
refresh token.

The refresh token is obtained once through /google/oauth/start ->
/google/oauth/callback (see debug_routes.py) and stored by the operator
in GCAL_OAUTH_REFRESH_TOKEN. At runtime a single Credentials object holds it,
caches the access token and refreshes it when expired.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from oauthlib.oauth2 import OAuth2Error

from config import Settings

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/calendar"]


class CalendarError(Exception):
    pass


class GoogleCalendar:
    def __init__(self, settings: Settings):
        self.client_id = settings.gcal_client_id
        self.client_secret = settings.gcal_client_secret
        self.redirect_uri = settings.gcal_redirect_uri
        self.refresh_token = settings.gcal_refresh_token
        self.calendar_id = settings.gcal_calendar_id
        self._creds: Credentials | None = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return all([self.client_id, self.client_secret, self.refresh_token, self.calendar_id])

    # ---------- OAuth consent (one-off) ----------

    def _flow(self, state: str | None = None) -> Flow:
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        # No PKCE: start and callback build separate Flow objects, so a
        # generated code verifier would not survive to the exchange.
        return Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            state=state,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        url, _ = self._flow(state).authorization_url(access_type="offline", prompt="consent")
        return url

    def exchange_code(self, code: str) -> dict:
        """Authorization code -> tokens (includes refresh_token on first consent)."""
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except OAuth2Error as exc:
            raise CalendarError(f"code exchange failed: {exc.error}") from exc
        creds = flow.credentials
        return {"access_token": creds.token, "refresh_token": creds.refresh_token}

    # ---------- Runtime credentials ----------

    def credentials(self) -> Credentials:
        """Shared credentials, refreshed only when the cached token is missing or expired."""
        if not self.refresh_token:
            raise CalendarError("GCAL_OAUTH_REFRESH_TOKEN is not set")
        with self._lock:
            if self._creds is None:
                self._creds = Credentials(
                    token=None,
                    refresh_token=self.refresh_token,
                    token_uri=TOKEN_URI,
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                    scopes=SCOPES,
                )
            if not self._creds.valid:
                try:
                    self._creds.refresh(Request())
                except GoogleAuthError as exc:
                    # RefreshError with invalid_grant: the refresh token was revoked or expired
                    raise CalendarError(f"token refresh failed: {exc}") from exc
            return self._creds

    def access_token(self) -> str:
        return self.credentials().token

    # ---------- Events ----------

    def create_event(
        self,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
        timezone: str,
        with_conference: bool = True,
    ) -> dict:
        """events.insert; returns the created event resource."""
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        }
        if with_conference:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": f"learning-{int(time.time() * 1000)}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }

        service = build("calendar", "v3", credentials=self.credentials(), cache_discovery=False)
        try:
            # conferenceDataVersion=1 is required for Google to create the Meet link
            event = service.events().insert(
                calendarId=self.calendar_id,
                body=body,
                conferenceDataVersion=1 if with_conference else 0,
            ).execute()
        except HttpError as exc:
            raise CalendarError(f"events.insert returned {exc.resp.status}") from exc
        except GoogleAuthError as exc:
            raise CalendarError(f"events.insert auth failed: {exc}") from exc
        except OSError as exc:
            raise CalendarError(f"events.insert network error: {exc!r}") from exc
        logger.info("Created calendar event %s", event.get("id"))
        return event


def meet_link(event: dict) -> str | None:
    """Video link of an event, if Google attached one."""
    if event.get("hangoutLink"):
        return event["hangoutLink"]
    for entry in (event.get("conferenceData") or {}).get("entryPoints", []):
        if entry.get("entryPointType") == "video":
            return entry.get("uri")
    return None
