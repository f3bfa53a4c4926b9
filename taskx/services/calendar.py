"""Google Calendar connector.

Mirrors task deadlines into a dedicated per-user calendar. Token bundles are
stored on the user row in the Google wire shape (``access_token``,
``refresh_token``, ``scope``, ``token_type``, ``expiry_date`` in epoch
milliseconds) so the web client and the API agree on one format.

All refreshing goes through :func:`refresh_token_bundle`; the connector calls
it at most once per operation, before touching the Calendar API.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from ..config import CALENDAR_NAME
from ..errors import AuthExpired, IntegrationError, IntegrationNotConnected, NotFound, UpstreamError
from ..models import User

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

EVENT_DURATION = timedelta(hours=1)
POPUP_REMINDER_MINUTES = 30

# google-auth refreshes on its own inside this margin; refresh here first so the
# new token is persisted.
EXPIRY_MARGIN = timedelta(minutes=5)

# Network failures from execute(), as opposed to API errors.
TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)


# ---------- token bundle <-> google-auth credentials ----------

def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def credentials_from_bundle(bundle: dict, client_id: str, client_secret: str) -> Credentials:
    expiry = None
    if bundle.get("expiry_date"):
        # google-auth compares expiry as naive UTC
        expiry = datetime.fromtimestamp(bundle["expiry_date"] / 1000, tz=timezone.utc).replace(tzinfo=None)
    scope = bundle.get("scope")
    return Credentials(
        token=bundle.get("access_token"),
        refresh_token=bundle.get("refresh_token"),
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=scope.split() if scope else None,
        expiry=expiry,
    )


def bundle_from_credentials(creds: Credentials, previous: Optional[dict] = None) -> dict:
    """Serialize credentials, keeping fields Google left out of a refresh response."""
    bundle = dict(previous or {})
    bundle["access_token"] = creds.token
    if creds.refresh_token:
        bundle["refresh_token"] = creds.refresh_token
    if creds.expiry:
        bundle["expiry_date"] = int(_to_utc(creds.expiry).timestamp() * 1000)
    if creds.scopes:
        bundle["scope"] = " ".join(creds.scopes)
    bundle.setdefault("token_type", "Bearer")
    return bundle


def token_expired(bundle: dict, now_ms: int) -> bool:
    expiry = bundle.get("expiry_date")
    margin_ms = int(EXPIRY_MARGIN.total_seconds() * 1000)
    return bool(expiry) and expiry - margin_ms <= now_ms


def refresh_token_bundle(bundle: dict, client_id: str, client_secret: str) -> dict:
    """Exchange the stored refresh token for a new access token.

    Returns the refreshed bundle. Raises ``AuthExpired`` when there is no
    refresh token or Google rejects it; the user has to reconnect.
    """
    if not bundle.get("refresh_token"):
        raise AuthExpired(details="No refresh token stored")

    creds = credentials_from_bundle(bundle, client_id, client_secret)
    try:
        creds.refresh(Request())
    except (RefreshError, TransportError) as exc:
        logger.warning("Token refresh error: %s", exc)
        raise AuthExpired(details=str(exc)) from exc
    return bundle_from_credentials(creds, bundle)


def build_calendar_service(creds: Credentials) -> Any:
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def _http_error_message(exc: HttpError) -> str:
    return getattr(exc, "reason", None) or str(exc)


def _http_status(exc: HttpError) -> Optional[int]:
    resp = getattr(exc, "resp", None)
    return getattr(resp, "status", None)


def build_event(todo_id: str, text: str, deadline: datetime) -> dict:
    """Calendar event body mirroring one task deadline."""
    start = _to_utc(deadline)
    end = start + EVENT_DURATION
    return {
        "summary": text,
        "description": f"Task from TaskX (ID: {todo_id})",
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": POPUP_REMINDER_MINUTES}],
        },
        "visibility": "public",
        "transparency": "opaque",
    }


class CalendarConnector:
    """OAuth connection and event mirroring for one Google OAuth client.

    ``service_factory``, ``flow_factory`` and ``refresher`` default to the
    real Google implementations and are replaced with fakes in tests.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        calendar_name: str = CALENDAR_NAME,
        service_factory: Optional[Callable[[Credentials], Any]] = None,
        flow_factory: Optional[Callable[[Optional[str]], Flow]] = None,
        refresher: Optional[Callable[[dict], dict]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.calendar_name = calendar_name
        self.service_factory = service_factory or build_calendar_service
        self.flow_factory = flow_factory or self._build_flow
        self.refresher = refresher or (lambda bundle: refresh_token_bundle(bundle, client_id, client_secret))
        self.clock = clock

    # ----- OAuth -----

    def _build_flow(self, state: Optional[str] = None) -> Flow:
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        return Flow.from_client_config(client_config, scopes=SCOPES, state=state, redirect_uri=self.redirect_uri)

    def authorization_url(self, state: str) -> str:
        """Consent URL; ``state`` carries the user id back to the callback."""
        flow = self.flow_factory(state)
        url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        return url

    def exchange_code(self, code: str) -> dict:
        flow = self.flow_factory(None)
        try:
            flow.fetch_token(code=code)
        except Exception as exc:  # oauthlib, requests and scope-change warnings all land here
            logger.warning("Authorization code exchange failed: %s", exc)
            raise IntegrationError("Failed to exchange authorization code", details=str(exc)) from exc
        return bundle_from_credentials(flow.credentials)

    def credentials_for(self, bundle: dict) -> Credentials:
        return credentials_from_bundle(bundle, self.client_id, self.client_secret)

    def connect(self, db: Session, user_id: str, code: str) -> str:
        """Finish the OAuth redirect: store tokens and the dedicated calendar id."""
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        tokens = self.exchange_code(code)
        service = self.service_factory(self.credentials_for(tokens))
        calendar_id = self._find_or_create_calendar(service)

        # Only the integration fields are touched.
        user.google_tokens = tokens
        user.google_calendar_id = calendar_id
        user.updated_at = datetime.utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Connected Google Calendar %s for user %s", calendar_id, user_id)
        return calendar_id

    def disconnect(self, db: Session, user: User) -> None:
        user.google_tokens = None
        user.google_calendar_id = None
        user.updated_at = datetime.utcnow()
        db.add(user)
        db.commit()
        logger.info("Disconnected Google Calendar for user %s", user.id)

    def _find_or_create_calendar(self, service: Any) -> str:
        try:
            page_token = None
            while True:
                listing = service.calendarList().list(pageToken=page_token).execute()
                for entry in listing.get("items", []):
                    if entry.get("summary") == self.calendar_name and entry.get("id"):
                        return entry["id"]
                page_token = listing.get("nextPageToken")
                if not page_token:
                    break

            created = service.calendars().insert(
                body={"summary": self.calendar_name, "timeZone": "UTC"}
            ).execute()
        except HttpError as exc:
            raise UpstreamError("Calendar API error", details=_http_error_message(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            raise UpstreamError("Calendar API error", details=str(exc)) from exc

        if not created.get("id"):
            raise UpstreamError("Calendar API error", details="Calendar creation returned no id")
        logger.info("Created calendar %r", self.calendar_name)
        return created["id"]

    # ----- tokens -----

    def ensure_fresh_tokens(self, db: Session, user: User) -> dict:
        """Return a usable token bundle, refreshing and persisting it if expired."""
        if not user.calendar_connected:
            raise IntegrationNotConnected()

        tokens = user.google_tokens
        if not token_expired(tokens, int(self.clock() * 1000)):
            return tokens

        logger.info("Refreshing expired Google token for user %s", user.id)
        refreshed = self.refresher(tokens)
        user.google_tokens = refreshed
        user.updated_at = datetime.utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)
        return refreshed

    def _calendar_service(self, db: Session, user: User) -> Any:
        tokens = self.ensure_fresh_tokens(db, user)
        return self.service_factory(self.credentials_for(tokens))

    # ----- events -----

    def sync_task(
        self,
        db: Session,
        user: User,
        todo_id: str,
        text: str,
        deadline: datetime,
        calendar_event_id: Optional[str] = None,
    ) -> str:
        """Create or update the event for a task and return its id.

        Callers must not issue concurrent syncs for the same task.
        """
        service = self._calendar_service(db, user)
        calendar_id = user.google_calendar_id
        body = build_event(todo_id, text, deadline)

        try:
            if calendar_event_id:
                service.events().update(calendarId=calendar_id, eventId=calendar_event_id, body=body).execute()
                logger.info("Updated event %s for task %s", calendar_event_id, todo_id)
                return calendar_event_id
            created = service.events().insert(calendarId=calendar_id, body=body).execute()
        except HttpError as exc:
            logger.error("Calendar API error for task %s: %s", todo_id, exc)
            raise UpstreamError("Calendar API error", details=_http_error_message(exc)) from exc
        except RefreshError as exc:
            raise AuthExpired(details=str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            logger.error("Calendar transport error for task %s: %s", todo_id, exc)
            raise UpstreamError("Calendar API error", details=str(exc)) from exc

        event_id = created.get("id")
        if not event_id:
            raise UpstreamError("Calendar API error", details="Failed to create event ID")
        logger.info("Created event %s for task %s", event_id, todo_id)
        return event_id

    def delete_event(self, db: Session, user: User, event_id: str) -> None:
        """Delete an event from the dedicated calendar; an already-gone event counts as deleted."""
        service = self._calendar_service(db, user)
        try:
            service.events().delete(calendarId=user.google_calendar_id, eventId=event_id).execute()
        except HttpError as exc:
            if _http_status(exc) in (404, 410):
                logger.info("Event %s already gone", event_id)
                return
            logger.error("Error deleting calendar event %s: %s", event_id, exc)
            raise UpstreamError("Failed to delete calendar event", details=_http_error_message(exc)) from exc
        except RefreshError as exc:
            raise AuthExpired(details=str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            logger.error("Calendar transport error deleting event %s: %s", event_id, exc)
            raise UpstreamError("Failed to delete calendar event", details=str(exc)) from exc
        logger.info("Deleted event %s", event_id)
