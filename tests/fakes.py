"""Test doubles for the Google Calendar API, OAuth flow and notification senders."""

from __future__ import annotations

from datetime import datetime

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

from taskx.errors import AuthExpired, UpstreamError
from taskx.services.calendar import SCOPES


def http_error(status: int, message: str = "Backend Error") -> HttpError:
    content = ('{"error": {"code": %d, "message": "%s"}}' % (status, message)).encode()
    return HttpError(httplib2.Response({"status": str(status)}), content)


class FakeRequest:
    def __init__(self, service, op, kwargs):
        self._service = service
        self._op = op
        self._kwargs = kwargs

    def execute(self):
        return self._service._call(self._op, self._kwargs)


class _Resource:
    def __init__(self, service, prefix):
        self._service = service
        self._prefix = prefix

    def __getattr__(self, name):
        def method(**kwargs):
            return FakeRequest(self._service, f"{self._prefix}.{name}", kwargs)
        return method


class FakeCalendarService:
    """Records every Calendar API call; ``errors`` maps an op name to the exception it raises."""

    def __init__(self, calendars=None):
        self.calls: list[tuple[str, dict]] = []
        self.errors: dict[str, Exception] = {}
        self.calendar_list = list(calendars or [])
        self._next_event = 0

    def events(self):
        return _Resource(self, "events")

    def calendarList(self):
        return _Resource(self, "calendarList")

    def calendars(self):
        return _Resource(self, "calendars")

    @property
    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def last(self, op: str) -> dict:
        return [kwargs for name, kwargs in self.calls if name == op][-1]

    def _call(self, op, kwargs):
        self.calls.append((op, kwargs))
        if op in self.errors:
            raise self.errors[op]
        if op == "events.insert":
            self._next_event += 1
            return {"id": f"evt-{self._next_event}"}
        if op == "events.update":
            return {"id": kwargs["eventId"]}
        if op == "events.delete":
            return ""
        if op == "calendarList.list":
            return {"items": self.calendar_list}
        if op == "calendars.insert":
            return {"id": "cal-new", "summary": kwargs["body"]["summary"]}
        raise AssertionError(f"unexpected call {op}")


class FakeFlow:
    def __init__(self, state=None, error: Exception | None = None):
        self.state = state
        self.error = error
        self.code = None
        self.credentials = None
        self.auth_kwargs = None

    def authorization_url(self, **kwargs):
        self.auth_kwargs = kwargs
        return f"https://accounts.example.com/o/oauth2/auth?state={self.state}", self.state

    def fetch_token(self, code):
        if self.error is not None:
            raise self.error
        self.code = code
        self.credentials = Credentials(
            token="access-new",
            refresh_token="refresh-new",
            expiry=datetime(2026, 10, 19, 13, 0, 0),
            scopes=SCOPES,
        )


class FakeFlowFactory:
    def __init__(self):
        self.error: Exception | None = None
        self.flows: list[FakeFlow] = []

    def __call__(self, state=None):
        flow = FakeFlow(state=state, error=self.error)
        self.flows.append(flow)
        return flow


class FakeRefresher:
    def __init__(self):
        self.calls: list[dict] = []
        self.fail = False

    def __call__(self, bundle: dict) -> dict:
        self.calls.append(dict(bundle))
        if self.fail:
            raise AuthExpired(details="invalid_grant: Token has been expired or revoked.")
        refreshed = dict(bundle)
        refreshed["access_token"] = "access-refreshed"
        refreshed["expiry_date"] = bundle.get("expiry_date", 0) + 3_600_000 * 24
        return refreshed


class FakeEmailSender:
    def __init__(self):
        self.sent: list[dict] = []
        self.error: Exception | None = None

    def send(self, to, subject, text, html_body=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html_body})


class FakeSmsSender:
    def __init__(self):
        self.sent: list[dict] = []
        self.error: Exception | None = None

    def send(self, to, body):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "body": body})
        return f"SM{len(self.sent)}"


def upstream(message: str = "provider down") -> UpstreamError:
    return UpstreamError("Delivery failed", details=message)
