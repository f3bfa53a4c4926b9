from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from taskx.database import get_db
from taskx.deps import get_calendar_connector, get_reminder_dispatcher
from taskx.main import app
from taskx.models import NotificationType, Task, User
from taskx.routers.auth import create_access_token, get_password_hash
from taskx.services.calendar import CalendarConnector
from taskx.services.reminders import ReminderDispatcher

from .fakes import FakeCalendarService, FakeEmailSender, FakeFlowFactory, FakeRefresher, FakeSmsSender

# Fixed "now" for every test, naive UTC like the stored deadlines.
NOW = datetime(2026, 10, 19, 12, 0, 0)
NOW_MS = int(NOW.replace(tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def calendar_service() -> FakeCalendarService:
    return FakeCalendarService()


@pytest.fixture()
def flow_factory() -> FakeFlowFactory:
    return FakeFlowFactory()


@pytest.fixture()
def refresher() -> FakeRefresher:
    return FakeRefresher()


@pytest.fixture()
def connector(calendar_service, flow_factory, refresher) -> CalendarConnector:
    return CalendarConnector(
        "client-id",
        "client-secret",
        "http://testserver/api/integrate",
        service_factory=lambda creds: calendar_service,
        flow_factory=flow_factory,
        refresher=refresher,
        clock=lambda: NOW_MS / 1000,
    )


@pytest.fixture()
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture()
def sms_sender() -> FakeSmsSender:
    return FakeSmsSender()


@pytest.fixture()
def dispatcher(db_session, email_sender, sms_sender) -> ReminderDispatcher:
    return ReminderDispatcher(db_session, email_sender, sms_sender, clock=lambda: NOW)


@pytest.fixture()
def client(db_session, connector, dispatcher):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_calendar_connector] = lambda: connector
    app.dependency_overrides[get_reminder_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db_session, email="ada@example.com", **fields) -> User:
    fields.setdefault("phone_number", "+15551234567")
    fields.setdefault("notification_type", NotificationType.BOTH)
    user = User(email=email, hashed_password=get_password_hash("secret"), **fields)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def make_task(db_session, user_id: str, **fields) -> Task:
    fields.setdefault("text", "Send the quarterly report")
    task = Task(user_id=user_id, **fields)
    db_session.add(task)
    db_session.commit()
    db_session.refresh(task)
    return task


def token_bundle(expiry_ms: int = NOW_MS + 3_600_000) -> dict:
    return {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "scope": "https://www.googleapis.com/auth/calendar",
        "token_type": "Bearer",
        "expiry_date": expiry_ms,
    }


@pytest.fixture()
def user(db_session) -> User:
    return make_user(db_session)


@pytest.fixture()
def connected_user(db_session, user) -> User:
    user.google_tokens = token_bundle()
    user.google_calendar_id = "cal-123"
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


def in_minutes(minutes: float) -> datetime:
    return NOW + timedelta(minutes=minutes)
