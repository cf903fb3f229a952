import os
from datetime import timedelta
from typing import Any, Callable, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Переменные окружения — до импорта settings и приложения.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "testsecretkey"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""

import ctf_teams.models  # noqa: F401  регистрирует все модели в Base.metadata
from ctf_teams.models.base import Base
from ctf_teams.core.settings import settings as app_settings
from ctf_teams.core import security
from ctf_teams.main import app
from ctf_teams.dependencies import get_db, get_notifier
from ctf_teams.crud.event import create_event, register_user
from ctf_teams.crud.user import create_user
from ctf_teams.crud.team import create_team
from ctf_teams.models.event import Event
from ctf_teams.models.team import Team
from ctf_teams.models.user import User
from ctf_teams.services.notifications import NotificationDispatcher


class RecordingNotifier(NotificationDispatcher):
    """Диспетчер без сети: запоминает отправленные уведомления."""

    def __init__(self):
        super().__init__(webhook_url=None)
        self.sent: List[tuple] = []

    def notify(self, kind, recipient_ids, payload=None) -> bool:
        self.sent.append((kind, sorted({r for r in recipient_ids if r is not None}), payload or {}))
        return True

    def kinds(self) -> List[str]:
        return [kind for kind, _, _ in self.sent]


@pytest.fixture(scope="function")
def engine():
    """
    Отдельная in-memory БД на каждый тест: операции сами делают commit/rollback,
    поэтому внешняя транзакция-обёртка здесь не подходит.
    """
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db: Session, notifier: RecordingNotifier) -> Generator[TestClient, None, None]:
    """
    TestClient с подменённой сессией БД и диспетчером уведомлений.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_user(db: Session) -> Callable[..., User]:
    def _make(username: str, is_superuser: bool = False, is_active: bool = True) -> User:
        return create_user(db, {
            "username": username,
            "email": f"{username}@example.com",
            "full_name": username.title(),
            "is_superuser": is_superuser,
            "is_active": is_active,
        })
    return _make


@pytest.fixture(scope="function")
def event(db: Session) -> Event:
    return create_event(db, {"event_code": "ctf-2026", "name": "Spring CTF"})


@pytest.fixture(scope="function")
def other_event(db: Session) -> Event:
    return create_event(db, {"event_code": "ctf-2026-fall", "name": "Fall CTF"})


@pytest.fixture(scope="function")
def admin(make_user) -> User:
    return make_user("admin", is_superuser=True)


@pytest.fixture(scope="function")
def players(db: Session, make_user, event: Event) -> dict:
    """
    Зарегистрированные на событие игроки: leader, alice, bob, carol, dave, erin.
    """
    result = {}
    for name in ("leader", "alice", "bob", "carol", "dave", "erin"):
        user = make_user(name)
        register_user(db, event.id, user.id)
        result[name] = user
    return result


@pytest.fixture(scope="function")
def outsider(make_user) -> User:
    """Пользователь без регистрации на событие."""
    return make_user("outsider")


@pytest.fixture(scope="function")
def make_team(db: Session, event: Event, players: dict) -> Callable[..., Team]:
    def _make(
        name: str = "Null Pointers",
        captain: Optional[User] = None,
        members: Optional[List[User]] = None,
        max_size: int = 4,
        **extra: Any,
    ) -> Team:
        captain = captain or players["leader"]
        data = {
            "name": name,
            "description": "",
            "min_size": 1,
            "max_size": max_size,
            "event_id": event.id,
            "member_user_ids": [m.id for m in members or []],
        }
        data.update(extra)
        return create_team(db, data, captain)
    return _make


def token_headers(user: User) -> dict:
    token, _ = security.create_access_token(
        data={"sub": str(user.id)},
        expires_delta=timedelta(minutes=app_settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def auth():
    """auth(user) -> заголовки с bearer-токеном этого пользователя."""
    return token_headers
