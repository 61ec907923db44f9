# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-classboard")
os.environ.setdefault("VISITOR_COOKIE_SECRET", "test-visitor-cookie-secret")
os.environ.setdefault("APP_ENV", "test")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from classboard.api.v1.dependencies import get_broadcaster_dep
from classboard.core.security import create_access_token
from classboard.db.session import Base
from classboard.db.session import get_db as app_get_session
from classboard.main import app as fastapi_app
from classboard.models import (
    Announcement,
    RegistrationStatus,
    User,
    UserRole,
)
from classboard.services.broadcaster import Broadcaster
from classboard.services.identity import IdentityResolver, ResolvedIdentity

TEST_DB_URL = "sqlite://"
TEST_IDENTITY_SECRET = "identity-test-secret"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release a SAVEPOINT; the outer transaction is rolled back below.
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Commits inside services only release savepoints; clear anything that leaked anyway.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def broadcaster(app: FastAPI) -> Iterator[Broadcaster]:
    """Give each test its own broadcaster so rooms never leak between tests."""
    instance = Broadcaster(queue_size=50)
    app.dependency_overrides[get_broadcaster_dep] = lambda: instance
    try:
        yield instance
    finally:
        app.dependency_overrides.pop(get_broadcaster_dep, None)


@pytest.fixture()
def client(app: FastAPI, broadcaster: Broadcaster) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def resolver() -> IdentityResolver:
    return IdentityResolver(TEST_IDENTITY_SECRET)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists users."""

    def _make_user(
        name: str,
        email: str,
        role: UserRole = UserRole.MEMBER,
        is_active: bool = True,
    ) -> User:
        user = User(
            name=name,
            email=email,
            role=role,
            registration_status=RegistrationStatus.APPROVED,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def admin_user(make_user: Callable[..., User]) -> User:
    return make_user("Ms. Rivera", "rivera@school.test", role=UserRole.ADMIN)


@pytest.fixture()
def member_user(make_user: Callable[..., User]) -> User:
    return make_user("Alex Student", "alex@school.test")


@pytest.fixture()
def other_member(make_user: Callable[..., User]) -> User:
    return make_user("Sam Student", "sam@school.test")


def _bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    return _bearer


@pytest.fixture()
def admin_headers(admin_user: User) -> dict[str, str]:
    return _bearer(admin_user)


@pytest.fixture()
def member_headers(member_user: User) -> dict[str, str]:
    return _bearer(member_user)


@pytest.fixture()
def make_announcement(
    db_session: Session, admin_user: User
) -> Callable[..., Announcement]:
    """Return a factory that persists announcements authored by the admin."""

    def _make_announcement(title: str = "Field trip on Friday", **fields: Any) -> Announcement:
        announcement = Announcement(
            title=title,
            content=fields.pop("content", "Bring a packed lunch."),
            author_id=admin_user.id,
            **fields,
        )
        db_session.add(announcement)
        db_session.flush()
        db_session.refresh(announcement)
        return announcement

    return _make_announcement


@pytest.fixture()
def announcement(make_announcement: Callable[..., Announcement]) -> Announcement:
    return make_announcement()


@pytest.fixture()
def make_identity(resolver: IdentityResolver) -> Callable[..., ResolvedIdentity]:
    return lambda **traits: _identity_for(resolver, **traits)


def _identity_for(
    resolver: IdentityResolver,
    *,
    user_id: int | None = None,
    visitor_id: str | None = None,
    ip_address: str = "203.0.113.7",
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64)",
) -> ResolvedIdentity:
    """Build a resolved identity the way the resolver would for these traits."""
    fingerprint_hash = resolver.fingerprint(ip_address, user_agent)
    traits = {
        "fingerprint_hash": fingerprint_hash,
        "ip_address": ip_address,
        "user_agent": user_agent,
    }
    if user_id is not None:
        return ResolvedIdentity.authenticated(user_id, visitor_id=visitor_id, **traits)
    if visitor_id is not None:
        return ResolvedIdentity.visitor(visitor_id, **traits)
    return ResolvedIdentity.anonymous(**traits)
