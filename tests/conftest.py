"""Shared test fixtures."""
import os

# Settings are read at import time; point them at throwaway values first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_SSL"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENV"] = "test"
os.environ["CRON_SECRET"] = ""
os.environ["BUSINESS_TIMEZONE"] = "America/Sao_Paulo"
os.environ["SMTP_HOST"] = ""
os.environ["ADMIN_EMAIL"] = "owner@petcare.test"
os.environ.pop("BLOCK_DURATION_MINUTES", None)

from dataclasses import dataclass  # noqa: E402
from datetime import date, time  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import app.models  # noqa: E402,F401 - register tables
from app.core.db import get_session  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.main import app  # noqa: E402
from app.models.appointment import Appointment  # noqa: E402
from app.models.pet import Pet  # noqa: E402
from app.models.service import Service  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import email_service, notification_service  # noqa: E402
from app.services.email_service import EmailResult  # noqa: E402
from app.services.events import clear_subscribers  # noqa: E402


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str


@pytest.fixture
async def engine():
    """In-memory sqlite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine, monkeypatch):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    # Notifications open their own session outside the request
    monkeypatch.setattr(notification_service, "async_session_maker", maker)
    return maker


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
async def client(session_maker):
    """HTTP client against the app with the test database wired in."""

    async def override_get_session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of talking to SMTP."""
    sent: list[SentEmail] = []

    def fake_send(to_email: str, subject: str, html_body: str) -> EmailResult:
        sent.append(SentEmail(to_email, subject, html_body))
        return EmailResult(success=True, message_id=f"<{len(sent)}@petcare.test>")

    monkeypatch.setattr(email_service, "_send_email_sync", fake_send)
    return sent


@pytest.fixture(autouse=True)
def reset_subscribers():
    clear_subscribers()
    yield
    clear_subscribers()


@pytest.fixture
async def admin_user(session) -> User:
    user = User(email="admin@petcare.test", name="Ana Admin", role="admin")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def client_user(session) -> User:
    user = User(email="tutor@petcare.test", name="Bruno Tutor", phone="+55 11 99999-0000")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def client_headers(client_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(client_user.id)}"}


@pytest.fixture
async def pets(session, client_user) -> list[Pet]:
    rex = Pet(user_id=client_user.id, name="Rex", breed="Poodle", size="small")
    mia = Pet(user_id=client_user.id, name="Mia", species="gato")
    session.add_all([rex, mia])
    await session.commit()
    return [rex, mia]


@pytest.fixture
async def services(session) -> list[Service]:
    bath = Service(name="Banho", duration_min=60, base_price=50.0)
    grooming = Service(name="Tosa", duration_min=60, base_price=80.0)
    session.add_all([bath, grooming])
    await session.commit()
    return [bath, grooming]


@pytest.fixture
def make_appointment(session, client_user, pets, services):
    """Insert an appointment row directly, bypassing booking rules."""

    async def _make(
        d: date,
        t: time,
        status: str = "pending",
        pet: Pet | None = None,
        service: Service | None = None,
        user: User | None = None,
    ) -> Appointment:
        appointment = Appointment(
            user_id=(user or client_user).id,
            pet_id=(pet or pets[0]).id,
            service_id=(service or services[0]).id,
            scheduled_date=d,
            scheduled_time=t,
            status=status,
        )
        session.add(appointment)
        await session.commit()
        return appointment

    return _make
