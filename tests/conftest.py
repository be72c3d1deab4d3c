"""pytest fixtures for attendance NFT tests.

Provides:
- postgres_container: Session-scoped testcontainer PostgreSQL instance (skips without Docker)
- utc_timezone: Autouse fixture enforcing UTC timezone
- session: Function-scoped database session with table cleanup
- uow_factory: Function-scoped UnitOfWork factory
- settings / admin_token: Test settings and a signed admin JWT
- In-memory pipeline doubles for orchestrator and route tests
"""

import asyncio
import os
import subprocess
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import AsyncGenerator, Optional

# Must be set before any Settings() is created (including attendance_nft.app import)
os.environ.setdefault("APP_ENV", "test")

import jwt
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from attendance_nft.core.config import Settings
from attendance_nft.core.database import setup_db_session
from attendance_nft.core.timezone import utcnow
from attendance_nft.models.event import Event
from attendance_nft.models.mint_record import MintRecord
from attendance_nft.services.attendee import Attendee, normalize_email
from attendance_nft.services.blockchain.minting_gateway import EventMetadata, MintResult
from attendance_nft.services.checkin.orchestrator import CheckInOrchestrator
from attendance_nft.services.exceptions import DuplicateMintError
from attendance_nft.services.metadata import TokenUriBuilder
from attendance_nft.uow import create_uow_factory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-bytes!!"
TEST_WEBHOOK_SECRET = "test_luma_webhook_secret"


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container with migrations applied.

    Container starts once per test session and is reused across all tests.
    Migrations are applied using subprocess to avoid asyncio event loop conflicts.
    Tests depending on it are skipped when Docker is not available.
    """
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer(
            image="postgres:17",
            username="test",
            password="test",
            dbname="test_attendance",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable (is Docker running?): {e}")

    try:
        db_url = container.get_connection_url(driver="psycopg")

        env = os.environ.copy()
        env["DATABASE_URL"] = db_url

        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )

        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def session(postgres_container) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session with table cleanup.

    Each test starts with empty tables.
    """
    db_url = postgres_container.get_connection_url(driver="psycopg")
    session_factory = setup_db_session(db_url, pool_size=10)

    async with session_factory() as session:
        yield session

        await session.rollback()

        await session.execute(text("DELETE FROM mint_records"))
        await session.execute(text("DELETE FROM wallet_records"))
        await session.execute(text("DELETE FROM events"))
        await session.commit()

    await session.bind.dispose()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session: AsyncSession):
    """Provide function-scoped UnitOfWork factory bound to the test database."""
    session_factory = async_sessionmaker(
        bind=session.bind,
        expire_on_commit=False,
    )
    return create_uow_factory(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(  # type: ignore[call-arg]
        APP_ENV="test",
        JWT_SECRET=TEST_JWT_SECRET,
        LUMA_WEBHOOK_SECRET="",
        CORS_ORIGINS="http://localhost:3000",
    )


def make_token(role: str = "admin", secret: str = TEST_JWT_SECRET, expires_in: int = 3600) -> str:
    claims = {
        "sub": "admin-1",
        "role": role,
        "exp": datetime.now(UTC) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def admin_token() -> str:
    return make_token()


def make_event(luma_event_id: str = "evt-summit", **overrides) -> Event:
    fields = {
        "luma_event_id": luma_event_id,
        "name": "Polkadot Summit",
        "date": "2026-05-01",
        "location": "Lisbon",
        "organizer": "Web3 Foundation",
    }
    fields.update(overrides)
    return Event(**fields)


# In-memory pipeline doubles


class FakeEventSource:
    def __init__(self, *events: Event):
        self.events = {e.luma_event_id: e for e in events}
        self.error: Optional[Exception] = None

    async def get_event_by_external_id(self, luma_event_id: str) -> Optional[Event]:
        if self.error:
            raise self.error
        return self.events.get(luma_event_id)


class FakeAttendeeSource:
    def __init__(self):
        self.attendees: dict[tuple[str, str], Attendee] = {}
        self.error: Optional[Exception] = None

    def add(self, event_id: str, attendee: Attendee) -> None:
        self.attendees[(event_id, attendee.id)] = attendee

    async def get_attendee(self, event_id: str, attendee_id: str) -> Optional[Attendee]:
        if self.error:
            raise self.error
        return self.attendees.get((event_id, attendee_id))


class FakeWalletSource:
    """One deterministic address per normalised email."""

    def __init__(self):
        self.wallets: dict[str, str] = {}
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def resolve_wallet(self, email: str) -> str:
        self.calls.append(email)
        if self.error:
            raise self.error
        email = normalize_email(email)
        if email not in self.wallets:
            self.wallets[email] = "0x" + f"{len(self.wallets) + 1:040x}"
        return self.wallets[email]


class FakeLedger:
    """Dict-backed ledger enforcing one record per (event, email)."""

    def __init__(self):
        self.records: dict[tuple, MintRecord] = {}
        self.find_error: Optional[Exception] = None
        self.record_error: Optional[Exception] = None
        self.record_calls = 0

    async def find_record(self, event_id, attendee_email: str) -> Optional[MintRecord]:
        if self.find_error:
            raise self.find_error
        return self.records.get((event_id, normalize_email(attendee_email)))

    async def record_mint(
        self,
        token_id: int,
        event_id,
        attendee_email: str,
        wallet_address: str,
        minted_at: datetime,
        tx_hash: Optional[str] = None,
    ) -> MintRecord:
        self.record_calls += 1
        if self.record_error:
            raise self.record_error
        key = (event_id, normalize_email(attendee_email))
        if key in self.records:
            raise DuplicateMintError(self.records[key])
        record = MintRecord(
            token_id=token_id,
            event_id=event_id,
            attendee_email=key[1],
            wallet_address=wallet_address,
            tx_hash=tx_hash,
            minted_at=minted_at,
        )
        self.records[key] = record
        return record


class FakeGateway:
    """Mints sequential token ids; yields to the loop so concurrent calls interleave."""

    def __init__(self, first_token_id: int = 1):
        self.next_token_id = first_token_id
        self.error: Optional[Exception] = None
        self.calls: list[tuple[str, EventMetadata]] = []

    async def mint(self, wallet_address: str, metadata: EventMetadata) -> MintResult:
        self.calls.append((wallet_address, metadata))
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        token_id = self.next_token_id
        self.next_token_id += 1
        return MintResult(token_id=token_id, tx_hash=f"0x{token_id:064x}", block_number=100)


class Pipeline:
    def __init__(self):
        self.event = make_event()
        self.events = FakeEventSource(self.event)
        self.attendees = FakeAttendeeSource()
        self.attendees.add(
            self.event.luma_event_id,
            Attendee(id="gst-alice", name="Alice", email="Alice@Example.com"),
        )
        self.wallets = FakeWalletSource()
        self.ledger = FakeLedger()
        self.gateway = FakeGateway()
        self.orchestrator = CheckInOrchestrator(
            events=self.events,
            attendees=self.attendees,
            wallets=self.wallets,
            ledger=self.ledger,
            gateway=self.gateway,
            token_uris=TokenUriBuilder(),
        )


@pytest.fixture
def pipeline() -> Pipeline:
    """Orchestrator wired to in-memory doubles with one event and one attendee."""
    return Pipeline()


@pytest.fixture
def check_in_time() -> str:
    return utcnow().isoformat() + "Z"
