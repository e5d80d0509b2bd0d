import asyncio
from collections.abc import AsyncGenerator, Callable
from copy import deepcopy
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

# Load environment variables from .env file
load_dotenv()

from therapy_booking.core.security import create_caller_token
from therapy_booking.dependencies import get_appointment_service
from therapy_booking.domain.lifecycle import NON_TERMINAL_STATUSES
from therapy_booking.main import app
from therapy_booking.schemas.appointments import AppointmentFilters, AppointmentStatus
from therapy_booking.schemas.identity import CallerIdentity, CallerRole
from therapy_booking.schemas.providers import ProviderProfile
from therapy_booking.services.appointment_service import AppointmentService

# Fixed "now" for every scheduling test: Monday 2026-03-02 09:00 UTC
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

_ACTIVE = {status.value for status in NON_TERMINAL_STATUSES}
_UPCOMING = {AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value}


def at(hour: int, minute: int = 0, days: int = 1) -> datetime:
    """A time ``days`` after NOW's date at ``hour:minute`` UTC."""
    return NOW.replace(hour=hour, minute=minute) + timedelta(days=days)


class ScheduleStore:
    """Committed appointment rows plus per-provider schedule locks."""

    def __init__(self) -> None:
        self.rows: dict[UUID, dict[str, Any]] = {}
        self.locks: dict[UUID, asyncio.Lock] = {}

    def lock_for(self, provider_id: UUID) -> asyncio.Lock:
        return self.locks.setdefault(provider_id, asyncio.Lock())


class InMemoryAppointmentRepository:
    """
    Repository double with the same contract as AppointmentRepository.

    Writes are staged until ``commit``; the provider lock is held until the
    transaction ends, like ``pg_advisory_xact_lock``.
    """

    def __init__(self, store: ScheduleStore) -> None:
        self.store = store
        self._staged: dict[UUID, dict[str, Any]] = {}
        self._held: list[asyncio.Lock] = []
        self.commits = 0
        self.rollbacks = 0

    def _visible(self) -> dict[UUID, dict[str, Any]]:
        return {**self.store.rows, **self._staged}

    def _end_transaction(self) -> None:
        self._staged = {}
        while self._held:
            self._held.pop().release()

    async def commit(self) -> None:
        self.store.rows.update(deepcopy(self._staged))
        self.commits += 1
        self._end_transaction()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self._end_transaction()

    async def get(self, appointment_id: UUID) -> dict[str, Any] | None:
        row = self._visible().get(appointment_id)
        return deepcopy(row) if row else None

    async def lock_provider_schedule(self, provider_id: UUID) -> None:
        lock = self.store.lock_for(provider_id)
        await lock.acquire()
        self._held.append(lock)

    async def list_active_overlapping(
        self, provider_id: UUID, start_time: datetime, end_time: datetime
    ) -> list[dict[str, Any]]:
        # Yield so concurrent requests interleave between read and insert
        await asyncio.sleep(0)
        rows = [
            deepcopy(row)
            for row in self._visible().values()
            if row["provider_id"] == provider_id
            and row["status"] in _ACTIVE
            and row["start_time"] < end_time
            and row["end_time"] > start_time
        ]
        return sorted(rows, key=lambda row: row["start_time"])

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        row = {
            "cancelled_at": None,
            "cancellation_reason": None,
            "reminder_sent_at": None,
            **values,
        }
        self._staged[row["id"]] = row
        return deepcopy(row)

    async def update_status(
        self, appointment_id: UUID, expected_status: AppointmentStatus, values: dict[str, Any]
    ) -> dict[str, Any] | None:
        row = self._visible().get(appointment_id)
        if row is None or row["status"] != expected_status.value:
            return None
        updated = {**row, **values}
        self._staged[appointment_id] = updated
        return deepcopy(updated)

    async def update_payment_status(
        self, appointment_id: UUID, payment_status: str, updated_at: datetime
    ) -> dict[str, Any] | None:
        row = self._visible().get(appointment_id)
        if row is None:
            return None
        updated = {**row, "payment_status": payment_status, "updated_at": updated_at}
        self._staged[appointment_id] = updated
        return deepcopy(updated)

    def _scoped(self, client_id: UUID | None, provider_id: UUID | None) -> list[dict[str, Any]]:
        return [
            row
            for row in self._visible().values()
            if (client_id is None or row["client_id"] == client_id)
            and (provider_id is None or row["provider_id"] == provider_id)
        ]

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        client_id: UUID | None = None,
        provider_id: UUID | None = None,
    ) -> tuple[int, list[dict[str, Any]]]:
        rows = self._scoped(client_id, provider_id)
        if filters.status:
            rows = [r for r in rows if r["status"] in {s.value for s in filters.status}]
        if filters.service_type:
            rows = [
                r for r in rows if r["service_type"] in {s.value for s in filters.service_type}
            ]
        if filters.from_date:
            rows = [r for r in rows if r["start_time"] >= filters.from_date]
        if filters.to_date:
            rows = [r for r in rows if r["start_time"] <= filters.to_date]
        rows.sort(key=lambda r: r["start_time"], reverse=True)
        offset = (filters.page - 1) * filters.page_size
        return len(rows), deepcopy(rows[offset : offset + filters.page_size])

    async def list_upcoming(
        self,
        now: datetime,
        limit: int,
        client_id: UUID | None = None,
        provider_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            r
            for r in self._scoped(client_id, provider_id)
            if r["start_time"] >= now and r["status"] in _UPCOMING
        ]
        rows.sort(key=lambda r: r["start_time"])
        return deepcopy(rows[:limit])

    async def claim_due_reminders(self, now: datetime, until: datetime) -> list[dict[str, Any]]:
        claimed = []
        for row in self._visible().values():
            if (
                row["status"] in _UPCOMING
                and now < row["start_time"] <= until
                and row["reminder_sent_at"] is None
            ):
                updated = {**row, "reminder_sent_at": now}
                self._staged[row["id"]] = updated
                claimed.append(deepcopy(updated))
        return claimed


class InMemoryProviderDirectory:
    """Provider directory double keyed by provider id."""

    def __init__(self) -> None:
        self.profiles: dict[UUID, ProviderProfile] = {}

    def add(
        self,
        hourly_rate: Decimal | int = 120,
        license_verified: bool = True,
        background_check_passed: bool = True,
    ) -> ProviderProfile:
        profile = ProviderProfile(
            provider_id=uuid4(),
            user_id=uuid4(),
            display_name="Dr. Jordan Lee",
            hourly_rate=Decimal(hourly_rate),
            license_verified=license_verified,
            background_check_passed=background_check_passed,
        )
        self.profiles[profile.provider_id] = profile
        return profile

    def set_rate(self, provider_id: UUID, hourly_rate: Decimal | int) -> None:
        self.profiles[provider_id] = self.profiles[provider_id].model_copy(
            update={"hourly_rate": Decimal(hourly_rate)}
        )

    async def get_provider(self, provider_id: UUID) -> ProviderProfile | None:
        return self.profiles.get(provider_id)

    async def get_provider_id_for_user(self, user_id: UUID) -> UUID | None:
        for profile in self.profiles.values():
            if profile.user_id == user_id:
                return profile.provider_id
        return None


class RecordingNotifier:
    """Notifier double that keeps enqueued events."""

    def __init__(self) -> None:
        self.events: list = []
        self.fail = False

    def enqueue(self, event) -> None:
        if self.fail:
            raise ConnectionError("notification channel down")
        self.events.append(event)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def slot() -> Callable[..., datetime]:
    """``slot(hour, minute=0, days=1)`` relative to the fixed clock."""
    return at


@pytest.fixture
def store() -> ScheduleStore:
    return ScheduleStore()


@pytest.fixture
def directory() -> InMemoryProviderDirectory:
    return InMemoryProviderDirectory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_service(
    store: ScheduleStore,
    directory: InMemoryProviderDirectory,
    notifier: RecordingNotifier,
) -> Callable[..., AppointmentService]:
    """Factory for services sharing one store, each with its own 'session'."""

    def factory(clock: Callable[[], datetime] = lambda: NOW) -> AppointmentService:
        return AppointmentService(
            repository=InMemoryAppointmentRepository(store),
            providers=directory,
            notifier=notifier,
            clock=clock,
            booking_horizon=timedelta(days=90),
        )

    return factory


@pytest.fixture
def service(make_service) -> AppointmentService:
    return make_service()


@pytest.fixture
def provider(directory: InMemoryProviderDirectory) -> ProviderProfile:
    """Verified provider charging 120 per hour."""
    return directory.add(hourly_rate=120)


@pytest.fixture
def client_caller() -> CallerIdentity:
    return CallerIdentity(caller_id=uuid4(), role=CallerRole.CLIENT, email_verified=True)


@pytest.fixture
def other_client() -> CallerIdentity:
    return CallerIdentity(caller_id=uuid4(), role=CallerRole.CLIENT, email_verified=True)


@pytest.fixture
def admin_caller() -> CallerIdentity:
    return CallerIdentity(caller_id=uuid4(), role=CallerRole.ADMIN, email_verified=True)


@pytest.fixture
def provider_caller(provider: ProviderProfile) -> CallerIdentity:
    return CallerIdentity(caller_id=provider.user_id, role=CallerRole.PROVIDER, email_verified=True)


@pytest.fixture
def booking_payload(provider: ProviderProfile) -> Callable[..., dict[str, Any]]:
    """Build a booking request body for the default provider."""

    def build(start: datetime, end: datetime, **overrides: Any) -> dict[str, Any]:
        payload = {
            "provider_id": str(provider.provider_id),
            "service_type": "speech_therapy",
            "title": "Initial assessment",
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "is_remote": True,
            "location": "Virtual session",
        }
        payload.update(overrides)
        return payload

    return build


@pytest_asyncio.fixture
async def client(service: AppointmentService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose appointment service runs on the in-memory doubles."""
    app.dependency_overrides[get_appointment_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers_for(caller: CallerIdentity) -> dict[str, str]:
    token = create_caller_token(caller.caller_id, caller.role, caller.email_verified)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[CallerIdentity], dict[str, str]]:
    return auth_headers_for


@pytest.fixture
def client_headers(client_caller: CallerIdentity) -> dict[str, str]:
    return auth_headers_for(client_caller)
