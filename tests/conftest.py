from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from backend.studio_reports.ingest import build_snapshot

STUDIO_TZ = ZoneInfo("Europe/Istanbul")

# Wednesday; the Monday week starts on the 13th, the Sunday week on the 12th.
REFERENCE_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=STUDIO_TZ)


@pytest.fixture
def tz() -> ZoneInfo:
    return STUDIO_TZ


@pytest.fixture
def now() -> datetime:
    return REFERENCE_NOW


@pytest.fixture
def make_snapshot(tz):
    """Build a snapshot from raw store documents, as the repository would."""

    def _make(**collections):
        return build_snapshot(tz, **collections)

    return _make


@pytest.fixture
def studio_documents():
    """A small studio with lessons, money, staff and members around the reference date."""

    return {
        "lessons": [
            {
                "id": "l-today",
                "scheduledDate": "2024-05-15T09:30:00",
                "startTime": "09:15",
                "lessonType": "Reformer",
                "trainerId": "t-ayse",
                "participants": ["m-1", "m-2", "m-3"],
                "capacity": 6,
                "createdAt": "2024-05-14T08:00:00",
            },
            {
                "id": "l-recurring",
                "dayOfWeek": "Wednesday",
                "startTime": "18:00",
                "title": "Evening Mat",
                "trainerName": "Mehmet",
                "participants": ["m-4"],
            },
            {
                "id": "l-monday",
                "scheduledDate": "2024-05-13T10:00:00",
                "startTime": "10:00",
                "name": "Stretch",
                "trainerName": "ayse@studio.test",
                "participants": ["m-1"],
            },
            {
                "id": "l-cancelled",
                "scheduledDate": "2024-05-15T11:00:00",
                "startTime": "11:00",
                "trainerId": "t-ayse",
                "participants": ["m-5", "m-6"],
                "status": "cancelled",
            },
        ],
        "transactions": [
            {"id": "tx-1", "type": "income", "amount": "500", "category": "Membership", "date": "2024-05-02"},
            {"id": "tx-2", "type": "expense", "amount": 200, "category": "Rent", "date": "2024-05-03"},
            {"id": "tx-3", "type": "income", "amount": 90, "date": "2024-04-20", "createdAt": "2024-04-20"},
        ],
        "users": [
            {
                "id": "t-ayse",
                "role": "trainer",
                "firstName": "Ayse",
                "lastName": "Kaya",
                "email": "ayse@studio.test",
            },
            {"id": "t-mehmet", "role": "instructor", "name": "Mehmet", "firstName": "Mehmet"},
            {
                "id": "m-1",
                "role": "customer",
                "firstName": "Deniz",
                "lastName": "Acar",
                "remainingClasses": 3,
                "membershipType": "basic",
                "packageExpiryDate": "2024-05-05T12:00:00",
                "createdAt": "2024-05-13T09:00:00",
                "status": "approved",
            },
        ],
        "members": [
            {
                "id": "m-2",
                "role": "customer",
                "displayName": "Ece Yilmaz",
                "remainingClasses": 1,
                "membershipType": "premium",
                "packageExpiryDate": "2024-05-15T18:00:00",
                "joinDate": "2024-01-10",
            },
        ],
    }
