from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from .classifier import EQUIPMENT_NAME_CHAIN, clean_text, first_match, first_present
from .dates import WEEKDAY_NAMES, parse_date, weekday_index_from_sunday_based
from .models import (
    BookingRecord,
    EquipmentRecord,
    LessonRecord,
    StudioSnapshot,
    TransactionRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

LESSON_DATE_FIELDS = ("scheduledDate", "date")
LESSON_TRAINER_ID_FIELDS = ("trainerId", "instructor", "teacherId")
LESSON_TRAINER_NAME_FIELDS = ("trainerName", "instructor", "teacher")
BOOKING_TRAINER_ID_FIELDS = ("trainerId", "instructorId")
BOOKING_TRAINER_NAME_FIELDS = ("trainerName", "instructorName")
BOOKING_DATE_FIELDS = ("date", "scheduledDate", "createdAt")

_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_amount(value: Any) -> float:
    """
    Read a money amount the way the console stores it: numbers, or strings
    with a leading decimal (``"500"``, ``"500 TL"``). Anything else is 0.
    """

    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return 0.0
        number = float(match.group(0))
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def parse_signed_count(value: Any) -> int:
    """Whole number with its sign kept; unreadable values are 0."""

    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def parse_count(value: Any) -> int:
    return max(parse_signed_count(value), 0)


def _optional_count(value: Any) -> Optional[int]:
    count = parse_count(value)
    return count or None


def _ids(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    return str(value)


def _document_id(document: Mapping[str, Any]) -> str:
    return str(document.get("id") or "")


def _day_of_week(value: Any) -> Optional[str]:
    # Numeric days come from clients using the Sunday=0 convention.
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value <= 6:
            return WEEKDAY_NAMES[weekday_index_from_sunday_based(value)]
        return None
    day_of_week = clean_text(value)
    return day_of_week.lower() if day_of_week else None


def lesson_from_document(document: Mapping[str, Any], tz: ZoneInfo) -> LessonRecord:
    return LessonRecord(
        id=_document_id(document),
        scheduled_date=parse_date(first_present(document, LESSON_DATE_FIELDS), tz),
        day_of_week=_day_of_week(document.get("dayOfWeek")),
        start_time=document.get("startTime"),
        trainer_id=_text(first_present(document, LESSON_TRAINER_ID_FIELDS)),
        trainer_name=_text(first_present(document, LESSON_TRAINER_NAME_FIELDS)),
        participants=_ids(document.get("participants")),
        attendees=_ids(document.get("attendees")),
        attendee_count=_optional_count(document.get("attendeeCount")),
        capacity=_optional_count(document.get("capacity")) or _optional_count(document.get("maxParticipants")),
        status=_text(document.get("status")),
        created_at=parse_date(document.get("createdAt"), tz),
        document=document,
    )


def transaction_from_document(document: Mapping[str, Any], tz: ZoneInfo) -> TransactionRecord:
    kind = _text(document.get("type"))
    if kind == "outcome":
        kind = "expense"
    return TransactionRecord(
        id=_document_id(document),
        type=kind,
        amount=parse_amount(document.get("amount")),
        category=clean_text(document.get("category")) or "Other",
        date=parse_date(first_present(document, ("date", "createdAt")), tz),
        status=_text(document.get("status")),
        member_id=_text(document.get("memberId")),
        member_name=_text(document.get("memberName")),
        created_at=parse_date(document.get("createdAt"), tz),
        document=document,
    )


def _package_expiry(document: Mapping[str, Any]) -> Any:
    if document.get("packageExpiryDate"):
        return document.get("packageExpiryDate")
    info = document.get("packageInfo")
    if isinstance(info, Mapping):
        return info.get("expiryDate")
    return None


def user_from_document(document: Mapping[str, Any], tz: ZoneInfo, source: str = "users") -> UserRecord:
    is_active = document.get("isActive")
    status = _text(document.get("status"))
    return UserRecord(
        id=_document_id(document),
        role=clean_text(document.get("role")),
        status=status,
        membership_status=_text(document.get("membershipStatus")) or status,
        membership_type=clean_text(document.get("membershipType")),
        remaining_classes=parse_signed_count(first_present(document, ("remainingClasses", "lessonCredits"))),
        package_expiry=parse_date(_package_expiry(document), tz),
        is_active=is_active if isinstance(is_active, bool) else None,
        first_name=clean_text(document.get("firstName")),
        last_name=clean_text(document.get("lastName")),
        name=clean_text(document.get("name")),
        email=clean_text(document.get("email")),
        phone=clean_text(document.get("phone")),
        created_at=parse_date(document.get("createdAt"), tz),
        join_date=parse_date(document.get("joinDate"), tz),
        freeze_end_date=parse_date(document.get("freezeEndDate"), tz),
        source=source,
        document=document,
    )


def booking_from_document(document: Mapping[str, Any], tz: ZoneInfo) -> BookingRecord:
    return BookingRecord(
        id=_document_id(document),
        trainer_id=_text(first_present(document, BOOKING_TRAINER_ID_FIELDS)),
        trainer_name=_text(first_present(document, BOOKING_TRAINER_NAME_FIELDS)),
        user_id=_text(document.get("userId")),
        date=parse_date(first_present(document, BOOKING_DATE_FIELDS), tz),
        status=_text(document.get("status")),
        member_name=clean_text(document.get("memberName")) or clean_text(document.get("userName")),
        lesson_name=clean_text(document.get("lessonName")) or clean_text(document.get("lessonTitle")),
        created_at=parse_date(document.get("createdAt"), tz),
        document=document,
    )


def equipment_from_document(document: Mapping[str, Any], tz: ZoneInfo) -> EquipmentRecord:
    return EquipmentRecord(
        id=_document_id(document),
        name=first_match(document, EQUIPMENT_NAME_CHAIN, "New equipment"),
        created_at=parse_date(document.get("createdAt"), tz),
        document=document,
    )


def merge_member_documents(
    members: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]],
) -> List[Tuple[Mapping[str, Any], str]]:
    """
    Combine the ``members`` and ``users`` collections.

    Members come first; a user document whose id was already seen is skipped.
    """

    merged: List[Tuple[Mapping[str, Any], str]] = []
    seen = set()
    for source, documents in (("members", members), ("users", users)):
        for document in documents:
            doc_id = _document_id(document)
            if doc_id and doc_id in seen:
                logger.debug("Skipping duplicate member document %s from %s", doc_id, source)
                continue
            seen.add(doc_id)
            merged.append((document, source))
    return merged


def build_snapshot(
    tz: ZoneInfo,
    lessons: Sequence[Mapping[str, Any]] = (),
    transactions: Sequence[Mapping[str, Any]] = (),
    users: Sequence[Mapping[str, Any]] = (),
    members: Sequence[Mapping[str, Any]] = (),
    bookings: Sequence[Mapping[str, Any]] = (),
    equipment: Sequence[Mapping[str, Any]] = (),
) -> StudioSnapshot:
    return StudioSnapshot(
        lessons=tuple(lesson_from_document(document, tz) for document in lessons),
        transactions=tuple(transaction_from_document(document, tz) for document in transactions),
        users=tuple(
            user_from_document(document, tz, source=source)
            for document, source in merge_member_documents(members, users)
        ),
        bookings=tuple(booking_from_document(document, tz) for document in bookings),
        equipment=tuple(equipment_from_document(document, tz) for document in equipment),
    )
