"""
Package expiry classification and the derived maintenance writes.

Both functions are pure. The report decides which bucket a member belongs to;
the maintenance plan lists the store updates a caller may apply afterwards
through ``DocumentRepository.apply_maintenance``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from .classifier import is_customer, membership_type_label, resolve_member_name
from .dates import days_between_ceil, localize_now, start_of_day
from .models import CreditReset, MaintenancePlan, PackageExpirationReport, PackageMemberInfo, Unfreeze, UserRecord

INACTIVE_STATUSES = frozenset({"deleted", "frozen", "cancelled", "permanently_deleted", "inactive", "rejected"})
EXPIRING_SOON_DAYS = 7

ACTION_RESET_CREDITS = "Reset credits to zero"
ACTION_EXPIRES_TODAY = "Expires today"
ACTION_ALREADY_PROCESSED = "Already processed"


def is_unlimited(user: UserRecord) -> bool:
    return (user.membership_type or "").lower() == "unlimited"


def is_frozen(user: UserRecord) -> bool:
    return user.membership_status == "frozen" or user.status == "frozen"


def is_package_eligible(user: UserRecord) -> bool:
    """Customer (or unlabeled) members on a credit package that is still in use."""

    if not is_customer(user):
        return False
    if is_unlimited(user):
        return False
    if user.membership_status in INACTIVE_STATUSES:
        return False
    return user.is_active is not False


def _member_info(user: UserRecord, action: str, **days: Optional[int]) -> PackageMemberInfo:
    return PackageMemberInfo(
        id=user.id,
        name=resolve_member_name(user.document),
        email=user.email or "",
        phone=user.phone or "",
        remaining_classes=user.remaining_classes,
        package_expiry_date=user.package_expiry,
        membership_type=membership_type_label(user.membership_type),
        join_date=user.join_date or user.created_at,
        action_required=action,
        **days,
    )


def expiring_action(days_left: int) -> str:
    if days_left == 0:
        return ACTION_EXPIRES_TODAY
    return f"Expires in {days_left} days"


def package_expiration_report(users: Sequence[UserRecord], now: datetime) -> PackageExpirationReport:
    """
    Sort eligible members into the three package buckets.

    A member with the same id in both collections is classified once; the
    first occurrence wins.
    """

    reference = localize_now(now)
    expired_with_credits: List[PackageMemberInfo] = []
    expiring_soon: List[PackageMemberInfo] = []
    recently_expired: List[PackageMemberInfo] = []
    seen: Set[str] = set()

    for user in users:
        if user.id in seen:
            continue
        seen.add(user.id)

        if not is_package_eligible(user) or user.package_expiry is None:
            continue

        difference = days_between_ceil(user.package_expiry, reference)
        credits = user.remaining_classes

        if difference < 0 and credits > 0:
            expired_with_credits.append(_member_info(user, ACTION_RESET_CREDITS, days_expired=abs(difference)))
        elif 0 <= difference <= EXPIRING_SOON_DAYS and credits > 0:
            expiring_soon.append(_member_info(user, expiring_action(difference), days_until_expiry=difference))
        elif difference < 0 and credits == 0:
            recently_expired.append(_member_info(user, ACTION_ALREADY_PROCESSED, days_expired=abs(difference)))

    return PackageExpirationReport(
        expired_with_credits=expired_with_credits,
        expiring_soon=expiring_soon,
        recently_expired=recently_expired,
    )


def plan_package_maintenance(users: Sequence[UserRecord], now: datetime) -> MaintenancePlan:
    """
    Store updates implied by the member set at ``now``.

    Credits are reset for expired non-unlimited packages that still hold
    credits; freezes are lifted once the freeze end day is behind today.
    """

    reference = localize_now(now)
    today = start_of_day(reference)
    credit_resets: List[CreditReset] = []
    unfreezes: List[Unfreeze] = []
    seen: Set[str] = set()

    for user in users:
        if user.id in seen:
            continue
        seen.add(user.id)

        expiry = user.package_expiry
        if not is_unlimited(user) and user.remaining_classes > 0 and expiry is not None and expiry < reference:
            credit_resets.append(
                CreditReset(
                    member_id=user.id,
                    source=user.source,
                    previous_credits=user.remaining_classes,
                    package_expiry_date=expiry,
                )
            )

        freeze_end = user.freeze_end_date
        if is_frozen(user) and freeze_end is not None and start_of_day(freeze_end.astimezone(today.tzinfo)) < today:
            unfreezes.append(Unfreeze(member_id=user.id, source=user.source, freeze_end_date=freeze_end))

    return MaintenancePlan(credit_resets=tuple(credit_resets), unfreezes=tuple(unfreezes))


def credit_reset_fields(now: datetime) -> Dict[str, Any]:
    stamp = localize_now(now).isoformat()
    return {
        "remainingClasses": 0,
        "lessonCredits": 0,
        "packageExpiredAt": stamp,
        "lastPackageResetReason": "Package expired",
        "updatedAt": stamp,
    }


def unfreeze_fields(now: datetime) -> Dict[str, Any]:
    stamp = localize_now(now).isoformat()
    return {
        "membershipStatus": "active",
        "status": "approved",
        "unfreezeDate": stamp,
        "freezeStartDate": None,
        "freezeEndDate": None,
        "freezeReason": None,
        "updatedAt": stamp,
    }
