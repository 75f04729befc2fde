"""
CSV rendering of the package expiration buckets.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .models import PackageExpirationReport, PackageMemberInfo

BOM = "\ufeff"

CSV_HEADERS = (
    "Bucket",
    "Name",
    "Email",
    "Phone",
    "Remaining classes",
    "Package expiry",
    "Membership type",
    "Days expired",
    "Days until expiry",
    "Action required",
)

BUCKET_LABELS = (
    ("expired_with_credits", "Expired with credits"),
    ("expiring_soon", "Expiring soon"),
    ("recently_expired", "Recently expired"),
)


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def _optional(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def _row(bucket: str, member: PackageMemberInfo) -> List[str]:
    return [
        bucket,
        member.name,
        member.email,
        member.phone,
        str(member.remaining_classes),
        _date(member.package_expiry_date),
        member.membership_type,
        _optional(member.days_expired),
        _optional(member.days_until_expiry),
        member.action_required,
    ]


def package_rows(report: PackageExpirationReport) -> Iterable[List[str]]:
    for attribute, label in BUCKET_LABELS:
        members: Sequence[PackageMemberInfo] = getattr(report, attribute)
        for member in members:
            yield _row(label, member)


def package_report_csv(report: PackageExpirationReport) -> str:
    """Spreadsheet-friendly CSV: UTF-8 BOM prefix, every field quoted."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    writer.writerows(package_rows(report))
    return BOM + buffer.getvalue()
