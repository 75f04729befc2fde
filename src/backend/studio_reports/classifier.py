"""
Field resolution for heterogeneous store documents.

Several schema versions live side by side in the same collections, so labels
are resolved by walking an ordered tuple of extractors and keeping the first
non-empty result. The order decides which value wins when more than one field
is populated; do not reorder.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from .models import UserRecord

Extractor = Callable[[Mapping[str, Any]], Optional[str]]

UNSPECIFIED_TRAINER = "Unspecified trainer"
UNKNOWN_TRAINER = "Unknown trainer"
DEFAULT_LESSON_TITLE = "Lesson"
UNNAMED_MEMBER = "Unnamed"
UNLABELED_ROLE = "unlabeled"
CUSTOMER_ROLE = "customer"
STAFF_ROLES = frozenset({"instructor", "admin", "trainer"})

MEMBERSHIP_TYPE_LABELS = {
    "basic": "Basic",
    "premium": "Premium",
    "unlimited": "Unlimited",
}


def clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def field(name: str) -> Extractor:
    def _extract(document: Mapping[str, Any]) -> Optional[str]:
        return clean_text(document.get(name))

    _extract.__name__ = f"field_{name}"
    return _extract


def fields(names: Iterable[str]) -> tuple[Extractor, ...]:
    return tuple(field(name) for name in names)


def first_match(document: Mapping[str, Any], extractors: Sequence[Extractor], default: str) -> str:
    for extractor in extractors:
        value = extractor(document)
        if value:
            return value
    return default


def first_present(document: Mapping[str, Any], names: Sequence[str]) -> Any:
    """First raw value among ``names`` that is truthy, without coercion."""

    for name in names:
        value = document.get(name)
        if value:
            return value
    return None


def _full_name(document: Mapping[str, Any]) -> Optional[str]:
    first = clean_text(document.get("firstName"))
    last = clean_text(document.get("lastName"))
    if first and last:
        return f"{first} {last}"
    return None


def _joined_name(document: Mapping[str, Any]) -> Optional[str]:
    joined = f"{document.get('firstName') or ''} {document.get('lastName') or ''}".strip()
    return joined or None


def _email_local_part(document: Mapping[str, Any]) -> Optional[str]:
    email = clean_text(document.get("email"))
    if email:
        return clean_text(email.split("@")[0])
    return None


TRAINER_LABEL_CHAIN = fields(("trainerName", "trainer", "instructorName", "teacherName"))
LESSON_TITLE_CHAIN = fields(("lessonType", "type", "title", "name", "lessonName", "className", "subject"))
TRAINER_DISPLAY_CHAIN = (_full_name, field("name"), _email_local_part)
MEMBER_NAME_CHAIN = (field("displayName"), _joined_name)
EQUIPMENT_NAME_CHAIN = fields(("name", "title"))


def resolve_trainer_label(document: Mapping[str, Any]) -> str:
    return first_match(document, TRAINER_LABEL_CHAIN, UNSPECIFIED_TRAINER)


def resolve_lesson_title(document: Mapping[str, Any]) -> str:
    return first_match(document, LESSON_TITLE_CHAIN, DEFAULT_LESSON_TITLE)


def resolve_trainer_display_name(document: Mapping[str, Any]) -> str:
    return first_match(document, TRAINER_DISPLAY_CHAIN, UNKNOWN_TRAINER)


def resolve_member_name(document: Mapping[str, Any]) -> str:
    return first_match(document, MEMBER_NAME_CHAIN, UNNAMED_MEMBER)


def resolve_speciality(document: Mapping[str, Any]) -> str:
    for key in ("speciality", "expertise"):
        value = clean_text(document.get(key))
        if value:
            return value
    profile = document.get("trainerProfile")
    if isinstance(profile, Mapping):
        specializations = profile.get("specializations")
        if isinstance(specializations, (list, tuple)) and specializations:
            return ", ".join(str(item) for item in specializations)
    return "General"


def resolve_avatar(document: Mapping[str, Any]) -> Optional[str]:
    for key in ("photoURL", "avatar"):
        value = clean_text(document.get(key))
        if value:
            return value
    profile = document.get("trainerProfile")
    if isinstance(profile, Mapping):
        return clean_text(profile.get("avatar"))
    return None


def classify_role(subject: Union[UserRecord, Mapping[str, Any]]) -> str:
    """Lower-cased role of a user record or raw user document, or ``"unlabeled"``."""

    raw = subject.role if isinstance(subject, UserRecord) else subject.get("role")
    role = clean_text(raw)
    return role.lower() if role else UNLABELED_ROLE


def is_customer(subject: Union[UserRecord, Mapping[str, Any]]) -> bool:
    """Customer for package purposes: an unlabeled role counts too."""

    return classify_role(subject) in (CUSTOMER_ROLE, UNLABELED_ROLE)


def is_member(subject: Union[UserRecord, Mapping[str, Any]]) -> bool:
    """Counted as a studio member in member statistics; the role must say so."""

    return classify_role(subject) == CUSTOMER_ROLE


def is_staff(subject: Union[UserRecord, Mapping[str, Any]]) -> bool:
    return classify_role(subject) in STAFF_ROLES


def membership_type_label(value: Any) -> str:
    text = clean_text(value)
    if text is None:
        return "Unspecified"
    return MEMBERSHIP_TYPE_LABELS.get(text, text)
