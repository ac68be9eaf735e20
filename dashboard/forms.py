"""Console form logic kept free of Streamlit so it can be unit tested."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from dashboard.api_client import UNSET, HttpError, UserQuery


UserFilterKind = Literal["active", "custom", "System Admin", "Office Admin"]

USER_FILTER_LABELS: Dict[str, str] = {
    "active": "Active",
    "System Admin": "System Admins",
    "Office Admin": "Office Admins",
    "custom": "With custom quota",
}

MIN_WEEKLY_QUOTA = 0
MAX_WEEKLY_QUOTA = 7


@dataclass(frozen=True)
class UserFilter:
    user: UserFilterKind = "active"
    email: Optional[str] = None


def user_filter_to_query(user_filter: UserFilter) -> UserQuery:
    role: Optional[str] = None
    quota: Optional[str] = None
    if user_filter.user in ("Office Admin", "System Admin"):
        role = user_filter.user
    elif user_filter.user == "custom":
        quota = "custom"
    return UserQuery(role=role, quota=quota, email_prefix=user_filter.email or None)


def sanitise_email_search(text: str) -> str:
    return text.strip().lower()


def should_apply_email_search(text: str, current: Optional[str]) -> bool:
    """Search when the value changed and is non-blank, or was cleared."""
    sanitised = sanitise_email_search(text)
    if sanitised == (current or ""):
        return False
    return sanitised != "" or bool(current)


def clamp_weekly_quota(value: int) -> int:
    return max(MIN_WEEKLY_QUOTA, min(MAX_WEEKLY_QUOTA, value))


def validate_email(email_regex: str, email: str) -> bool:
    return re.fullmatch(email_regex, email) is not None


def validate_user_form(user: Dict[str, Any]) -> Optional[str]:
    role = user.get("role") or {}
    if role.get("name") == "Office Admin" and not role.get("offices"):
        return "Please select at least one office"
    return None


def quota_for_submit(current: int, edited: int) -> Any:
    """Only an edited quota is sent; an untouched one keeps the user on the default."""
    if edited == current:
        return UNSET
    return clamp_weekly_quota(edited)


def role_for_submit(user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """System Admins are configured elsewhere, so their role is never sent."""
    role = user.get("role") or {}
    if role.get("name") == "System Admin":
        return None
    if role.get("name") == "Office Admin":
        return {
            "name": "Office Admin",
            "offices": [{"id": office["id"]} for office in role.get("offices", [])],
        }
    return {"name": role.get("name", "Default")}


def find_slot(office: Dict[str, Any], date: str) -> Optional[Dict[str, Any]]:
    for slot in office.get("slots", []):
        if slot.get("date") == date:
            return slot
    return None


def validate_booking_form(
    *,
    email: str,
    email_regex: Optional[str],
    office: Optional[Dict[str, Any]],
    slot: Optional[Dict[str, Any]],
    parking: bool,
) -> Optional[str]:
    """Return the alert message for the first failing check, or None."""
    if email == "":
        return "Email address required"
    if not email_regex or not validate_email(email_regex, email):
        return "Valid email address required"
    if office is None or slot is None:
        return "Office required"
    if slot["booked"] + 1 > office["quota"]:
        return "No office spaces available"
    if office.get("parkingQuota", 0) > 0 and parking and slot["bookedParking"] + 1 > office["parkingQuota"]:
        return "No parking spaces available"
    return None


def format_error(error: Exception) -> str:
    if isinstance(error, HttpError):
        detail = error.body
        try:
            payload = json.loads(detail)
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("detail"), str):
            detail = payload["detail"]
        return f"{error.name}: {detail}" if detail else error.name
    return str(error) or error.__class__.__name__
