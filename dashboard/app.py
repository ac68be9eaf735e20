"""Streamlit admin console for the office booking service."""

from __future__ import annotations

import datetime
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dashboard.api_client import BookingApiClient, HttpError
from dashboard.forms import (
    USER_FILTER_LABELS,
    UserFilter,
    clamp_weekly_quota,
    find_slot,
    format_error,
    quota_for_submit,
    role_for_submit,
    sanitise_email_search,
    should_apply_email_search,
    user_filter_to_query,
    validate_booking_form,
    validate_user_form,
)

# ==========================================
# Configuration & Constants
# ==========================================
API_BASE_URL = os.environ.get("API_BASE_URL", "http://127.0.0.1:8000/api")

st.set_page_config(
    page_title="Office Booking Admin",
    page_icon="🏢",
    layout="wide",
)


# ==========================================
# Session helpers
# ==========================================
def get_client() -> BookingApiClient:
    if "client" not in st.session_state:
        st.session_state.client = BookingApiClient(API_BASE_URL)
    return st.session_state.client


def current_user() -> Optional[Dict[str, Any]]:
    email = st.session_state.get("email")
    if not email:
        return None
    try:
        return get_client().get_user_cached(email)
    except HttpError as e:
        st.error(format_error(e))
        return None


def load_config() -> Optional[Dict[str, Any]]:
    if "config" not in st.session_state:
        try:
            st.session_state.config = get_client().get_config()
        except HttpError as e:
            st.error(format_error(e))
            return None
    return st.session_state.config


def render_sign_in() -> None:
    st.sidebar.subheader("Sign in")
    email = st.sidebar.text_input("Email", key="sign_in_email")
    secret = st.sidebar.text_input("Login secret", type="password")
    if st.sidebar.button("Sign in", type="primary"):
        try:
            get_client().login(email, secret)
            st.session_state.email = sanitise_email_search(email)
            st.rerun()
        except HttpError as e:
            st.sidebar.error(format_error(e))


# ==========================================
# UI Page Functions
# ==========================================
def render_users_page(user: Dict[str, Any]) -> None:
    st.header("👥 Users")
    if not user["permissions"]["canViewUsers"]:
        st.warning("You do not have permission to view users.")
        return

    col1, col2 = st.columns(2)
    with col1:
        kind = st.selectbox(
            "Show",
            list(USER_FILTER_LABELS),
            format_func=lambda key: USER_FILTER_LABELS[key],
        )
    with col2:
        email_search = st.text_input("Email starts with")

    previous: UserFilter = st.session_state.get("user_filter", UserFilter())
    email = previous.email
    if should_apply_email_search(email_search, previous.email):
        email = sanitise_email_search(email_search) or None
    selected = UserFilter(user=kind, email=email)

    client = get_client()
    if selected != previous or "user_rows" not in st.session_state:
        try:
            result = client.query_users(user_filter_to_query(selected))
            st.session_state.user_rows = result["users"]
            st.session_state.user_token = result.get("paginationToken")
        except HttpError as e:
            st.error(format_error(e))
            return
        st.session_state.user_filter = selected

    rows: List[Dict[str, Any]] = st.session_state.user_rows
    if rows:
        df = pd.DataFrame(
            [{"Email": row["email"], "Quota": row["quota"], "Role": row["role"]["name"]} for row in rows]
        )
        st.dataframe(df, use_container_width=True)
    else:
        st.info("No users match the current filter.")

    token = st.session_state.get("user_token")
    if token and st.button("Load more"):
        try:
            result = client.query_users(user_filter_to_query(selected), token)
            st.session_state.user_rows = rows + result["users"]
            st.session_state.user_token = result.get("paginationToken")
            st.rerun()
        except HttpError as e:
            st.error(format_error(e))

    with st.expander("Add user"):
        new_email = st.text_input("New user email")
        config = load_config()
        if st.button("Register user"):
            if not config or not new_email:
                st.error("Valid email address required")
            else:
                try:
                    client.register_user(sanitise_email_search(new_email))
                    st.success(f"{new_email} registered")
                    st.session_state.pop("user_rows", None)
                except HttpError as e:
                    st.error(format_error(e))


def render_user_page(user: Dict[str, Any]) -> None:
    st.header("🧑 Edit User")
    if not user["permissions"]["canViewUsers"]:
        st.warning("You do not have permission to view users.")
        return

    email = st.text_input("User email", value=st.session_state.get("selected_email", ""))
    if not email:
        return
    client = get_client()
    try:
        selected = client.get_user(email)
        offices = client.get_offices()
    except HttpError as e:
        st.error(format_error(e))
        return
    st.session_state.selected_email = email

    managed_ids = {o["id"] for o in user["permissions"]["officesCanManageBookingsFor"]}
    office_names = {o["id"]: o["name"] for o in offices if o["id"] in managed_ids}
    can_edit = user["permissions"]["canEditUsers"]
    role_name = selected["role"]["name"]

    new_role = st.selectbox(
        "Role",
        ["Default", "Office Admin", "System Admin"],
        index=["Default", "Office Admin", "System Admin"].index(role_name),
        disabled=role_name == "System Admin" or not can_edit,
    )
    chosen_offices: List[str] = []
    if new_role == "Office Admin":
        current_ids = [o["id"] for o in selected["role"].get("offices", [])]
        chosen_offices = st.multiselect(
            "Offices",
            list(office_names),
            default=[office_id for office_id in current_ids if office_id in office_names],
            format_func=lambda office_id: office_names[office_id],
            disabled=not can_edit,
        )
    displayed_quota = clamp_weekly_quota(int(selected["quota"]))
    quota = st.number_input(
        "Weekly quota",
        min_value=0,
        max_value=7,
        value=displayed_quota,
        disabled=not can_edit,
    )

    if can_edit and st.button("Save", type="primary"):
        edited = {
            "email": selected["email"],
            "quota": clamp_weekly_quota(int(quota)),
            "role": {"name": new_role, "offices": [{"id": office_id} for office_id in chosen_offices]},
        }
        problem = validate_user_form(edited)
        if problem:
            st.error(problem)
            return
        try:
            updated = client.put_user(
                edited["email"],
                quota=quota_for_submit(displayed_quota, edited["quota"]),
                role=role_for_submit(edited) if role_name != "System Admin" else None,
            )
            st.success(f"{updated['email']} updated")
        except HttpError as e:
            st.error(format_error(e))

    st.markdown(
        """
#### About Roles
**Default** - any user with a valid email address; manages their own bookings only.

**System Admin** - configured in infrastructure; views and edits all bookings and users.

**Office Admin** - assigned by a System Admin; manages bookings for assigned offices and can view other users.

A default quota is applied to all users regardless of role.
"""
    )


def render_create_booking_page(user: Dict[str, Any]) -> None:
    st.header("📅 Create Booking")
    managed = user["permissions"]["officesCanManageBookingsFor"]
    if not managed:
        st.warning("You cannot manage bookings for any office.")
        return

    config = load_config()
    client = get_client()

    col1, col2 = st.columns(2)
    with col1:
        email = st.text_input("Email address", help="Who is the booking for")
        office_name = st.selectbox("Office", [o["name"] for o in managed])
    with col2:
        booking_date = st.date_input(
            "Date",
            datetime.date.today() + datetime.timedelta(days=1),
        )
        parking = st.checkbox("Parking")

    office_id = next(o["id"] for o in managed if o["name"] == office_name)
    try:
        office = client.get_office(office_id)
    except HttpError as e:
        st.error(format_error(e))
        return
    formatted_date = booking_date.isoformat()
    slot = find_slot(office, formatted_date)
    if slot:
        st.caption(
            f"{slot['booked']}/{office['quota']} desks booked"
            + (f", {slot['bookedParking']}/{office['parkingQuota']} parking" if office["parkingQuota"] else "")
        )

    if st.button("Create booking", type="primary"):
        email = sanitise_email_search(email)
        problem = validate_booking_form(
            email=email,
            email_regex=(config or {}).get("emailRegex"),
            office=office,
            slot=slot,
            parking=parking,
        )
        if problem:
            st.error(problem)
            return
        try:
            client.create_booking(email, formatted_date, office_id, parking)
            st.success(f"Booking created for {email}!")
        except HttpError as e:
            st.error(format_error(e))


def render_bookings_page(user: Dict[str, Any]) -> None:
    st.header("📋 Bookings")
    client = get_client()
    col1, col2 = st.columns(2)
    with col1:
        email_filter = st.text_input("User email", value=user["email"])
    with col2:
        date_filter = st.text_input("Date (YYYY-MM-DD)")

    try:
        bookings = client.get_bookings(
            user=sanitise_email_search(email_filter) or None,
            date=date_filter.strip() or None,
        )
    except HttpError as e:
        st.error(format_error(e))
        return

    if not bookings:
        st.info("No bookings found.")
        return

    df = pd.DataFrame(
        [
            {
                "Date": b["date"],
                "User": b["user"],
                "Office": b["office"]["name"],
                "Parking": b["parking"],
                "Cancel before": b["lastCancellation"],
            }
            for b in bookings
        ]
    )
    st.dataframe(df, use_container_width=True)

    labels = {f"{b['date']} · {b['office']['name']} · {b['user']}": b for b in bookings}
    choice = st.selectbox("Booking to cancel", list(labels))
    if st.button("Cancel booking"):
        booking = labels[choice]
        try:
            client.cancel_booking(booking["id"], booking["user"])
            st.success("Booking cancelled")
            st.rerun()
        except HttpError as e:
            st.error(format_error(e))


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    st.sidebar.title("Office Booking")
    st.sidebar.markdown("---")

    user = current_user()
    if user is None:
        render_sign_in()
        st.info("Sign in to use the admin console.")
        return

    st.sidebar.caption(f"Signed in as {user['email']} ({user['role']['name']})")
    pages = ["Bookings"]
    if user["permissions"]["canViewAdminPanel"]:
        pages = ["Users", "User", "Create Booking", "Bookings"]
    page = st.sidebar.radio("Navigation", pages)

    if st.sidebar.button("Sign out"):
        st.session_state.clear()
        st.rerun()

    if page == "Users":
        render_users_page(user)
    elif page == "User":
        render_user_page(user)
    elif page == "Create Booking":
        render_create_booking_page(user)
    elif page == "Bookings":
        render_bookings_page(user)


if __name__ == "__main__":
    main()
