"""HTTP client the admin console uses to talk to the booking API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests


logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class HttpError(Exception):
    """Non-2xx response; `name` is "<status> <reason>", message is the body text."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        super().__init__(body)
        self.status_code = status_code
        self.name = f"{status_code} {reason}".strip()
        self.body = body

    @classmethod
    def from_response(cls, response: requests.Response) -> "HttpError":
        return cls(response.status_code, response.reason or "", response.text)


@dataclass(frozen=True)
class UserQuery:
    role: Optional[str] = None
    quota: Optional[str] = None
    email_prefix: Optional[str] = None

    def to_params(self, pagination_token: Optional[str] = None) -> Dict[str, str]:
        """Only filters that are set become query parameters."""
        params: Dict[str, str] = {}
        if self.role is not None:
            params["role"] = self.role
        if self.quota is not None:
            params["quota"] = self.quota
        if self.email_prefix is not None:
            params["emailPrefix"] = self.email_prefix
        if pagination_token is not None:
            params["paginationToken"] = pagination_token
        return params


class BookingApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._session = session or requests.Session()
        self._user_cache: Optional[tuple[str, Dict[str, Any]]] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token
        self._user_cache = None

    def _headers(self, authenticated: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> requests.Response:
        response = self._session.request(
            method,
            f"{self._base_url}/{path.lstrip('/')}",
            params=params,
            json=json,
            headers=self._headers(authenticated),
            timeout=self._timeout,
        )
        if not response.ok:
            error = HttpError.from_response(response)
            logger.warning("%s %s failed: %s", method, path, error.name)
            raise error
        return response

    # Auth

    def login(self, email: str, secret: str) -> str:
        response = self._request(
            "POST",
            "login",
            json={"email": email, "secret": secret},
            authenticated=False,
        )
        self.set_token(response.json()["access_token"])
        return self._token or ""

    def get_config(self) -> Dict[str, Any]:
        return self._request("GET", "config", authenticated=False).json()

    # Users

    def query_users(self, query: UserQuery, pagination_token: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", "users", params=query.to_params(pagination_token)).json()

    def get_user(self, email: str) -> Dict[str, Any]:
        return self._request("GET", f"users/{quote(email)}").json()

    def get_user_cached(self, email: str) -> Dict[str, Any]:
        """Single-entry cache for the signed-in user; bookings are not included."""
        if self._user_cache is not None and self._user_cache[0] == email:
            return self._user_cache[1]
        self._user_cache = None
        user = self.get_user(email)
        self._user_cache = (email, user)
        return user

    def register_user(self, email: str) -> None:
        self._request(
            "POST",
            "users",
            json={"action": "Register", "email": email},
            authenticated=False,
        )

    def put_user(
        self,
        email: str,
        *,
        quota: Any = UNSET,
        role: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """`quota=None` resets the user to the default quota; leaving it out keeps it."""
        body: Dict[str, Any] = {}
        if quota is not UNSET:
            body["quota"] = quota
        if role is not None:
            body["role"] = role
        user = self._request("PUT", f"users/{quote(email)}", json=body).json()
        if self._user_cache is not None and self._user_cache[0] == email:
            self._user_cache = (email, user)
        return user

    # Offices

    def get_offices(self) -> List[Dict[str, Any]]:
        return self._request("GET", "offices").json()

    def get_office(self, office_id: str) -> Dict[str, Any]:
        return self._request("GET", f"offices/{quote(office_id)}").json()

    # Bookings

    def get_bookings(
        self,
        *,
        user: Optional[str] = None,
        office_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {}
        if user is not None:
            params["user"] = user
        if office_id is not None:
            params["office"] = office_id
        if date is not None:
            params["date"] = date
        return self._request("GET", "bookings", params=params).json()

    def create_booking(
        self,
        user: str,
        date: str,
        office_id: str,
        parking: bool = False,
    ) -> Dict[str, Any]:
        body = {"user": user, "date": date, "office": {"id": office_id}, "parking": parking}
        return self._request("POST", "bookings", json=body).json()

    def cancel_booking(self, booking_id: str, user: str) -> None:
        self._request("DELETE", f"bookings/{quote(booking_id)}", params={"user": user})
