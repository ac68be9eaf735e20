#!/usr/bin/env python3
"""Validate local booking service environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import User
from backend.repository.data_repository import DataRepository
from backend.services.booking_service import BookingService
from backend.services.office_service import OfficeService
from backend.services.user_service import UserService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44
PROBE_EMAIL = "environment.check@example.com"


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="office-booking-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "requests",
        "pandas",
        "streamlit",
        "httpx",
        "pytest",
    ]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        # CHECK 3: Settings load
        try:
            base_settings = get_settings()
            ok, line = _print_result(
                "Settings",
                True,
                f": {len(base_settings.office_quotas)} configured offices",
            )
        except Exception as exc:
            base_settings = None
            ok, line = _print_result("Settings", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok
        if base_settings is None:
            raise RuntimeError("settings unavailable")

        validation_settings = replace(
            base_settings,
            database_path=Path(temp_dir) / "validation.db",
            default_weekly_quota=max(base_settings.default_weekly_quota, 1),
        )
        repository = DataRepository(validation_settings)
        office_service = OfficeService(repository=repository, settings=validation_settings)
        user_service = UserService(
            repository=repository,
            settings=validation_settings,
            office_service=office_service,
        )
        booking_service = BookingService(
            repository=repository,
            settings=validation_settings,
            office_service=office_service,
            user_service=user_service,
        )

        # CHECK 4: Database initialization and office sync
        offices = []
        try:
            repository.initialize_database()
            offices = office_service.sync_configured_offices()
            ok, line = _print_result("Database initialization", True, f": {len(offices)} offices")
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Booking round trip
        try:
            if not offices:
                raise RuntimeError("no offices configured")
            office = offices[0]
            probe: User = user_service.ensure_user(PROBE_EMAIL)
            tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).date().isoformat()
            booking = booking_service.create_booking(
                probe,
                user=PROBE_EMAIL,
                date=tomorrow,
                office_id=office.office_id,
            )
            booked = repository.get_slot(office.office_id, tomorrow).booked
            booking_service.cancel_booking(probe, booking_id=booking.booking_id, user=PROBE_EMAIL)
            released = repository.get_slot(office.office_id, tomorrow).booked
            if (booked, released) != (1, 0):
                raise RuntimeError(f"slot counters went {booked} -> {released}, expected 1 -> 0")
            ok, line = _print_result("Booking round trip", True, f": {office.name} {tomorrow}")
        except Exception as exc:
            ok, line = _print_result("Booking round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    except RuntimeError:
        all_passed = False
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Office Booking Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
