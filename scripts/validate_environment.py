#!/usr/bin/env python3
"""Validate local reservation service environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
import threading
from dataclasses import replace
from datetime import date, timedelta
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from space_rental.domain.models import ReservationForm
from space_rental.repository.data_repository import DataRepository
from space_rental.services.reservation_service import ReservationWorkflowService
from space_rental.services.settings_service import default_setting_rows
from space_rental.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="space-rental-env-")

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
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("dotenv", "python-dotenv"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
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
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "validation.db",
            upload_dir=Path(temp_dir) / "uploads",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization and settings seed
        try:
            repository.initialize_database()
            repository.seed_default_settings(default_setting_rows())
            ok, line = _print_result(
                "Database initialization",
                True,
                f": {len(repository.read_settings())} settings",
            )
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Submit and confirm a sample reservation
        try:
            service = ReservationWorkflowService(
                repository=repository,
                settings=validation_settings,
                lock=threading.Lock(),
            )
            result = service.submit(
                ReservationForm(
                    date=(date.today() + timedelta(days=30)).isoformat(),
                    start_time="10:00",
                    end_time="13:00",
                    room="A",
                    name="Validation",
                    phone="010-0000-0000",
                    email="validation@example.com",
                    headcount=5,
                )
            )
            if not result.success or result.total_amount != 178200:
                raise RuntimeError(f"unexpected submission result: {result}")
            confirmation = service.confirm_payment(result.reservation_number)
            ok, line = _print_result(
                "Reservation round trip",
                True,
                f": {confirmation.reservation_number}",
            )
        except Exception as exc:
            ok, line = _print_result("Reservation round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Reservation Service Environment Validation")
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
