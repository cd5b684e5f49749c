from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from satpam.db import get_db
from satpam.main import app
from satpam.models import AparCheck, AreaCheckReport, AuditLog, Location, ScheduleAssignment
from satpam.security import PatrolIdentity, PatrolRole, get_current_identity, require_guard

WIB = timezone(timedelta(hours=7))


class _ScalarRows:
    def __init__(self, rows):
        self._rows = rows

    def all(self):
        return self._rows


class FakeDB:
    def __init__(
        self,
        *,
        scalars_results: list[list[object]] | None = None,
        scalar_results: list[object] | None = None,
        objects: dict[tuple[type, object], object] | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        self._scalars_results = list(scalars_results or [])
        self._scalar_results = list(scalar_results or [])
        self._objects = objects or {}
        self._fail_with = fail_with
        self.added: list[object] = []
        self.commits = 0

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        if self._fail_with is not None:
            raise self._fail_with
        return _ScalarRows(self._scalars_results.pop(0))

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self._scalar_results.pop(0) if self._scalar_results else None

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self._objects.get((model, pk))

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        return

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = 500 + len(self.added)  # type: ignore[attr-defined]


def override_get_db(fake_db: FakeDB):
    def _override() -> Generator[object, None, None]:
        yield fake_db

    return _override


def _guard_identity() -> PatrolIdentity:
    return PatrolIdentity(
        subject="G1",
        role_literal="satpam",
        roles=frozenset({PatrolRole.GUARD}),
        display_name="Budi Santoso",
    )


def _assignment(assignment_id: int, location: Location) -> ScheduleAssignment:
    assignment = ScheduleAssignment(
        id=assignment_id,
        guard_id="G1",
        location_id=location.id,
        schedule_date=date(2024, 4, 30),
    )
    assignment.location = location
    return assignment


class GuardBoardEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[require_guard] = _guard_identity

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_board_reports_area_check_before_cutover(self) -> None:
        lobby = Location(id="L1", name="Lobby", zone="Gedung Barat", qr_code_data="qr-l1", is_active=True)
        area_row = AreaCheckReport(
            id=11,
            guard_id="G1",
            location_id="L1",
            ts_utc=datetime(2024, 4, 30, 9, 0, tzinfo=WIB),
            photo_url="https://cdn.example/lobby.jpg",
        )
        fake_db = FakeDB(scalars_results=[[_assignment(1, lobby)], [area_row], []])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 5, 1, 2, 0, tzinfo=WIB)):
            response = client.get("/api/patrol/board")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["guard_id"], "G1")
        self.assertTrue(body["is_scheduled"])
        self.assertEqual(body["operational_day"]["day_id"], "2024-04-30")
        self.assertEqual(len(body["statuses"]), 1)
        status = body["statuses"][0]
        self.assertEqual(status["location"]["name"], "Lobby")
        self.assertTrue(status["is_area_checked"])
        self.assertFalse(status["is_apar_checked"])
        self.assertEqual(status["area_checked_at_local"], "09:00")
        self.assertIsNone(status["apar_checked_at_local"])
        self.assertEqual(status["evidence_url"], "https://cdn.example/lobby.jpg")
        self.assertEqual(body["summary"], {"total": 1, "completed_both": 0, "completion_rate_percent": 0})

    def test_board_without_assignments_is_not_scheduled(self) -> None:
        fake_db = FakeDB(scalars_results=[[]])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 4, 30, 12, 0, tzinfo=WIB)):
            response = client.get("/api/patrol/board")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["is_scheduled"])
        self.assertEqual(body["statuses"], [])
        self.assertEqual(body["summary"]["completion_rate_percent"], 0)

    def test_board_search_filters_by_location_name(self) -> None:
        lobby = Location(id="L1", name="Lobby", zone=None, qr_code_data="qr-l1", is_active=True)
        parking = Location(id="L2", name="Parkir Utara", zone=None, qr_code_data="qr-l2", is_active=True)
        fake_db = FakeDB(scalars_results=[[_assignment(1, lobby), _assignment(2, parking)], [], []])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 4, 30, 12, 0, tzinfo=WIB)):
            response = client.get("/api/patrol/board", params={"q": "parkir"})

        self.assertEqual(response.status_code, 200)
        statuses = response.json()["statuses"]
        self.assertEqual([item["location"]["id"] for item in statuses], ["L2"])

    def test_storage_failure_maps_to_service_unavailable(self) -> None:
        fake_db = FakeDB(fail_with=OperationalError("SELECT", {}, Exception("connection refused")))
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.get("/api/patrol/board")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"]["code"], "STORAGE_UNAVAILABLE")


class OperationalDayEndpointTests(unittest.TestCase):
    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_operational_day_uses_cutover(self) -> None:
        app.dependency_overrides[get_current_identity] = _guard_identity
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 5, 1, 5, 59, tzinfo=WIB)):
            response = client.get("/api/patrol/operational-day")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["day_id"], "2024-04-30")
        self.assertEqual(
            datetime.fromisoformat(body["window_start_utc"].replace("Z", "+00:00")),
            datetime(2024, 4, 29, 23, 0, tzinfo=timezone.utc),
        )


class InspectionEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[require_guard] = _guard_identity

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_area_check_is_recorded_and_audited(self) -> None:
        lobby = Location(id="L1", name="Lobby", zone="Gedung Barat", qr_code_data="qr-l1", is_active=True)
        fake_db = FakeDB(scalar_results=[lobby])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 5, 1, 2, 0, tzinfo=WIB)):
            response = client.post(
                "/api/patrol/area-checks",
                json={"qr_payload": "qr-l1", "photo_url": "https://cdn.example/p.jpg"},
            )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["check_type"], "AREA")
        self.assertEqual(body["location"]["id"], "L1")
        self.assertEqual(body["day_id"], "2024-04-30")
        self.assertEqual(body["evidence_url"], "https://cdn.example/p.jpg")
        self.assertIsInstance(fake_db.added[0], AreaCheckReport)
        self.assertIsInstance(fake_db.added[1], AuditLog)
        self.assertEqual(fake_db.added[1].action, "AREA_CHECK_RECORDED")

    def test_area_check_with_unknown_qr_is_not_found(self) -> None:
        fake_db = FakeDB(scalar_results=[None])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.post("/api/patrol/area-checks", json={"qr_payload": "qr-missing"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "LOCATION_QR_NOT_FOUND")
        self.assertEqual(fake_db.added, [])

    def test_apar_check_is_recorded(self) -> None:
        lobby = Location(id="L1", name="Lobby", zone=None, qr_code_data="qr-l1", is_active=True)
        fake_db = FakeDB(objects={(Location, "L1"): lobby})
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        with patch("satpam.routers.patrol._utcnow", return_value=datetime(2024, 4, 30, 10, 0, tzinfo=WIB)):
            response = client.post(
                "/api/patrol/apar-checks",
                json={"location_id": "L1", "apar_code": "APAR-01", "condition": "DAMAGED"},
            )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["check_type"], "APAR")
        self.assertEqual(body["apar_code"], "APAR-01")
        self.assertEqual(body["condition"], "DAMAGED")
        self.assertIsInstance(fake_db.added[0], AparCheck)

    def test_apar_check_rejects_unknown_condition(self) -> None:
        app.dependency_overrides[get_db] = override_get_db(FakeDB())
        client = TestClient(app)

        response = client.post(
            "/api/patrol/apar-checks",
            json={"location_id": "L1", "apar_code": "APAR-01", "condition": "BROKEN"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")


if __name__ == "__main__":
    unittest.main()
