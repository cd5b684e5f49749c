from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date

from fastapi.testclient import TestClient

from satpam.db import get_db
from satpam.main import app
from satpam.models import AuditLog, GuardProfile, ScheduleAssignment
from satpam.security import PatrolIdentity, PatrolRole, get_current_identity, require_admin


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
        objects: dict[tuple[type, object], object] | None = None,
    ) -> None:
        self._scalars_results = list(scalars_results or [])
        self._objects = objects or {}
        self.added: list[object] = []
        self.deleted: list[object] = []
        self.commits = 0

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarRows(self._scalars_results.pop(0))

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self._objects.get((model, pk))

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def add_all(self, objs) -> None:  # type: ignore[no-untyped-def]
        self.added.extend(objs)

    def delete(self, obj: object) -> None:
        self.deleted.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        return

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = self.added.index(obj) + 1  # type: ignore[attr-defined]


def override_get_db(fake_db: FakeDB):
    def _override() -> Generator[object, None, None]:
        yield fake_db

    return _override


def _admin_identity() -> PatrolIdentity:
    return PatrolIdentity(
        subject="admin-1",
        role_literal="admin",
        roles=frozenset({PatrolRole.SUPERVISOR, PatrolRole.ADMIN}),
    )


class AdminScheduleEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[require_admin] = _admin_identity

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_create_schedule_assignments(self) -> None:
        guard = GuardProfile(id="G1", first_name="Budi", last_name="Santoso", role="satpam")
        fake_db = FakeDB(scalars_results=[["L1", "L2"], []], objects={(GuardProfile, "G1"): guard})
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.post(
            "/api/admin/schedules",
            json={"guard_id": "G1", "day_id": "2024-04-30", "location_ids": ["L1", "L2"]},
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual([item["location_id"] for item in body], ["L1", "L2"])
        self.assertTrue(all(item["schedule_date"] == "2024-04-30" for item in body))
        self.assertTrue(all(item["created_by"] == "admin-1" for item in body))
        audit_rows = [item for item in fake_db.added if isinstance(item, AuditLog)]
        self.assertEqual(len(audit_rows), 1)
        self.assertEqual(audit_rows[0].action, "SCHEDULE_ASSIGNMENTS_CREATED")
        self.assertEqual(audit_rows[0].details["location_ids"], ["L1", "L2"])

    def test_duplicate_assignment_is_conflict(self) -> None:
        guard = GuardProfile(id="G1", first_name="Budi", last_name=None, role="satpam")
        fake_db = FakeDB(scalars_results=[["L1"], ["L1"]], objects={(GuardProfile, "G1"): guard})
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.post(
            "/api/admin/schedules",
            json={"guard_id": "G1", "day_id": "2024-04-30", "location_ids": ["L1"]},
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "SCHEDULE_ASSIGNMENT_EXISTS")

    def test_empty_location_list_is_rejected(self) -> None:
        app.dependency_overrides[get_db] = override_get_db(FakeDB())
        client = TestClient(app)

        response = client.post(
            "/api/admin/schedules",
            json={"guard_id": "G1", "day_id": "2024-04-30", "location_ids": []},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_delete_schedule_assignment(self) -> None:
        assignment = ScheduleAssignment(
            id=7,
            guard_id="G1",
            location_id="L1",
            schedule_date=date(2024, 4, 30),
            created_by="admin-1",
        )
        fake_db = FakeDB(objects={(ScheduleAssignment, 7): assignment})
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.delete("/api/admin/schedules/7")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], 7)
        self.assertEqual(fake_db.deleted, [assignment])
        self.assertEqual(fake_db.added[0].action, "SCHEDULE_ASSIGNMENT_DELETED")

    def test_delete_unknown_assignment_is_not_found(self) -> None:
        app.dependency_overrides[get_db] = override_get_db(FakeDB())
        client = TestClient(app)

        response = client.delete("/api/admin/schedules/999")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "SCHEDULE_ASSIGNMENT_NOT_FOUND")


class AdminAccessTests(unittest.TestCase):
    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_supervisor_cannot_manage_schedules(self) -> None:
        app.dependency_overrides[get_current_identity] = lambda: PatrolIdentity(
            subject="S1",
            role_literal="supervisor",
            roles=frozenset({PatrolRole.SUPERVISOR}),
        )
        app.dependency_overrides[get_db] = override_get_db(FakeDB())
        client = TestClient(app)

        response = client.delete("/api/admin/schedules/1")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")


if __name__ == "__main__":
    unittest.main()
