"""Tests for exercise record endpoints."""

from datetime import date
from unittest.mock import patch

from httpx import AsyncClient

from myfitlog.models.exercise import ExerciseRecord
from myfitlog.services.backend import BackendConnectionError
from myfitlog.services.stopwatch import DEFAULT_EXERCISE_TYPE
from tests.fakes import FakeBackend

TODAY = date(2026, 10, 18)


class TestExerciseTypes:
    async def test_list_types(self, client: AsyncClient):
        response = await client.get("/api/v1/exercises/types")

        assert response.status_code == 200
        data = response.json()
        assert data["default"] == DEFAULT_EXERCISE_TYPE.key
        assert len(data["types"]) == 9
        jogging = next(t for t in data["types"] if t["key"] == "jogging")
        assert jogging == {"key": "jogging", "label": "Jogging", "met": 7.0}

    async def test_estimate(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/exercises/estimate",
            params={"elapsed_ms": 3_600_000, "exercise_type": "jogging"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["formatted"] == "60:00.00"
        assert data["calories"] == 490
        assert data["exercise_type"]["key"] == "jogging"

    async def test_estimate_unknown_type(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/exercises/estimate",
            params={"elapsed_ms": 1000, "exercise_type": "skydiving"},
        )

        assert response.status_code == 422

    async def test_estimate_negative_elapsed(self, client: AsyncClient):
        response = await client.get("/api/v1/exercises/estimate", params={"elapsed_ms": -1})

        assert response.status_code == 422


class TestListExercises:
    async def test_newest_first(
        self,
        auth_client: AsyncClient,
        sample_records: list[ExerciseRecord],
    ):
        response = await auth_client.get("/api/v1/exercises")

        assert response.status_code == 200
        records = response.json()["records"]
        assert [r["name"] for r in records] == ["Swimming", "Yoga", "Jogging"]
        assert records[0]["date"] == "2026-10-12"

    async def test_limit(
        self,
        auth_client: AsyncClient,
        sample_records: list[ExerciseRecord],
    ):
        response = await auth_client.get("/api/v1/exercises", params={"limit": 2})

        assert response.status_code == 200
        assert len(response.json()["records"]) == 2

    async def test_empty(self, auth_client: AsyncClient):
        response = await auth_client.get("/api/v1/exercises")

        assert response.status_code == 200
        assert response.json()["records"] == []

    async def test_requires_login(self, client: AsyncClient):
        response = await client.get("/api/v1/exercises")

        assert response.status_code == 401

    async def test_connection_failure(
        self,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        fake_backend.fail_with = BackendConnectionError("database unreachable")

        response = await fake_client.get("/api/v1/exercises")

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to fetch exercise records"


class TestSaveExercise:
    async def test_save_derives_minutes_and_calories(
        self,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        with patch("myfitlog.api.v1.endpoints.exercises.local_today", return_value=TODAY):
            response = await fake_client.post(
                "/api/v1/exercises",
                json={"exercise_type": "jogging", "elapsed_ms": 65030},
            )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Jogging"
        assert data["duration_minutes"] == 1
        assert data["calories"] == 9
        assert data["date"] == "2026-10-18"

        saved = fake_backend.records[fake_backend.context.user_id]
        assert len(saved) == 1
        assert saved[0].id == data["id"]

    async def test_save_persists_to_database(self, auth_client: AsyncClient):
        with patch("myfitlog.api.v1.endpoints.exercises.local_today", return_value=TODAY):
            response = await auth_client.post(
                "/api/v1/exercises",
                json={"exercise_type": "yoga", "elapsed_ms": 1_800_000},
            )
        assert response.status_code == 201

        listing = await auth_client.get("/api/v1/exercises")
        records = listing.json()["records"]
        assert len(records) == 1
        assert records[0]["name"] == "Yoga"
        assert records[0]["duration_minutes"] == 30
        assert records[0]["calories"] == 105

    async def test_save_defaults_exercise_type(self, fake_client: AsyncClient):
        response = await fake_client.post("/api/v1/exercises", json={"elapsed_ms": 60_000})

        assert response.status_code == 201
        assert response.json()["name"] == DEFAULT_EXERCISE_TYPE.label

    async def test_save_unknown_type(
        self,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        response = await fake_client.post(
            "/api/v1/exercises",
            json={"exercise_type": "skydiving", "elapsed_ms": 60_000},
        )

        assert response.status_code == 422
        assert "insert_record" not in fake_backend.calls

    async def test_save_failure(
        self,
        fake_client: AsyncClient,
        fake_backend: FakeBackend,
    ):
        fake_backend.fail_with = BackendConnectionError("database unreachable")

        response = await fake_client.post(
            "/api/v1/exercises",
            json={"exercise_type": "jogging", "elapsed_ms": 60_000},
        )

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to save exercise record"
