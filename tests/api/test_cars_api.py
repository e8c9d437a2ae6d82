"""HTTP tests for the car routes, projector, and analytics."""

import pytest

from tests.api.conftest import register

pytestmark = pytest.mark.integration


class TestRegistration:
    def test_create_car(self, api_client):
        car = register(api_client, 1, plate="ABC123")

        assert car["id"] == 1
        assert car["status"] == "PRE_ARRIVAL"
        assert car["registered_at"] is None

    def test_duplicate_id_is_conflict(self, api_client):
        register(api_client, 1)
        response = api_client.post(
            "/api/cars",
            json={"id": 1, "make": "Ford", "model": "Focus", "color": "red", "license_plate": "X1"},
        )

        assert response.status_code == 409
        assert "debug_id" in response.json()

    def test_field_level_validation_errors(self, api_client):
        response = api_client.post(
            "/api/cars",
            json={"id": 0, "make": "", "model": "Focus", "color": "beige", "license_plate": "X1"},
        )

        assert response.status_code == 422
        fields = {tuple(error["loc"])[-1] for error in response.json()["detail"]}
        assert {"id", "make", "color"} <= fields

    def test_edit_details_keeps_status(self, api_client):
        register(api_client, 1)
        api_client.post("/api/cars/1/status", json={"targetStatus": "REGISTERED"})

        response = api_client.patch(
            "/api/cars/1",
            json={"make": "Mazda", "model": "CX-5", "color": "gray", "license_plate": "NEW1"},
        )

        assert response.status_code == 200
        assert response.json()["make"] == "Mazda"
        assert response.json()["status"] == "REGISTERED"

    def test_delete(self, api_client):
        register(api_client, 1)
        assert api_client.delete("/api/cars/1").status_code == 204
        assert api_client.get("/api/cars/1").status_code == 404
        assert api_client.delete("/api/cars/1").status_code == 404


class TestReads:
    def test_get_missing_car(self, api_client):
        response = api_client.get("/api/cars/999")
        assert response.status_code == 404
        assert response.json()["detail"] == "Car 999 not found"
        assert "debug_id" in response.json()

    def test_list_and_filter(self, api_client):
        for car_id in (2, 1, 3):
            register(api_client, car_id)
        api_client.post("/api/cars/3/status", json={"targetStatus": "ON_DECK"})

        assert [car["id"] for car in api_client.get("/api/cars").json()] == [1, 2, 3]
        on_deck = api_client.get("/api/cars", params={"status": "ON_DECK"}).json()
        assert [car["id"] for car in on_deck] == [3]

    def test_invalid_status_filter(self, api_client):
        assert api_client.get("/api/cars", params={"status": "PARKED"}).status_code == 422

    def test_search_by_id_then_plate(self, api_client):
        register(api_client, 5, plate="777")
        register(api_client, 777, plate="ZZZ1")

        assert api_client.get("/api/cars/search", params={"term": "777"}).json()["id"] == 777
        assert api_client.get("/api/cars/search", params={"term": "ZZZ1"}).json()["id"] == 777

    def test_search_out_of_range_number(self, api_client):
        register(api_client, 4, plate="12345678901234567890")

        response = api_client.get("/api/cars/search", params={"term": "12345678901234567890"})
        assert response.status_code == 200
        assert response.json()["id"] == 4

        miss = api_client.get("/api/cars/search", params={"term": "99999999999999999999"})
        assert miss.status_code == 404

    @pytest.mark.parametrize("car_id", ["0", "2147483648", "99999999999999999999"])
    def test_car_id_path_out_of_range(self, api_client, car_id):
        assert api_client.get(f"/api/cars/{car_id}").status_code == 422
        assert api_client.get(f"/api/cars/{car_id}/history").status_code == 422
        response = api_client.post(f"/api/cars/{car_id}/status", json={"targetStatus": "DONE"})
        assert response.status_code == 422

    def test_register_rejects_id_beyond_column_range(self, api_client):
        response = api_client.post(
            "/api/cars",
            json={"id": 2**31, "make": "Ford", "model": "Focus", "color": "red", "license_plate": "BIG1"},
        )
        assert response.status_code == 422

    def test_search_miss(self, api_client):
        response = api_client.get("/api/cars/search", params={"term": "NOPE"})
        assert response.status_code == 404

    def test_board_and_statistics(self, api_client):
        register(api_client, 1)
        register(api_client, 2)
        api_client.post("/api/cars/2/status", json={"targetStatus": "DONE"})

        board = api_client.get("/api/cars/board").json()["cars_by_status"]
        assert set(board) == {"PRE_ARRIVAL", "REGISTERED", "ON_DECK", "DONE", "PICKED_UP"}
        assert [car["id"] for car in board["DONE"]] == [2]

        stats = api_client.get("/api/cars/statistics").json()
        assert stats["total"] == 2
        assert stats["by_status"]["DONE"] == 1
        assert stats["by_status"]["PRE_ARRIVAL"] == 1


class TestStatusTransition:
    def test_transition_returns_updated_car(self, api_client):
        register(api_client, 1)

        response = api_client.post("/api/cars/1/status", json={"targetStatus": "REGISTERED"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "REGISTERED"
        assert body["registered_at"] is not None
        assert body["on_deck_at"] is None

    def test_unknown_car(self, api_client):
        response = api_client.post("/api/cars/42/status", json={"targetStatus": "REGISTERED"})
        assert response.status_code == 404

    def test_invalid_target_status(self, api_client):
        register(api_client, 1)
        response = api_client.post("/api/cars/1/status", json={"targetStatus": "WASHED"})

        assert response.status_code == 422
        assert api_client.get("/api/cars/1").json()["status"] == "PRE_ARRIVAL"

    def test_history_newest_first(self, api_client):
        register(api_client, 1)
        api_client.post("/api/cars/1/status", json={"targetStatus": "REGISTERED"})
        api_client.post("/api/cars/1/status", json={"targetStatus": "ON_DECK"})

        history = api_client.get("/api/cars/1/history").json()

        assert [(h["previous_status"], h["new_status"]) for h in history] == [
            ("REGISTERED", "ON_DECK"),
            ("PRE_ARRIVAL", "REGISTERED"),
        ]

    def test_history_for_missing_car(self, api_client):
        assert api_client.get("/api/cars/3/history").status_code == 404

    def test_suggested_actions(self, api_client):
        register(api_client, 1)
        api_client.post("/api/cars/1/status", json={"targetStatus": "ON_DECK"})

        actions = api_client.get("/api/cars/1/actions").json()

        assert actions["current_status"] == "ON_DECK"
        assert actions["primary"] == {"target_status": "DONE", "label": "Move to Ready for Pickup"}
        assert [a["target_status"] for a in actions["secondary"]] == ["PRE_ARRIVAL", "REGISTERED", "PICKED_UP"]


class TestBulkImport:
    def _cars(self, *ids):
        return [
            {"id": car_id, "make": "Honda", "model": "Civic", "color": "white", "license_plate": f"IMP{car_id}"}
            for car_id in ids
        ]

    def test_import_append(self, api_client):
        response = api_client.post("/api/cars/import", json={"cars": self._cars(1, 2, 3)})

        assert response.status_code == 200
        assert response.json() == {"mode": "append", "imported": 3}
        assert api_client.get("/api/cars/1/history").json() == []

    def test_import_append_conflict(self, api_client):
        register(api_client, 2)
        response = api_client.post("/api/cars/import", json={"cars": self._cars(1, 2)})

        assert response.status_code == 409
        assert [car["id"] for car in api_client.get("/api/cars").json()] == [2]

    def test_import_replace(self, api_client):
        register(api_client, 9)
        response = api_client.post("/api/cars/import", json={"mode": "replace", "cars": self._cars(1)})

        assert response.json()["imported"] == 1
        assert [car["id"] for car in api_client.get("/api/cars").json()] == [1]

    def test_import_requires_cars(self, api_client):
        assert api_client.post("/api/cars/import", json={"cars": []}).status_code == 422


class TestProjectorAndAnalytics:
    def test_projector_groups(self, api_client):
        for car_id, status in [(1, "REGISTERED"), (2, "ON_DECK"), (3, "DONE"), (4, "PICKED_UP")]:
            register(api_client, car_id)
            api_client.post(f"/api/cars/{car_id}/status", json={"targetStatus": status})
        register(api_client, 5)

        projector = api_client.get("/api/projector").json()

        assert [car["id"] for car in projector["in_progress_cars"]] == [1, 2]
        assert [car["id"] for car in projector["done_cars"]] == [3]

    def test_duration_analytics_shape(self, api_client):
        register(api_client, 1)
        api_client.post("/api/cars/1/status", json={"targetStatus": "REGISTERED"})
        api_client.post("/api/cars/1/status", json={"targetStatus": "ON_DECK"})

        stages = api_client.get("/api/analytics/durations").json()["stages"]

        assert set(stages) == {"REGISTERED", "ON_DECK", "DONE"}
        assert stages["ON_DECK"]["count"] == 1
        assert stages["DONE"]["count"] == 0
