"""Tests for the club listing and calendar endpoints."""

from __future__ import annotations

from fastapi.testclient import TestClient


def _cells(data: dict) -> dict[str, dict]:
    return {c["date"]: c for c in data["cells"] if c is not None}


def test_health(test_client: TestClient) -> None:
    response = test_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestListClubs:
    def test_active_clubs_soonest_first(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs")
        assert response.status_code == 200
        assert [c["slug"] for c in response.json()] == ["easter-2025", "summer-week1-2025", "winter-2025"]

    def test_fields(self, test_client: TestClient) -> None:
        easter = test_client.get("/api/clubs").json()[0]
        assert easter["start_date"] == "2025-04-07"
        assert easter["end_date"] == "2025-04-17"
        assert easter["morning_start"] == "08:30:00"
        assert easter["min_age"] == 5
        assert easter["bookings_open"] is True


class TestGetClub:
    def test_includes_active_options_in_order(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/easter-2025")
        assert response.status_code == 200

        options = response.json()["booking_options"]
        assert [o["id"] for o in options] == [1, 2, 3, 4]
        assert options[0]["option_type"] == "full_week"
        assert options[3]["time_slot"] == "morning"

    def test_unknown_slug(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Club not found"

    def test_inactive_club_hidden(self, test_client: TestClient) -> None:
        assert test_client.get("/api/clubs/october-2024").status_code == 404


class TestClubCalendar:
    def test_month_grid(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 3})
        assert response.status_code == 200

        data = response.json()
        assert data["month"] == "2025-04"
        assert len(data["cells"]) == 35
        assert data["cells"][0] is None  # 1 April 2025 is a Tuesday
        assert data["can_go_back"] is False
        assert data["can_go_forward"] is False
        assert data["previous_month"] is None
        assert data["selected_dates"] == []

    def test_day_states(self, test_client: TestClient) -> None:
        data = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 3}).json()
        cells = _cells(data)

        assert cells["2025-04-01"]["state"] == "out_of_range"
        assert cells["2025-04-01"]["clickable"] is False
        assert cells["2025-04-08"]["state"] == "available"
        assert cells["2025-04-08"]["morning_status"] == "available"
        assert cells["2025-04-12"]["state"] == "unavailable"  # Saturday
        assert cells["2025-04-16"]["state"] == "unavailable"  # closed
        assert cells["2025-04-18"]["state"] == "out_of_range"

    def test_full_week_selects_every_available_day(self, test_client: TestClient) -> None:
        data = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 1}).json()
        assert data["selected_dates"] == [
            "2025-04-07",
            "2025-04-08",
            "2025-04-09",
            "2025-04-10",
            "2025-04-11",
            "2025-04-14",
            "2025-04-15",
            "2025-04-17",
        ]
        assert _cells(data)["2025-04-07"]["state"] == "selected"

    def test_selected_dates_no_longer_available_are_dropped(self, test_client: TestClient) -> None:
        response = test_client.get(
            "/api/clubs/easter-2025/calendar",
            params={"option_id": 3, "selected": ["2025-04-08", "2025-04-16"]},
        )
        data = response.json()
        assert data["selected_dates"] == ["2025-04-08"]
        assert _cells(data)["2025-04-08"]["state"] == "selected"

    def test_month_outside_club_is_clamped(self, test_client: TestClient) -> None:
        data = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 3, "month": "2025-09"}).json()
        assert data["month"] == "2025-04"

    def test_bad_month(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 3, "month": "April"})
        assert response.status_code == 400

    def test_option_from_another_club(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 6})
        assert response.status_code == 404
        assert response.json()["detail"] == "Booking option not found"

    def test_inactive_option(self, test_client: TestClient) -> None:
        assert test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 5}).status_code == 404

    def test_too_many_children(self, test_client: TestClient) -> None:
        response = test_client.get("/api/clubs/easter-2025/calendar", params={"option_id": 3, "children": 11})
        assert response.status_code == 400

    def test_days_without_room_for_all_children_are_unavailable(self, test_client: TestClient) -> None:
        # Two morning places a day, one taken by the existing full-week booking
        one = _cells(
            test_client.get("/api/clubs/summer-week1-2025/calendar", params={"option_id": 6, "children": 1}).json()
        )
        two = _cells(
            test_client.get("/api/clubs/summer-week1-2025/calendar", params={"option_id": 6, "children": 2}).json()
        )
        assert one["2025-07-21"]["state"] == "available"
        assert two["2025-07-21"]["state"] == "unavailable"
        assert two["2025-07-21"]["morning_status"] == "available"
