import pytest

EXAM_DAY = "2030-01-08"


@pytest.fixture
def resources(seed):
    seed.staff("s1", "Dr. Amrani", windows=[{"day": "Tuesday", "start_time": "09:00", "end_time": "12:00"}])
    seed.staff("s2", "Ms. Haddad")
    seed.staff("s3", "Mr. Belkacem", windows=[])
    seed.room("r1", "A101", 30)
    seed.room("r2", "Amphi B", 120)
    seed.group("g1", "L1-A", 20)
    seed.group("g2", "L1-B", 15)
    seed.subject("math", "MATH101", ["g1"])


def check(client, **body):
    payload = {"date": EXAM_DAY, "start_time": "09:00", "end_time": "11:00"}
    payload.update(body)
    response = client.post("/api/availability/check", json=payload)
    assert response.status_code == 200
    return response.json()


def test_staff_check_follows_weekly_rule(client, resources):
    assert check(client, resource_kind="staff", resource_id="s1")["ok"] is True

    denied = check(client, resource_kind="staff", resource_id="s1", start_time="11:30", end_time="13:00")
    assert denied["ok"] is False
    assert denied["kind"] == "availability_denied"


def test_staff_without_configuration_is_unavailable(client, resources):
    result = check(client, resource_kind="staff", resource_id="s3")
    assert result["ok"] is False
    assert "no availability configured for Tuesday" in result["reason"]


def test_unknown_resource_and_reversed_interval(client, resources):
    assert check(client, resource_kind="room", resource_id="nope")["kind"] == "resource_not_found"
    reversed_interval = check(client, resource_kind="room", resource_id="r1", start_time="12:00", end_time="10:00")
    assert reversed_interval["kind"] == "invalid_interval"


def test_room_check_sees_existing_bookings_and_exclusion(client, resources):
    created = client.post(
        "/api/sessions",
        json={
            "subject_id": "math",
            "session_date": EXAM_DAY,
            "start_time": "09:00",
            "end_time": "11:00",
            "room_id": "r1",
            "group_ids": ["g1"],
            "supervisor_ids": ["s1"],
        },
    ).json()

    booked = check(client, resource_kind="room", resource_id="r1", start_time="10:00", end_time="12:00")
    assert booked["kind"] == "booking_conflict"
    assert booked["details"]["conflicting_start"] == "09:00"

    editing = check(
        client,
        resource_kind="room",
        resource_id="r1",
        start_time="10:00",
        end_time="12:00",
        exclude_session_id=created["id"],
    )
    assert editing["ok"] is True

    staff = client.get(
        "/api/availability/staff",
        params={"date": EXAM_DAY, "start_time": "10:00", "end_time": "11:00"},
    ).json()
    by_id = {item["resource_id"]: item for item in staff}
    assert by_id["s1"]["kind"] == "booking_conflict"
    assert by_id["s1"]["daily_sessions"] == 1
    assert by_id["s1"]["weekly_sessions"] == 1
    assert by_id["s2"]["ok"] is True
    assert staff[0]["resource_id"] == "s2"


def test_room_and_group_listings(client, resources):
    rooms = client.get(
        "/api/availability/rooms",
        params={"date": EXAM_DAY, "start_time": "09:00", "end_time": "11:00", "min_capacity": 35},
    ).json()
    assert [item["resource_id"] for item in rooms] == ["r2"]
    assert rooms[0]["capacity"] == 120

    groups = client.get(
        "/api/availability/groups",
        params={"date": EXAM_DAY, "start_time": "09:00", "end_time": "11:00"},
    ).json()
    assert {item["resource_id"] for item in groups} == {"g1", "g2"}
    assert all(item["ok"] for item in groups)


def test_listing_with_reversed_interval_flags_every_entry(client, resources):
    rooms = client.get(
        "/api/availability/rooms",
        params={"date": EXAM_DAY, "start_time": "11:00", "end_time": "09:00"},
    ).json()
    assert rooms
    assert all(item["kind"] == "invalid_interval" for item in rooms)


def test_listing_rejects_malformed_times_like_the_check_endpoint(client, resources):
    listing = client.get(
        "/api/availability/rooms",
        params={"date": EXAM_DAY, "start_time": "9am", "end_time": "11:00"},
    )
    assert listing.status_code == 422

    posted = client.post(
        "/api/availability/check",
        json={"resource_kind": "room", "resource_id": "r1", "date": EXAM_DAY, "start_time": "9am", "end_time": "11:00"},
    )
    assert posted.status_code == 422
