from __future__ import annotations

from typing import Optional

from fastapi.testclient import TestClient

DAY = "2024-01-08"


def work(start: str, end: str, issue: str, description: str) -> dict:
    return {"kind": "work", "start": start, "end": end, "issue": {"ident": issue}, "description": description}


def post_action(client: TestClient, action: dict, day: str = DAY):
    return client.post(f"/days/{day}/actions", json={"action": action})


def set_issue(client: TestClient, ident: Optional[str], default_action: Optional[str] = None, day: str = DAY):
    issue = {"ident": ident, "default_action": default_action} if ident else None
    return client.put(f"/days/{day}/active-issue", json={"issue": issue})


def record_interleaved_day(client: TestClient) -> None:
    assert post_action(client, {"kind": "day_start", "ts": "855", "location": "home"}).status_code == 201
    assert set_issue(client, "d-15", "dev").status_code == 200
    assert post_action(client, work("10:00", "10:10", "A-1", "review")).status_code == 201
    assert post_action(client, work("11:00", "11:21", "a-1", "review")).status_code == 201
    assert post_action(client, {"kind": "day_end", "ts": "12:00"}).status_code == 201


def test_healthz(client: TestClient):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_record_and_read_day(client: TestClient):
    resp = post_action(client, {"kind": "day_start", "ts": "9", "location": "home"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["day"] == DAY
    assert data["main_location"] == "home"
    assert data["actions"] == [{"kind": "day_start", "ts": "09:00", "location": "home"}]

    post_action(client, work("10", "1030", "abc-1", "call"))
    post_action(client, {"kind": "work_start", "ts": "9:30", "issue": {"ident": "B-2"}, "description": "dev"})

    day_resp = client.get(f"/days/{DAY}")
    assert day_resp.status_code == 200
    actions = day_resp.json()["actions"]
    assert [a["kind"] for a in actions] == ["day_start", "work_start", "work"]
    assert actions[2]["issue"]["ident"] == "ABC-1"
    assert actions[2]["start"] == "10:00"
    assert actions[2]["end"] == "10:30"


def test_unknown_day_is_empty(client: TestClient):
    resp = client.get("/days/2030-05-05")
    assert resp.status_code == 200
    data = resp.json()
    assert data["actions"] == []
    assert data["active_issue"] is None
    assert data["main_location"] == "office"


def test_duplicate_entry_conflicts(client: TestClient):
    assert post_action(client, work("10:00", "10:10", "A-1", "review")).status_code == 201

    resp = post_action(client, work("10:00", "10:10", "B-7", "other"))

    assert resp.status_code == 409
    assert resp.json()["detail"] == "An entry at 10:00 already exists"
    assert len(client.get(f"/days/{DAY}").json()["actions"]) == 1


def test_invalid_actions_are_rejected(client: TestClient):
    assert post_action(client, work("11:00", "10:00", "A-1", "backwards")).status_code == 400
    assert post_action(client, work("10:00", "11:00", "nope", "bad issue")).status_code == 422
    assert post_action(client, {"kind": "day_end", "ts": "25:00"}).status_code == 422
    assert post_action(client, {"kind": "lunch", "ts": "12:00"}).status_code == 422


def test_remove_action(client: TestClient):
    entry = work("10:00", "10:10", "A-1", "review")
    post_action(client, entry)

    resp = client.request("DELETE", f"/days/{DAY}/actions", json={"action": entry})
    assert resp.status_code == 204
    assert client.get(f"/days/{DAY}").json()["actions"] == []

    again = client.request("DELETE", f"/days/{DAY}/actions", json={"action": entry})
    assert again.status_code == 404
    assert again.json()["detail"] == "Entry not found"


def test_remove_from_unknown_day(client: TestClient):
    resp = client.request("DELETE", "/days/2030-05-05/actions", json={"action": {"kind": "day_end", "ts": "12"}})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Day not found"


def test_active_issue_can_be_cleared(client: TestClient):
    assert set_issue(client, "d-15", "dev").json()["active_issue"]["ident"] == "D-15"
    resp = set_issue(client, None)
    assert resp.status_code == 200
    assert resp.json()["active_issue"] is None


def test_normalized_day(client: TestClient):
    record_interleaved_day(client)

    resp = client.get(f"/days/{DAY}/normalized")

    assert resp.status_code == 200
    data = resp.json()
    assert data["date"] == DAY
    assert data["entries"] == [
        {"start": "09:00", "end": "11:30", "issue": "D-15", "description": "dev"},
        {"start": "11:30", "end": "12:00", "issue": "A-1", "description": "review"},
    ]
    assert data["orig_breaks"]["work_minutes"] == 185
    assert data["orig_breaks"]["break_minutes"] == 0
    assert data["final_breaks"]["work_minutes"] == 180
    assert data["final_breaks"]["work_time"] == "+3h"


def test_day_export_text(client: TestClient):
    record_interleaved_day(client)

    resp = client.get(f"/days/{DAY}/export")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text == "2024-01-08|09:00|11:30|D-15|dev\n2024-01-08|11:30|12:00|A-1|review\n"


def test_settings_change_normalization(client: TestClient):
    record_interleaved_day(client)

    resp = client.put("/settings", json={"combine_bookings": False})
    assert resp.status_code == 200
    assert resp.json()["combine_bookings"] is False

    lines = client.get(f"/days/{DAY}/export").text.splitlines()
    assert lines == [
        "2024-01-08|09:00|10:00|D-15|dev",
        "2024-01-08|10:00|10:15|A-1|review",
        "2024-01-08|10:15|11:00|D-15|dev",
        "2024-01-08|11:00|11:15|A-1|review",
        "2024-01-08|11:15|12:00|D-15|dev",
    ]


def test_long_day_gets_default_break(client: TestClient):
    post_action(client, {"kind": "day_start", "ts": "8"})
    set_issue(client, "D-15", "dev")
    post_action(client, {"kind": "day_end", "ts": "17"})

    data = client.get(f"/days/{DAY}/normalized").json()

    assert [(e["start"], e["end"]) for e in data["entries"]] == [("08:00", "12:00"), ("12:45", "17:00")]
    assert data["final_breaks"]["breaks"] == [{"start": "12:00", "end": "12:45"}]


def test_normalization_errors(client: TestClient):
    post_action(client, {"kind": "day_end", "ts": "17"})
    resp = client.get(f"/days/{DAY}/normalized")
    assert resp.status_code == 422
    assert "Unmatched DayEnd" in resp.json()["detail"]

    other = "2024-01-09"
    post_action(client, {"kind": "day_start", "ts": "9"}, day=other)
    post_action(client, {"kind": "day_end", "ts": "12"}, day=other)
    resp = client.get(f"/days/{other}/normalized")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "2024-01-09: Unbooked times: 09:00-12:00"


def test_normalizing_unknown_day(client: TestClient):
    resp = client.get("/days/2030-05-05/normalized")
    assert resp.status_code == 404


def test_new_day_carries_over_location_and_issue(client: TestClient):
    post_action(client, {"kind": "day_start", "ts": "9", "location": "home"})
    post_action(client, {"kind": "work_start", "ts": "9:30", "issue": {"ident": "X-7"}, "description": "dev"})
    post_action(client, {"kind": "day_end", "ts": "17"})

    next_day = client.get("/days/2024-01-09").json()
    assert next_day["main_location"] == "home"
    assert next_day["active_issue"]["ident"] == "X-7"
    assert next_day["active_issue"]["default_action"] == "dev"

    much_later = client.get("/days/2024-01-20").json()
    assert much_later["main_location"] == "office"
    assert much_later["active_issue"] is None


def test_ended_issue_is_not_carried_over(client: TestClient):
    post_action(client, {"kind": "day_start", "ts": "9"})
    post_action(client, {"kind": "work_start", "ts": "9:30", "issue": {"ident": "X-7"}, "description": "dev"})
    post_action(client, {"kind": "work_end", "ts": "16", "issue": {"ident": "X-7"}})
    post_action(client, {"kind": "day_end", "ts": "17"})

    assert client.get("/days/2024-01-09").json()["active_issue"] is None


def test_export_range_and_download(client: TestClient):
    record_interleaved_day(client)

    resp = client.post("/exports", json={"range_start": "2024-01-01", "range_end": "2024-01-31"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["type"] == "timesheet"
    assert data["format"] == "txt"
    assert data["range_start"] == "2024-01-01"
    assert len(data["checksum"]) == 64
    assert data["created_at"].endswith("+00:00")

    download = client.get(f"/exports/{data['id']}")
    assert download.status_code == 200
    assert download.text == "2024-01-08|09:00|11:30|D-15|dev\n2024-01-08|11:30|12:00|A-1|review\n"


def test_export_validation(client: TestClient):
    bad_range = client.post("/exports", json={"range_start": "2024-02-01", "range_end": "2024-01-01"})
    assert bad_range.status_code == 400

    bad_format = client.post(
        "/exports", json={"range_start": "2024-01-01", "range_end": "2024-01-31", "format": "pdf"}
    )
    assert bad_format.status_code == 422

    assert client.get("/exports/9999").status_code == 404


def test_export_fails_on_broken_day(client: TestClient):
    post_action(client, {"kind": "day_start", "ts": "9"})

    resp = client.post("/exports", json={"range_start": DAY, "range_end": DAY})

    assert resp.status_code == 422
    assert "Missing DayEnd" in resp.json()["detail"]


def test_settings_roundtrip(client: TestClient):
    resp = client.get("/settings")
    assert resp.status_code == 200
    assert resp.json()["resolution_minutes"] == 15

    update = client.put("/settings", json={"resolution_minutes": 30, "default_break_start": "1130"})
    assert update.status_code == 200
    data = update.json()
    assert data["resolution_minutes"] == 30
    assert data["default_break_start"] == "11:30"
    assert client.get("/settings").json()["resolution_minutes"] == 30

    assert client.put("/settings", json={"resolution_minutes": 0}).status_code == 422


def test_settings_are_restored_between_tests(client: TestClient):
    assert client.get("/settings").json()["resolution_minutes"] == 15
