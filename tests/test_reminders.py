from datetime import datetime, timedelta

import pytest


@pytest.fixture
def plant(client, headers):
    return client.post("/api/plants", json={"name": "Fern"}, headers=headers).get_json()


def in_hours(hours):
    return (datetime.utcnow() + timedelta(hours=hours)).isoformat()


def add_reminder(client, headers, plant, hours, type="watering", **extra):
    body = {"plantId": plant["id"], "type": type, "dueDate": in_hours(hours)}
    body.update(extra)
    resp = client.post("/api/reminders", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_create_reminder(client, headers, plant):
    reminder = add_reminder(client, headers, plant, 48, notes="Use rain water")
    assert reminder["completed"] is False
    assert reminder["plantId"] == plant["id"]
    assert reminder["plant"]["name"] == "Fern"
    assert reminder["notes"] == "Use rain water"
    assert reminder["status"] == "on_time"


def test_create_reminder_validation(client, headers, plant):
    post = lambda body: client.post("/api/reminders", json=body, headers=headers)
    assert post({"type": "watering", "dueDate": in_hours(1)}).status_code == 400
    assert post({"plantId": plant["id"], "type": "singing", "dueDate": in_hours(1)}).status_code == 400
    assert post({"plantId": plant["id"], "type": "watering", "dueDate": "soon"}).status_code == 400
    assert post({"plantId": "abc", "type": "watering", "dueDate": in_hours(1)}).status_code == 400
    assert post({"plantId": 999, "type": "watering", "dueDate": in_hours(1)}).status_code == 404


def test_cannot_attach_reminder_to_someone_elses_plant(client, headers, other_headers, plant):
    resp = client.post("/api/reminders", json={"plantId": plant["id"], "type": "watering",
                                               "dueDate": in_hours(5)}, headers=other_headers)
    assert resp.status_code == 404


def test_due_soon_scenario(client, headers, plant):
    reminder = add_reminder(client, headers, plant, 10)
    assert reminder["status"] == "due_soon"

    done = client.patch(f"/api/reminders/{reminder['id']}/complete", headers=headers)
    assert done.status_code == 200
    assert done.get_json()["completed"] is True
    assert done.get_json()["status"] == "on_time"


def test_list_is_sorted_by_due_date(client, headers, plant):
    add_reminder(client, headers, plant, 72, type="repotting")
    add_reminder(client, headers, plant, -5, type="pruning")
    add_reminder(client, headers, plant, 3, type="fertilizing")

    reminders = client.get("/api/reminders", headers=headers).get_json()
    assert [r["type"] for r in reminders] == ["pruning", "fertilizing", "repotting"]
    assert [r["status"] for r in reminders] == ["overdue", "due_soon", "on_time"]


def test_due_endpoint_returns_one_notification(client, headers, plant):
    add_reminder(client, headers, plant, 2)
    add_reminder(client, headers, plant, -2, type="pruning")
    add_reminder(client, headers, plant, 96, type="repotting")
    finished = add_reminder(client, headers, plant, 1, type="other")
    client.patch(f"/api/reminders/{finished['id']}/complete", headers=headers)

    body = client.get("/api/reminders/due", headers=headers).get_json()
    assert sorted(r["type"] for r in body["reminders"]) == ["pruning", "watering"]
    assert body["notification"] == "You have 2 reminders that are due soon or overdue!"


def test_due_endpoint_without_due_reminders(client, headers, plant):
    add_reminder(client, headers, plant, 100)
    body = client.get("/api/reminders/due", headers=headers).get_json()
    assert body == {"reminders": [], "notification": None}


def test_schedule(client, headers, plant):
    add_reminder(client, headers, plant, 24)
    add_reminder(client, headers, plant, 24 * 10, type="fertilizing")

    events = client.get("/api/reminders/schedule", headers=headers).get_json()
    assert [e["title"] for e in events] == ["Watering - Fern", "Fertilizing - Fern"]

    limited = client.get("/api/reminders/schedule", headers=headers,
                         query_string={"end": in_hours(24 * 5)}).get_json()
    assert [e["title"] for e in limited] == ["Watering - Fern"]

    assert client.get("/api/reminders/schedule", headers=headers,
                      query_string={"start": "whenever"}).status_code == 400


def test_update_reminder(client, headers, plant):
    reminder = add_reminder(client, headers, plant, 48)
    new_due = "2030-01-01T09:00:00Z"
    resp = client.put(f"/api/reminders/{reminder['id']}", headers=headers,
                      json={"type": "fertilizing", "dueDate": new_due, "notes": "Half strength"})
    updated = resp.get_json()
    assert updated["type"] == "fertilizing"
    assert updated["dueDate"] == "2030-01-01T09:00:00"
    assert updated["notes"] == "Half strength"

    assert client.put(f"/api/reminders/{reminder['id']}", headers=headers,
                      json={"type": "dancing"}).status_code == 400


def test_reminders_are_owner_scoped(client, headers, other_headers, plant):
    reminder = add_reminder(client, headers, plant, 5)
    url = f"/api/reminders/{reminder['id']}"

    assert client.get("/api/reminders", headers=other_headers).get_json() == []
    assert client.get(url, headers=other_headers).status_code == 404
    assert client.put(url, json={"notes": "x"}, headers=other_headers).status_code == 404
    assert client.patch(f"{url}/complete", headers=other_headers).status_code == 404
    assert client.delete(url, headers=other_headers).status_code == 404
    assert client.get(url, headers=headers).status_code == 200


def test_delete_reminder(client, headers, plant):
    reminder = add_reminder(client, headers, plant, 5)
    resp = client.delete(f"/api/reminders/{reminder['id']}", headers=headers)
    assert resp.get_json() == {"message": "Reminder removed"}
    assert client.get(f"/api/reminders/{reminder['id']}", headers=headers).status_code == 404
    # The plant is untouched.
    assert client.get(f"/api/plants/{plant['id']}", headers=headers).status_code == 200


def test_hours_until_due_is_reported(client, headers, plant):
    reminder = add_reminder(client, headers, plant, 10)
    assert reminder["hoursUntilDue"] in (9, 10)

    overdue = add_reminder(client, headers, plant, -3)
    assert overdue["hoursUntilDue"] in (-3, -2)


def test_cannot_move_reminder_to_someone_elses_plant(client, headers, other_headers, plant):
    reminder = add_reminder(client, headers, plant, 48)
    foreign = client.post("/api/plants", json={"name": "Cactus"}, headers=other_headers).get_json()

    resp = client.put(f"/api/reminders/{reminder['id']}", json={"plantId": foreign["id"]}, headers=headers)
    assert resp.status_code == 404

    unchanged = client.get(f"/api/reminders/{reminder['id']}", headers=headers).get_json()
    assert unchanged["plantId"] == plant["id"]
