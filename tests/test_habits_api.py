from dataclasses import replace

from errors import StorageUnavailable


def test_create_habit_returns_record_with_progress(client, session_headers):
    resp = client.post("/api/habits", json={"name": "  Morning run ", "category": "Health & Fitness"}, headers=session_headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["name"] == "Morning run"
    assert body["userId"] == session_headers["X-Session-Id"]
    assert body["x1"] == 0 and body["x2"] == 0
    assert body["completedDates"] == [] and body["missedDates"] == []
    assert body["createdAt"] == "2024-03-01T09:30:00"
    assert body["lastTrackedDate"] is None
    assert body["progress"]["status"] == "struggling"
    assert body["progress"]["daysToHabit"] == 33
    assert body["progress"]["successRate"] == 0
    assert body["streak"] == 0


def test_create_habit_rejects_bad_input_with_field_errors(client, session_headers):
    resp = client.post("/api/habits", json={"name": "   ", "category": "Sleeping"}, headers=session_headers)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Invalid habit data"
    assert set(body["errors"]) == {"name", "category"}

    resp = client.post("/api/habits", data="not json", headers=session_headers)
    assert resp.status_code == 400


def test_requests_need_a_known_session(client):
    assert client.get("/api/habits").status_code == 401
    assert client.get("/api/habits", headers={"X-Session-Id": "user_nobody"}).status_code == 403


def test_list_reconciles_missed_days(client, session_headers, create_habit, clock):
    habit = create_habit()
    clock.advance(days=5)
    resp = client.get("/api/habits", headers=session_headers)
    assert resp.status_code == 200
    [listed] = resp.get_json()
    assert listed["id"] == habit["id"]
    assert listed["missedDates"] == ["2024-03-02", "2024-03-03", "2024-03-04", "2024-03-05"]
    assert listed["x2"] == 4

    again = client.get("/api/habits", headers=session_headers).get_json()
    assert again[0]["missedDates"] == listed["missedDates"]
    assert again[0]["x2"] == 4


def test_complete_is_idempotent_within_a_day(client, session_headers, create_habit, clock):
    habit = create_habit()
    first = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
    assert first.status_code == 200
    clock.advance(hours=3)
    second = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
    assert second.status_code == 200
    for body in (first.get_json(), second.get_json()):
        assert body["completedDates"] == ["2024-03-01"]
        assert body["x1"] == 1
        assert body["lastTrackedDate"] == "2024-03-01T09:30:00"
        assert body["streak"] == 1
        assert body["progress"]["successRate"] == 100


def test_complete_after_absence_records_missed_days_in_same_write(client, session_headers, create_habit, clock):
    habit = create_habit()
    clock.advance(days=3)
    body = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers).get_json()
    assert body["missedDates"] == ["2024-03-02", "2024-03-03"]
    assert body["completedDates"] == ["2024-03-04"]
    assert body["x1"] == 1 and body["x2"] == 2

    listed = client.get("/api/habits", headers=session_headers).get_json()
    assert listed[0]["missedDates"] == ["2024-03-02", "2024-03-03"]


def test_twenty_five_day_run_reaches_tipping_point(client, session_headers, create_habit, clock):
    habit = create_habit()
    for day in range(25):
        if day:
            clock.advance(days=1)
        resp = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
        assert resp.status_code == 200
    body = resp.get_json()
    assert body["missedDates"] == []
    assert body["streak"] == 25
    assert body["progress"]["successfulDays"] == 25
    assert body["progress"]["currentValue"] == 0.5
    assert body["progress"]["status"] == "building"
    assert body["progress"]["daysToHabit"] == 8


def test_failed_completion_write_changes_nothing(client, session_headers, create_habit, store, monkeypatch):
    habit = create_habit()

    def unavailable(*args, **kwargs):
        raise StorageUnavailable("down")

    monkeypatch.setattr(store, "save_habit", unavailable)
    resp = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
    assert resp.status_code == 503
    monkeypatch.undo()

    body = client.get(f"/api/habits/{habit['id']}", headers=session_headers).get_json()
    assert body["x1"] == 0
    assert body["completedDates"] == []
    assert body["lastTrackedDate"] is None


def test_failed_reconciliation_write_still_serves_habits(client, session_headers, create_habit, store, clock, monkeypatch):
    create_habit()
    clock.advance(days=4)

    def unavailable(*args, **kwargs):
        raise StorageUnavailable("down")

    monkeypatch.setattr(store, "save_habit", unavailable)
    resp = client.get("/api/habits", headers=session_headers)
    assert resp.status_code == 200
    assert resp.get_json()[0]["missedDates"] == []
    monkeypatch.undo()

    retried = client.get("/api/habits", headers=session_headers).get_json()
    assert retried[0]["missedDates"] == ["2024-03-02", "2024-03-03", "2024-03-04"]


def test_get_update_and_delete_habit(client, session_headers, create_habit):
    habit = create_habit()
    url = f"/api/habits/{habit['id']}"
    assert client.get(url, headers=session_headers).get_json()["name"] == "Morning run"

    resp = client.patch(url, json={"name": "Evening run"}, headers=session_headers)
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Evening run"
    assert resp.get_json()["category"] == "Health & Fitness"

    resp = client.patch(url, json={"category": "Cooking"}, headers=session_headers)
    assert resp.status_code == 400
    assert "category" in resp.get_json()["errors"]

    resp = client.delete(url, headers=session_headers)
    assert resp.status_code == 200
    assert client.get(url, headers=session_headers).status_code == 404
    assert client.delete(url, headers=session_headers).status_code == 404
    assert client.post(f"{url}/complete", headers=session_headers).status_code == 404


def test_other_sessions_cannot_reach_a_habit(client, session_headers, create_habit):
    habit = create_habit()
    other = client.post("/api/sessions", json={"name": "Someone else"}).get_json()
    headers = {"X-Session-Id": other["id"]}
    assert client.get("/api/habits", headers=headers).get_json() == []
    assert client.get(f"/api/habits/{habit['id']}", headers=headers).status_code == 404
    assert client.post(f"/api/habits/{habit['id']}/complete", headers=headers).status_code == 404
    assert client.delete(f"/api/habits/{habit['id']}", headers=headers).status_code == 404


def test_graph_endpoint(client, session_headers, create_habit):
    habit = create_habit()
    client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
    body = client.get(f"/api/habits/{habit['id']}/graph", headers=session_headers).get_json()
    assert len(body["habitData"]) == 67
    assert body["currentPoint"]["x"] == 1


def test_overall_streak_endpoint(client, session_headers, create_habit, clock):
    run = create_habit()
    read = create_habit(name="Read", category="Learning")
    client.post(f"/api/habits/{run['id']}/complete", headers=session_headers)
    clock.advance(days=1)
    client.post(f"/api/habits/{read['id']}/complete", headers=session_headers)
    body = client.get("/api/habits/streak", headers=session_headers).get_json()
    assert body == {"streak": 2}


def test_health_reports_storage(client, app):
    body = client.get("/api/health").get_json()
    assert body == {"status": "ok", "storage": app.config["STORAGE_BACKEND"]}


def _serve_stale_habit(store, session_headers, habit_id, monkeypatch):
    stale = store.get_habit(habit_id, session_headers["X-Session-Id"])
    store.save_habit(replace(stale, name="Renamed elsewhere"), expected_version=stale.version)
    monkeypatch.setattr(store, "get_habit", lambda *args, **kwargs: stale)


def test_complete_with_stale_version_is_rejected(client, session_headers, create_habit, store, monkeypatch):
    habit = create_habit()
    _serve_stale_habit(store, session_headers, habit["id"], monkeypatch)
    resp = client.post(f"/api/habits/{habit['id']}/complete", headers=session_headers)
    assert resp.status_code == 409
    monkeypatch.undo()

    body = client.get(f"/api/habits/{habit['id']}", headers=session_headers).get_json()
    assert body["name"] == "Renamed elsewhere"
    assert body["completedDates"] == []
    assert body["x1"] == 0


def test_update_with_stale_version_is_rejected(client, session_headers, create_habit, store, monkeypatch):
    habit = create_habit()
    _serve_stale_habit(store, session_headers, habit["id"], monkeypatch)
    resp = client.patch(f"/api/habits/{habit['id']}", json={"name": "Evening run"}, headers=session_headers)
    assert resp.status_code == 409
    monkeypatch.undo()

    body = client.get(f"/api/habits/{habit['id']}", headers=session_headers).get_json()
    assert body["name"] == "Renamed elsewhere"


def test_list_skips_habit_deleted_mid_reconciliation(client, session_headers, create_habit, store, clock, monkeypatch):
    gone = create_habit(name="Read", category="Learning")
    kept = create_habit()
    clock.advance(days=3)
    listing = store.list_habits

    def list_then_delete(user_id):
        habits = listing(user_id)
        store.delete_habit(gone["id"], user_id)
        return habits

    monkeypatch.setattr(store, "list_habits", list_then_delete)
    for url in ("/api/habits", "/api/habits/streak", "/api/habits/analysis"):
        assert client.get(url, headers=session_headers).status_code == 200
    monkeypatch.undo()

    listed = client.get("/api/habits", headers=session_headers).get_json()
    assert [h["id"] for h in listed] == [kept["id"]]
