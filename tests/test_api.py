import inspect
from datetime import date

from fastapi.routing import APIRoute

from content import QUOTES
from main import get_current_user
from scheduling import DEFAULT_TEMPLATE

MEDITATE = {"title": "Meditate", "startTime": "07:00", "endTime": "07:30", "date": "2024-06-01"}


def test_root(client):
    assert client.get("/").status_code == 200


def test_version(client):
    assert client.get("/api/version").json() == {"version": "0.1.0"}


def test_database_report(client):
    assert client.get("/test").json()["connection_status"] == "Connected"


def test_missing_credentials_are_unauthorized(client, db):
    for method, path in [("get", "/api/activities"), ("get", "/api/habits"), ("get", "/api/journal"),
                         ("post", "/api/activities"), ("get", "/api/me")]:
        res = getattr(client, method)(path)
        assert res.status_code == 401
        assert res.json() == {"message": "Unauthorized"}

    assert db["user"].count_documents({}) == 0
    assert db["activity"].count_documents({}) == 0


def test_invalid_token_is_unauthorized(client):
    res = client.get("/api/activities", headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401
    assert res.json() == {"message": "Unauthorized"}


def test_create_then_list(client, headers_for):
    headers = headers_for()
    res = client.post("/api/activities", json=MEDITATE, headers=headers)

    assert res.status_code == 201
    created = res.json()
    assert created["id"]
    assert created["completed"] is False
    assert created["startTime"] == "07:00"

    listed = client.get("/api/activities", params={"date": "2024-06-01"}, headers=headers).json()
    assert listed == [created]


def test_request_seeds_todays_template(client, headers_for):
    today = date.today().isoformat()
    listed = client.get("/api/activities", params={"date": today}, headers=headers_for()).json()

    assert len(listed) == len(DEFAULT_TEMPLATE)
    assert {a["title"] for a in listed} == {t.title for t in DEFAULT_TEMPLATE}

    # a second request does not add another set
    again = client.get("/api/activities", params={"date": today}, headers=headers_for()).json()
    assert len(again) == len(DEFAULT_TEMPLATE)


def test_cross_midnight_activity_is_accepted(client, headers_for):
    res = client.post("/api/activities", json={**MEDITATE, "startTime": "23:00", "endTime": "02:00"},
                      headers=headers_for())
    assert res.status_code == 201
    assert (res.json()["startTime"], res.json()["endTime"]) == ("23:00", "02:00")


def test_validation_errors_are_400_with_field(client, headers_for):
    res = client.post("/api/activities", json={**MEDITATE, "startTime": "7am"}, headers=headers_for())
    assert res.status_code == 400
    assert res.json()["field"] == "startTime"
    assert res.json()["message"]

    res = client.post("/api/activities", json={k: v for k, v in MEDITATE.items() if k != "title"},
                      headers=headers_for())
    assert res.status_code == 400
    assert res.json()["field"] == "title"


def test_bad_date_filter_is_400(client, headers_for):
    res = client.get("/api/activities", params={"date": "06/01/2024"}, headers=headers_for())
    assert res.status_code == 400


def test_partial_update(client, headers_for):
    headers = headers_for()
    created = client.post("/api/activities", json={**MEDITATE, "title": "A", "description": "B"},
                          headers=headers).json()

    res = client.patch(f"/api/activities/{created['id']}", json={"completed": True}, headers=headers)

    assert res.status_code == 200
    body = res.json()
    assert (body["title"], body["description"], body["completed"]) == ("A", "B", True)

    res = client.put(f"/api/activities/{created['id']}", json={"endTime": "08:00"}, headers=headers)
    assert res.json()["endTime"] == "08:00"
    assert res.json()["completed"] is True


def test_other_user_gets_not_found(client, headers_for):
    owner, intruder = headers_for("user-a"), headers_for("user-b")
    created = client.post("/api/activities", json=MEDITATE, headers=owner).json()

    res = client.put(f"/api/activities/{created['id']}", json={"title": "Mine"}, headers=intruder)
    assert res.status_code == 404
    assert "Mine" not in res.text
    assert client.delete(f"/api/activities/{created['id']}", headers=intruder).status_code == 404
    listed = client.get("/api/activities", params={"date": "2024-06-01"}, headers=intruder).json()
    assert listed == []

    still = client.get("/api/activities", params={"date": "2024-06-01"}, headers=owner).json()
    assert still[0]["title"] == "Meditate"


def test_delete_activity(client, headers_for):
    headers = headers_for()
    created = client.post("/api/activities", json=MEDITATE, headers=headers).json()

    res = client.delete(f"/api/activities/{created['id']}", headers=headers)
    assert res.status_code == 204
    assert res.content == b""
    assert client.delete(f"/api/activities/{created['id']}", headers=headers).status_code == 404
    assert client.delete("/api/activities/not-an-id", headers=headers).status_code == 404


def test_habit_lifecycle(client, headers_for):
    headers = headers_for()
    res = client.post("/api/habits", json={"title": "Stretch", "description": "5 minutes"}, headers=headers)
    assert res.status_code == 201
    habit = res.json()
    assert habit["streak"] == 0

    for _ in range(2):
        res = client.post(f"/api/habits/{habit['id']}/log", json={"completionDate": "2024-06-01"},
                          headers=headers)
        assert res.status_code == 200
        assert res.json()["completedDate"] == "2024-06-01"
        assert res.json()["habitId"] == habit["id"]

    listed = client.get("/api/habits", headers=headers).json()
    assert listed[0]["streak"] == 2
    assert len(listed[0]["logs"]) == 2

    logs = client.get(f"/api/habits/{habit['id']}/logs", headers=headers).json()
    assert [log["completedDate"] for log in logs] == ["2024-06-01", "2024-06-01"]


def test_habit_log_accepts_date_key(client, headers_for):
    headers = headers_for()
    habit = client.post("/api/habits", json={"title": "Stretch"}, headers=headers).json()

    res = client.post(f"/api/habits/{habit['id']}/log", json={"date": "2024-06-02"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["completedDate"] == "2024-06-02"


def test_habit_update_leaves_streak(client, headers_for):
    headers = headers_for()
    habit = client.post("/api/habits", json={"title": "Stretch"}, headers=headers).json()
    client.post(f"/api/habits/{habit['id']}/log", json={"completionDate": "2024-06-01"}, headers=headers)

    res = client.put(f"/api/habits/{habit['id']}", json={"title": "Yoga", "streak": 50}, headers=headers)

    assert res.status_code == 200
    assert res.json()["title"] == "Yoga"
    assert res.json()["streak"] == 1


def test_logging_someone_elses_habit_is_404(client, headers_for):
    habit = client.post("/api/habits", json={"title": "Stretch"}, headers=headers_for("user-a")).json()

    res = client.post(f"/api/habits/{habit['id']}/log", json={"completionDate": "2024-06-01"},
                      headers=headers_for("user-b"))
    assert res.status_code == 404
    assert client.get(f"/api/habits/{habit['id']}/logs", headers=headers_for("user-b")).status_code == 404


def test_delete_habit_cascades(client, headers_for, db):
    headers = headers_for()
    habit = client.post("/api/habits", json={"title": "Stretch"}, headers=headers).json()
    for day in ["2024-06-01", "2024-06-02"]:
        client.post(f"/api/habits/{habit['id']}/log", json={"completionDate": day}, headers=headers)

    assert client.delete(f"/api/habits/{habit['id']}", headers=headers).status_code == 204
    assert db["habitlog"].count_documents({"habit_id": habit["id"]}) == 0
    assert client.get("/api/habits", headers=headers).json() == []
    assert client.delete(f"/api/habits/{habit['id']}", headers=headers).status_code == 404


def test_journal_lifecycle(client, headers_for):
    headers = headers_for()
    res = client.post("/api/journal", json={"content": "Calm morning", "mood": "Peaceful", "date": "2024-06-01"},
                      headers=headers)
    assert res.status_code == 201
    entry = res.json()
    assert entry["createdAt"]

    listed = client.get("/api/journal", params={"date": "2024-06-01"}, headers=headers).json()
    assert [e["id"] for e in listed] == [entry["id"]]
    assert client.get("/api/journal", params={"date": "2024-06-02"}, headers=headers).json() == []

    res = client.patch(f"/api/journal/{entry['id']}", json={"mood": "Grateful"}, headers=headers)
    assert res.json()["mood"] == "Grateful"
    assert res.json()["content"] == "Calm morning"

    assert client.delete(f"/api/journal/{entry['id']}", headers=headers).status_code == 204
    assert client.delete(f"/api/journal/{entry['id']}", headers=headers).status_code == 404


def test_journal_requires_content(client, headers_for):
    res = client.post("/api/journal", json={"content": "", "date": "2024-06-01"}, headers=headers_for())
    assert res.status_code == 400
    assert res.json()["field"] == "content"


def test_profile_and_notifications(client, headers_for):
    headers = headers_for("uid-9", email="nine@example.com", name="Nine", picture="http://img/9.png")

    me = client.get("/api/me", headers=headers).json()
    assert me["id"] == "uid-9"
    assert me["displayName"] == "Nine"
    assert me["avatarUrl"] == "http://img/9.png"
    assert me["notifications"] == {"enabled": True, "leadTimeMinutes": 5}

    res = client.put("/api/me/notifications", json={"enabled": False, "leadTimeMinutes": 10}, headers=headers)
    assert res.json()["notifications"] == {"enabled": False, "leadTimeMinutes": 10}

    # later requests refresh the profile but keep the preference
    me = client.get("/api/me", headers=headers_for("uid-9", email="nine@example.com", name="Niner")).json()
    assert me["displayName"] == "Niner"
    assert me["notifications"] == {"enabled": False, "leadTimeMinutes": 10}


def test_quote_of_the_day(client):
    res = client.get("/api/quote", params={"date": "2024-06-03"})
    assert res.json() == QUOTES[3 % len(QUOTES)]
    assert client.get("/api/quote").status_code == 200
    assert client.get("/api/quote", params={"date": "2024-13-40"}).status_code == 400


def test_moods(client):
    labels = [m["label"] for m in client.get("/api/moods").json()]
    assert labels == ["Peaceful", "Happy", "Reflective", "Stressed", "Grateful"]


def test_unknown_route_uses_message_body(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.json() == {"message": "Not Found"}


def test_store_backed_handlers_run_in_threadpool(client):
    # pymongo blocks, so nothing that touches the store may run on the event loop
    assert not inspect.iscoroutinefunction(get_current_user)
    routes = [r for r in client.app.routes if isinstance(r, APIRoute)]
    assert routes
    for route in routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
