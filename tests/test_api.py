STATE = "/platform/state"


def test_health(api_client) -> None:
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "snapshot_saved_at": None}


def test_state_serves_baseline_before_first_sync(api_client) -> None:
    response = api_client.get("/api/state")
    assert response.status_code == 200
    body = response.json()
    assert len(body["projects"]) == 4
    assert "activityTimeline" in body
    assert body["assignments"] == {}


def test_refresh_applies_backend_state(api_client, transport, payload) -> None:
    transport.add("GET", STATE, body=payload)
    response = api_client.post("/api/state/refresh")
    assert response.status_code == 200
    assert response.json()["fallback"] is False

    projects = api_client.get("/api/projects").json()
    assert [p["id"] for p in projects] == ["1", "2"]
    assert projects[1]["finalScore"] == 92
    assert projects[0]["finalScore"] is None


def test_refresh_failure_returns_cached_state_with_502(api_client, transport) -> None:
    transport.fail("GET", STATE)
    response = api_client.post("/api/state/refresh")
    assert response.status_code == 502
    body = response.json()
    assert body["fallback"] is True
    assert body["error"] == "Cannot connect to the server. Showing the last saved data."
    assert len(body["state"]["projects"]) == 4


def test_read_views_after_refresh(api_client, transport, payload) -> None:
    transport.add("GET", STATE, body=payload)
    api_client.post("/api/state/refresh")

    assert [r["id"] for r in api_client.get("/api/projects/1/reviews").json()] == ["10"]
    assert [p["id"] for p in api_client.get("/api/reviewers/Jordan Smith/projects").json()] == ["1"]
    assert [n["id"] for n in api_client.get("/api/notifications", params={"unread": True}).json()] == ["1"]
    assert len(api_client.get("/api/notifications").json()) == 2
    assert api_client.get("/api/reviews/10/replies").json()[0]["text"] == "Thanks!"


def test_invalid_decision_is_rejected_without_backend_call(api_client, transport) -> None:
    response = api_client.post(
        "/api/projects/1/feedback",
        json={"action": "approve", "comment": "ok", "finalScore": 150, "completionPercentage": 50},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Final score must be between 0 and 100."}
    assert transport.requests == []


def test_upload_through_api_updates_live_state(api_client, transport, payload) -> None:
    transport.add("POST", "/projects", status=201, body={"id": 3, "title": "Site", "author": "Alex"})
    payload["projects"].append({"id": 3, "title": "Site", "author": "Alex", "status": "PENDING_REVIEW"})
    transport.add("GET", STATE, body=payload)

    response = api_client.post(
        "/api/projects",
        json={"title": "Site", "author": "Alex", "files": [{"name": "a.pdf", "size": 10}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["project"]["id"] == "3"
    assert "state" not in body
    assert transport.requests[0][2]["files"] == [{"name": "a.pdf", "size": 10}]
    assert [p["id"] for p in api_client.get("/api/projects").json()] == ["1", "2", "3"]


def test_backend_error_message_is_passed_through(api_client, transport) -> None:
    transport.add("POST", "/reviews/10/replies", status=500, body={"error": "disk full"})
    response = api_client.post("/api/reviews/10/replies", json={"text": "hi", "author": "Alex"})
    assert response.status_code == 400
    assert response.json()["error"] == "disk full"


def test_mark_notification_read(api_client, transport, payload) -> None:
    transport.add("PATCH", "/notifications/1/read", status=204)
    transport.add("GET", STATE, body=payload)
    response = api_client.patch("/api/notifications/1/read")
    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_tasks_lists_schedules(api_client, sync_app) -> None:
    sync_app.refresh_task.ensure_scheduled()
    body = api_client.get("/api/tasks").json()
    assert [row["task_name"] for row in body["db_schedules"]] == ["platform_refresh"]
    assert body["db_schedules"][0]["interval_seconds"] == 300
    assert body["active_timers"] == []


def test_single_project_lookup(api_client) -> None:
    assert api_client.get("/api/projects/2").json()["title"] == "Mobile App Prototype"
    missing = api_client.get("/api/projects/999")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Project 999 not found"}
