from helpers import API, register


def _lead(client, headers, name, status="new", source="website"):
    response = client.post(f"{API}/leads/", json={
        "name": name, "phone": "+7 700 000 00 00", "status": status, "source": source,
    }, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_lead_defaults(client, headers):
    response = client.post(f"{API}/leads/", json={"name": "Maria", "phone": "+7 701"}, headers=headers)
    lead = response.json()
    assert lead["status"] == "new"
    assert lead["source"] == "other"


def test_lead_stats_and_conversion(client, headers):
    _lead(client, headers, "A")
    _lead(client, headers, "B", status="in_progress")
    _lead(client, headers, "C", status="enrolled")
    _lead(client, headers, "D", status="rejected")

    stats = client.get(f"{API}/leads/stats", headers=headers).json()
    assert stats["total"] == 4
    assert stats["by_status"] == {"new": 1, "in_progress": 1, "enrolled": 1, "rejected": 1}
    assert stats["conversion_rate"] == 25.0


def test_empty_stats(client, headers):
    stats = client.get(f"{API}/leads/stats", headers=headers).json()
    assert stats["total"] == 0
    assert stats["conversion_rate"] == 0.0


def test_filter_and_update(client, headers):
    lead = _lead(client, headers, "A", source="call")
    _lead(client, headers, "B", source="social")

    calls = client.get(f"{API}/leads/", params={"source": "call"}, headers=headers).json()
    assert [l["name"] for l in calls] == ["A"]

    updated = client.put(f"{API}/leads/{lead['id']}", json={"status": "enrolled"}, headers=headers).json()
    assert updated["status"] == "enrolled"
    enrolled = client.get(f"{API}/leads/", params={"status": "enrolled"}, headers=headers).json()
    assert [l["id"] for l in enrolled] == [lead["id"]]


def test_invalid_status_is_rejected(client, headers):
    response = client.post(f"{API}/leads/", json={"name": "X", "phone": "1", "status": "won"}, headers=headers)
    assert response.status_code == 400


def test_lead_activities_and_tasks(client, headers):
    lead = _lead(client, headers, "A")
    activity = client.post(f"{API}/leads/{lead['id']}/activities",
                           json={"activity_type": "call", "description": "Called, interested"}, headers=headers)
    assert activity.status_code == 201
    assert len(client.get(f"{API}/leads/{lead['id']}/activities", headers=headers).json()) == 1

    task = client.post(f"{API}/leads/{lead['id']}/tasks",
                       json={"title": "Invite to trial", "due_date": "2030-01-10T09:00:00Z"}, headers=headers)
    assert task.status_code == 201
    task = task.json()
    assert task["status"] == "pending"
    assert task["completed_at"] is None

    done = client.put(f"{API}/leads/{lead['id']}/tasks/{task['id']}", json={"status": "completed"},
                      headers=headers).json()
    assert done["status"] == "completed"
    assert done["completed_at"] is not None

    reopened = client.put(f"{API}/leads/{lead['id']}/tasks/{task['id']}", json={"status": "pending"},
                          headers=headers).json()
    assert reopened["completed_at"] is None


def test_delete_lead(client, headers):
    lead = _lead(client, headers, "A")
    assert client.delete(f"{API}/leads/{lead['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/leads/{lead['id']}", headers=headers).status_code == 404


def test_assignee_must_belong_to_the_company(client, auth):
    headers = auth["headers"]
    outsider = register(client, email="owner@rival.example.com", company_name="Rival School")["user"]

    response = client.post(f"{API}/leads/", json={"name": "Maria", "phone": "+7 701", "assigned_to": outsider["id"]},
                           headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REFERENCE"

    lead = _lead(client, headers, "Maria")
    response = client.put(f"{API}/leads/{lead['id']}", json={"assigned_to": outsider["id"]}, headers=headers)
    assert response.status_code == 400
    response = client.post(f"{API}/leads/{lead['id']}/tasks", json={"title": "Call", "assigned_to": outsider["id"]},
                           headers=headers)
    assert response.status_code == 400

    mine = client.put(f"{API}/leads/{lead['id']}", json={"assigned_to": auth["user"]["id"]}, headers=headers)
    assert mine.status_code == 200
    assert mine.json()["assigned_to"] == auth["user"]["id"]
