from helpers import API, bearer, create_student, register


def _create_branch(client, headers, name="Downtown"):
    response = client.post(f"{API}/branches/", json={"name": name, "address": "Main st. 1"}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_creator_is_assigned_to_new_branch(client, headers):
    branch = _create_branch(client, headers)
    branches = client.get(f"{API}/branches/", headers=headers).json()
    assert [b["id"] for b in branches] == [branch["id"]]

    users = client.get(f"{API}/branches/{branch['id']}/users", headers=headers).json()
    assert [u["email"] for u in users] == ["owner@center.example.com"]


def test_switch_scopes_data_to_branch(client, headers):
    north = _create_branch(client, headers, "North")
    south = _create_branch(client, headers, "South")

    north_token = client.post(f"{API}/branches/{north['id']}/switch", headers=headers).json()["token"]
    create_student(client, bearer(north_token), name="North Student")

    south_token = client.post(f"{API}/branches/{south['id']}/switch", headers=headers).json()["token"]
    create_student(client, bearer(south_token), name="South Student")

    north_names = [s["name"] for s in client.get(f"{API}/students/", headers=bearer(north_token)).json()]
    assert north_names == ["North Student"]

    # Without a branch the whole company is visible
    all_names = [s["name"] for s in client.get(f"{API}/students/", headers=headers).json()]
    assert sorted(all_names) == ["North Student", "South Student"]


def test_branch_header_overrides_token(client, headers):
    north = _create_branch(client, headers, "North")
    south = _create_branch(client, headers, "South")
    north_token = client.post(f"{API}/branches/{north['id']}/switch", headers=headers).json()["token"]
    create_student(client, bearer(north_token), name="North Student")

    response = client.get(f"{API}/students/", headers={**bearer(north_token), "X-Branch-ID": south["id"]})
    assert response.status_code == 200
    assert response.json() == []


def test_foreign_branch_header_is_denied(client, headers):
    other = register(client, email="other@center.example.com", company_name="Other")
    foreign = _create_branch(client, bearer(other["token"]), "Foreign")

    response = client.get(f"{API}/students/", headers={**headers, "X-Branch-ID": foreign["id"]})
    assert response.status_code == 403
    assert response.json()["code"] == "BRANCH_ACCESS_DENIED"


def test_assigning_user_twice_conflicts(client, auth):
    headers = auth["headers"]
    branch = _create_branch(client, headers)
    response = client.post(f"{API}/branches/{branch['id']}/users", json={"user_id": auth["user"]["id"]},
                           headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_ASSIGNED"


def test_update_and_delete_branch(client, headers):
    branch = _create_branch(client, headers)
    updated = client.put(f"{API}/branches/{branch['id']}", json={"status": "inactive"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "inactive"

    assert client.delete(f"{API}/branches/{branch['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/branches/{branch['id']}", headers=headers).status_code == 404


def test_branch_with_students_cannot_be_deleted(client, headers, foreign_keys):
    branch = _create_branch(client, headers)
    token = client.post(f"{API}/branches/{branch['id']}/switch", headers=headers).json()["token"]
    create_student(client, bearer(token), name="Branch Student")

    response = client.delete(f"{API}/branches/{branch['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "BRANCH_IN_USE"
    assert response.json()["students"] == 1

    empty = _create_branch(client, headers, "Empty")
    assert client.delete(f"{API}/branches/{empty['id']}", headers=headers).status_code == 200
