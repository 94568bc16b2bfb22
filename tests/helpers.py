API = "/api/v1"


def register(client, email="owner@center.example.com", company_name="Bright Minds", password="secret123"):
    response = client.post(f"{API}/auth/register", json={
        "name": "Owner",
        "email": email,
        "password": password,
        "company_name": company_name,
    })
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def use_utc(client, headers):
    response = client.put(f"{API}/settings/", json={"timezone": "UTC"}, headers=headers)
    assert response.status_code == 200, response.text


def create_teacher(client, headers, name="Anna Petrova", subject="Math"):
    response = client.post(f"{API}/teachers/", json={"name": name, "subject": subject}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_room(client, headers, name="Room 1", capacity=10):
    response = client.post(f"{API}/rooms/", json={"name": name, "capacity": capacity}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_student(client, headers, name="Ivan Sidorov", **extra):
    response = client.post(f"{API}/students/", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_lesson(client, headers, start, end, **extra):
    payload = {"title": "Algebra", "subject": "Math", "start": start, "end": end, **extra}
    return client.post(f"{API}/lessons/", json=payload, headers=headers)


def create_subscription_type(client, headers, **extra):
    payload = {"name": "8 lessons", "lessons_count": 8, "validity_days": 30, "price": "8000", **extra}
    response = client.post(f"{API}/subscriptions/types", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_subscription(client, headers, student_id, type_id, **extra):
    payload = {"student_id": student_id, "subscription_type_id": type_id, **extra}
    response = client.post(f"{API}/subscriptions/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()
