from decimal import Decimal

from helpers import API, create_student


def _create_discount(client, headers, **extra):
    payload = {"name": "Siblings", "type": "percentage", "value": "10", **extra}
    response = client.post(f"{API}/discounts/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_discount_crud(client, headers):
    discount = _create_discount(client, headers)
    assert discount["type"] == "percentage"
    assert discount["is_active"] is True

    updated = client.put(f"{API}/discounts/{discount['id']}", json={"type": "fixed", "value": "1500"},
                         headers=headers).json()
    assert updated["type"] == "fixed"
    assert Decimal(updated["value"]) == Decimal("1500")
    assert [d["name"] for d in client.get(f"{API}/discounts/", headers=headers).json()] == ["Siblings"]

    assert client.delete(f"{API}/discounts/{discount['id']}", headers=headers).status_code == 200
    response = client.get(f"{API}/discounts/{discount['id']}", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Discount not found"


def test_discount_value_is_validated(client, headers):
    response = client.post(f"{API}/discounts/", json={"name": "Too much", "type": "percentage", "value": "120"},
                           headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_DISCOUNT"

    zero = client.post(f"{API}/discounts/", json={"name": "Zero", "type": "fixed", "value": "0"}, headers=headers)
    assert zero.status_code == 400

    bad_type = client.post(f"{API}/discounts/", json={"name": "Odd", "type": "bonus", "value": "5"},
                           headers=headers)
    assert bad_type.status_code == 400

    # A fixed discount may exceed 100, switching it to percentage may not
    fixed = _create_discount(client, headers, name="Loyalty", type="fixed", value="500")
    response = client.put(f"{API}/discounts/{fixed['id']}", json={"type": "percentage"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_DISCOUNT"


def test_apply_list_and_remove_student_discount(client, headers):
    student = create_student(client, headers)
    discount = _create_discount(client, headers)

    response = client.post(f"{API}/discounts/{discount['id']}/apply",
                           json={"student_id": student["id"], "expires_at": "2030-06-01T00:00:00Z"},
                           headers=headers)
    assert response.status_code == 201, response.text
    link = response.json()
    assert link["discount_name"] == "Siblings"
    assert link["discount_type"] == "percentage"
    assert Decimal(link["discount_value"]) == Decimal("10")
    assert link["expires_at"].startswith("2030-06-01T00:00:00")

    listed = client.get(f"{API}/students/{student['id']}/discounts", headers=headers).json()
    assert [d["discount_id"] for d in listed] == [discount["id"]]

    removed = client.delete(f"{API}/students/{student['id']}/discounts/{discount['id']}", headers=headers)
    assert removed.status_code == 200
    assert client.get(f"{API}/students/{student['id']}/discounts", headers=headers).json() == []

    again = client.delete(f"{API}/students/{student['id']}/discounts/{discount['id']}", headers=headers)
    assert again.status_code == 404

    activity_types = [a["activity_type"] for a in
                      client.get(f"{API}/students/{student['id']}/activities", headers=headers).json()]
    assert "discount_applied" in activity_types
    assert "discount_removed" in activity_types


def test_discount_is_applied_once_per_student(client, headers):
    student = create_student(client, headers)
    discount = _create_discount(client, headers)

    first = client.post(f"{API}/students/{student['id']}/discounts", json={"discount_id": discount["id"]},
                        headers=headers)
    assert first.status_code == 201, first.text

    second = client.post(f"{API}/discounts/{discount['id']}/apply", json={"student_id": student["id"]},
                         headers=headers)
    assert second.status_code == 409
    assert second.json()["code"] == "ALREADY_APPLIED"

    # A removed discount can be applied again
    client.delete(f"{API}/students/{student['id']}/discounts/{discount['id']}", headers=headers)
    third = client.post(f"{API}/students/{student['id']}/discounts", json={"discount_id": discount["id"]},
                        headers=headers)
    assert third.status_code == 201


def test_inactive_discount_cannot_be_applied(client, headers):
    student = create_student(client, headers)
    discount = _create_discount(client, headers, is_active=False)

    response = client.post(f"{API}/discounts/{discount['id']}/apply", json={"student_id": student["id"]},
                           headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "DISCOUNT_INACTIVE"


def test_unknown_student_or_discount(client, headers):
    student = create_student(client, headers)
    discount = _create_discount(client, headers)
    missing = "00000000-0000-0000-0000-000000000000"

    response = client.post(f"{API}/discounts/{discount['id']}/apply", json={"student_id": missing},
                           headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Student not found"

    response = client.post(f"{API}/students/{student['id']}/discounts", json={"discount_id": missing},
                           headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Discount not found"
