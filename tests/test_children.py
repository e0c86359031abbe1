import re
import warnings

from sqlalchemy.exc import SAWarning

from fellowship.models import RoleEnum


def child_payload(class_id, **extra):
    payload = {
        "first_name": "Ada",
        "last_name": "Obi",
        "date_of_birth": "2016-05-17",
        "gender": "female",
        "class_id": class_id,
        "allergies": "Peanuts",
        "emergency_contact": {"name": "Uncle Tunde", "phone": "0809999999", "relationship": "Uncle"},
    }
    payload.update(extra)
    return payload


def test_parent_registers_own_child_with_sequential_codes(client, auth_header, parent, nasareth_class):
    first = client.post("/api/children", json=child_payload(nasareth_class.id), headers=auth_header(parent))
    second = client.post(
        "/api/children", json=child_payload(nasareth_class.id, first_name="Tobi"), headers=auth_header(parent)
    )
    assert first.status_code == 201 and second.status_code == 201

    a, b = first.get_json(), second.get_json()
    assert a["parent_id"] == parent.id
    assert a["class"]["name"] == "Nasareth Gem"
    assert a["emergency_contact"]["relationship"] == "Uncle"
    assert re.fullmatch(r"JCKC\d{2}0001", a["unique_id"])
    assert re.fullmatch(r"JCKC\d{2}0002", b["unique_id"])


def test_staff_must_name_a_parent(client, auth_header, teacher, parent, nasareth_class):
    missing = client.post("/api/children", json=child_payload(nasareth_class.id), headers=auth_header(teacher))
    assert missing.status_code == 400
    assert missing.get_json()["errors"][0]["field"] == "parent_id"

    ok = client.post(
        "/api/children", json=child_payload(nasareth_class.id, parent_id=parent.id), headers=auth_header(teacher)
    )
    assert ok.status_code == 201
    assert ok.get_json()["parent"]["id"] == parent.id


def test_registration_validation(client, auth_header, parent, nasareth_class):
    bad_gender = client.post(
        "/api/children", json=child_payload(nasareth_class.id, gender="other"), headers=auth_header(parent)
    )
    assert bad_gender.status_code == 400

    no_class = client.post("/api/children", json=child_payload(999), headers=auth_header(parent))
    assert no_class.status_code == 404

    bad_dob = client.post(
        "/api/children", json=child_payload(nasareth_class.id, date_of_birth="yesterday"), headers=auth_header(parent)
    )
    assert bad_dob.status_code == 400

    numeric_name = client.post(
        "/api/children", json=child_payload(nasareth_class.id, first_name=5), headers=auth_header(parent)
    )
    assert numeric_name.status_code == 400
    assert numeric_name.get_json()["errors"][0]["field"] == "first_name"


def test_registration_with_groups_flushes_cleanly(client, auth_header, parent, nasareth_class, choir):
    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        response = client.post(
            "/api/children", json=child_payload(nasareth_class.id, group_ids=[choir.id]), headers=auth_header(parent)
        )
    assert response.status_code == 201
    assert [g["id"] for g in response.get_json()["groups"]] == [choir.id]


def test_parents_only_see_and_edit_their_own(client, auth_header, parent, make_user, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    stranger = make_user(RoleEnum.parent)

    assert client.get(f"/api/children/{child.id}", headers=auth_header(stranger)).status_code == 403
    assert client.put(
        f"/api/children/{child.id}", json={"allergies": "None"}, headers=auth_header(stranger)
    ).status_code == 403

    updated = client.put(f"/api/children/{child.id}", json={"medical_notes": "Asthma"}, headers=auth_header(parent))
    assert updated.status_code == 200
    assert updated.get_json()["medical_notes"] == "Asthma"

    listed = client.get("/api/children", headers=auth_header(stranger)).get_json()
    assert listed["children"] == []


def test_list_filters_and_pagination(client, auth_header, teacher, parent, nasareth_class, choir, make_child):
    make_child(parent, nasareth_class, first_name="Ada", groups=[choir])
    make_child(parent, nasareth_class, first_name="Bola")
    make_child(parent, nasareth_class, first_name="Chidi")

    page = client.get("/api/children?limit=2", headers=auth_header(teacher)).get_json()
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    in_choir = client.get(f"/api/children?group_id={choir.id}", headers=auth_header(teacher)).get_json()
    assert [c["first_name"] for c in in_choir["children"]] == ["Ada"]

    searched = client.get("/api/children?search=chi", headers=auth_header(teacher)).get_json()
    assert [c["first_name"] for c in searched["children"]] == ["Chidi"]

    by_class = client.get(f"/api/children/class/{nasareth_class.id}", headers=auth_header(teacher)).get_json()
    assert [c["first_name"] for c in by_class] == ["Ada", "Bola", "Chidi"]

    by_group = client.get(f"/api/children/group/{choir.id}", headers=auth_header(teacher)).get_json()
    assert len(by_group) == 1


def test_search_by_code_and_phone(client, auth_header, teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)

    by_code = client.get(f"/api/children/search?unique_id={child.unique_id.lower()}", headers=auth_header(teacher))
    assert by_code.status_code == 200
    assert by_code.get_json()["id"] == child.id

    by_phone = client.get(f"/api/children/search?phone={parent.phone_number}", headers=auth_header(teacher))
    assert [c["id"] for c in by_phone.get_json()] == [child.id]

    assert client.get("/api/children/search?unique_id=JCKC000000", headers=auth_header(teacher)).status_code == 404
    assert client.get("/api/children/search", headers=auth_header(teacher)).status_code == 400


def test_group_membership_is_idempotent(client, auth_header, teacher, parent, nasareth_class, choir, make_child):
    child = make_child(parent, nasareth_class)
    headers = auth_header(teacher)

    for _ in range(2):
        joined = client.put(f"/api/children/{child.id}/join-group", json={"group_id": choir.id}, headers=headers)
        assert joined.status_code == 200
    assert [g["id"] for g in joined.get_json()["child"]["groups"]] == [choir.id]

    for _ in range(2):
        left = client.put(f"/api/children/{child.id}/leave-group", json={"group_id": choir.id}, headers=headers)
        assert left.status_code == 200
    assert left.get_json()["child"]["groups"] == []

    assert client.put(
        f"/api/children/{child.id}/join-group", json={}, headers=headers
    ).status_code == 400
    assert client.put(
        f"/api/children/{child.id}/join-group", json={"group_id": choir.id}, headers=auth_header(parent)
    ).status_code == 403


def test_transfer_class(client, auth_header, admin, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    senior = client.post("/api/classes", json={"name": "holy_innocent_senior"}, headers=auth_header(admin)).get_json()

    moved = client.put(
        f"/api/children/{child.id}/transfer-class", json={"new_class_id": senior["id"]}, headers=auth_header(admin)
    )
    assert moved.status_code == 200
    body = moved.get_json()
    assert body["previous_class_id"] == nasareth_class.id
    assert body["child"]["class"]["name"] == "Holy Innocent Senior"


def test_soft_delete_hides_child(client, auth_header, admin, teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)

    assert client.delete(f"/api/children/{child.id}", headers=auth_header(teacher)).status_code == 403
    assert client.delete(f"/api/children/{child.id}", headers=auth_header(admin)).status_code == 200

    listed = client.get("/api/children", headers=auth_header(admin)).get_json()
    assert listed["children"] == []
    # still readable by id, flagged inactive
    kept = client.get(f"/api/children/{child.id}", headers=auth_header(admin)).get_json()
    assert kept["is_active"] is False
