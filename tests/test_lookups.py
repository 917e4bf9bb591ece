import pytest

from evidence_tracker.core.seed import DEFAULT_ITEM_TYPES, DEFAULT_LOCATIONS, DEFAULT_TRANSFER_REASONS, seed_lookups


def test_seed_is_idempotent(db, lookups):
    assert seed_lookups(db) == 0
    assert len(lookups) == len(DEFAULT_ITEM_TYPES) + len(DEFAULT_LOCATIONS) + len(DEFAULT_TRANSFER_REASONS)


@pytest.mark.parametrize("kind,count", [
    ("item-types", len(DEFAULT_ITEM_TYPES)),
    ("locations", len(DEFAULT_LOCATIONS)),
    ("transfer-reasons", len(DEFAULT_TRANSFER_REASONS)),
])
def test_list_each_kind(officer_client, lookups, kind, count):
    response = officer_client.get(f"/lookups/{kind}")
    assert response.status_code == 200
    assert response.json()["total"] == count


def test_unknown_kind_is_rejected(admin_client):
    assert admin_client.get("/lookups/colours").status_code == 400


def test_reads_need_a_session(anon_client, lookups):
    assert anon_client.get("/lookups/locations").status_code == 401


def test_writes_need_admin(officer_client, lookups):
    response = officer_client.post("/lookups/locations", json={"name": "Annex"})
    assert response.status_code == 403


def test_create_get_patch_delete_location(admin_client):
    response = admin_client.post("/lookups/locations", json={
        "name": "Annex Storage",
        "building": "Annex",
        "capacity": 40,
    })
    assert response.status_code == 201
    location = response.json()
    assert location["active"] is True

    assert admin_client.get(f"/lookups/locations/{location['id']}").json()["name"] == "Annex Storage"

    response = admin_client.patch(f"/lookups/locations/{location['id']}", json={"active": False, "room": "B2"})
    assert response.status_code == 200
    assert response.json()["active"] is False
    assert response.json()["room"] == "B2"
    assert response.json()["building"] == "Annex"

    names = [row["name"] for row in admin_client.get("/lookups/locations", params={"active_only": True}).json()["items"]]
    assert "Annex Storage" not in names

    assert admin_client.delete(f"/lookups/locations/{location['id']}").status_code == 200
    assert admin_client.get(f"/lookups/locations/{location['id']}").status_code == 404


def test_names_are_unique_ignoring_case(admin_client, lookups):
    response = admin_client.post("/lookups/item-types", json={"name": "mobile phone"})
    assert response.status_code == 409

    response = admin_client.post("/lookups/transfer-reasons", json={"reason": "Evidence Review"})
    assert response.status_code == 201
    reason_id = response.json()["id"]
    response = admin_client.patch(f"/lookups/transfer-reasons/{reason_id}", json={"reason": "LAB TESTING"})
    assert response.status_code == 409


def test_invalid_payloads(admin_client, lookups):
    assert admin_client.post("/lookups/item-types", json={}).status_code == 400
    assert admin_client.post("/lookups/locations", json={"name": "X", "capacity": -1}).status_code == 400
    response = admin_client.patch(f"/lookups/item-types/{lookups['Laptop']}", json={"name": None})
    assert response.status_code == 400


def test_referenced_rows_cannot_be_deleted(admin_client, make_evidence, lookups):
    make_evidence(current_location_id=lookups["Evidence Room B"])

    assert admin_client.delete(f"/lookups/locations/{lookups['Evidence Room B']}").status_code == 409
    assert admin_client.delete(f"/lookups/item-types/{lookups['Mobile Phone']}").status_code == 409
    assert admin_client.delete(f"/lookups/transfer-reasons/{lookups['Initial Receipt']}").status_code == 409
    assert admin_client.delete(f"/lookups/item-types/{lookups['Firearm']}").status_code == 200


def test_inactive_location_cannot_receive_evidence(admin_client, make_evidence, lookups):
    admin_client.patch(f"/lookups/locations/{lookups['Firearms Lab']}", json={"active": False})
    evidence_id = make_evidence()

    response = admin_client.post("/transfers", json={
        "evidence_item_id": evidence_id,
        "transfer_type": "internal",
        "to_location_id": lookups["Firearms Lab"],
    })
    assert response.status_code == 400


def test_approval_flag_drives_transfer_status(admin_client, make_evidence, lookups):
    admin_client.patch(f"/lookups/transfer-reasons/{lookups['Lab Testing']}", json={"requires_approval": True})
    evidence_id = make_evidence()

    response = admin_client.post("/transfers", json={
        "evidence_item_id": evidence_id,
        "transfer_type": "internal",
        "transfer_reason_id": lookups["Lab Testing"],
        "to_location_id": lookups["Firearms Lab"],
    })
    assert response.json()["status"] == "pending"
