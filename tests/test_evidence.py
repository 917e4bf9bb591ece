import hashlib

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_create_with_custody_books_initial_receipt(officer_client, make_evidence, users, lookups):
    evidence_id = make_evidence(
        current_custodian_id=users["officer"],
        current_location_id=lookups["Evidence Room A"],
    )

    detail = officer_client.get(f"/evidence/{evidence_id}").json()
    item = detail["item"]
    assert item["current_custodian_id"] == users["officer"]
    assert item["current_location_id"] == lookups["Evidence Room A"]
    assert item["current_status"] == "stored"
    assert item["item_type_name"] == "Mobile Phone"
    assert item["current_custodian_name"] == "Oscar Officer"
    assert item["created_by_user_id"] == users["officer"]

    assert len(detail["transfers"]) == 1
    receipt = detail["transfers"][0]
    assert receipt["transfer_type"] == "receipt"
    assert receipt["status"] == "completed"
    assert receipt["transfer_reason_name"] == "Initial Receipt"
    assert receipt["from_custodian_id"] is None
    assert receipt["to_location_id"] == lookups["Evidence Room A"]


def test_create_without_custody_has_no_transfer(officer_client, lookups):
    response = officer_client.post("/evidence", json={
        "case_number": "CASE-9",
        "item_number": "1",
        "description": "Envelope",
        "collected_date": "2024-03-01T10:00:00Z",
        "collected_by": "Det. Morgan",
    })
    assert response.status_code == 201
    assert response.json()["initial_transfer_id"] is None


def test_create_requires_core_fields(officer_client, lookups):
    response = officer_client.post("/evidence", json={"case_number": "CASE-1", "item_number": "1"})
    assert response.status_code == 400
    assert "detail" in response.json()


def test_duplicate_case_item_pair_conflicts(officer_client, make_evidence):
    make_evidence(item_number="A-1")
    response = officer_client.post("/evidence", json={
        "case_number": "CASE-2024-001",
        "item_number": "A-1",
        "description": "Second copy",
        "collected_date": "2024-03-01T10:00:00Z",
        "collected_by": "Det. Morgan",
    })
    assert response.status_code == 409


def test_create_validates_references(officer_client, make_evidence, users, lookups):
    base = {
        "case_number": "CASE-7",
        "description": "Laptop",
        "collected_date": "2024-03-01T10:00:00Z",
        "collected_by": "Det. Morgan",
    }
    assert officer_client.post("/evidence", json={**base, "item_number": "1", "item_type_id": 999}).status_code == 400
    assert officer_client.post(
        "/evidence", json={**base, "item_number": "2", "current_custodian_id": users["retired"]}
    ).status_code == 400
    assert officer_client.post(
        "/evidence", json={**base, "item_number": "3", "current_location_id": 999}
    ).status_code == 400
    assert officer_client.post(
        "/evidence", json={**base, "item_number": "4", "current_status": "destroyed"}
    ).status_code == 400
    assert officer_client.get("/evidence", params={"case": "CASE-7"}).json()["total"] == 0


def test_list_filters(officer_client, make_evidence, users, lookups):
    make_evidence(case_number="CASE-A", description="Red USB stick", item_type_id=lookups["USB Drive"])
    make_evidence(case_number="CASE-B", description="Blue laptop", current_custodian_id=users["analyst"])

    assert officer_client.get("/evidence").json()["total"] == 2
    assert officer_client.get("/evidence", params={"case": "CASE-A"}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"search": "LAPTOP"}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"type": lookups["USB Drive"]}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"custodian": users["analyst"]}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"status": "stored"}).json()["total"] == 2
    assert officer_client.get("/evidence", params={"status": "disposed"}).json()["total"] == 0


def test_get_unknown_item(officer_client, lookups):
    assert officer_client.get("/evidence/12345").status_code == 404


def test_update_descriptive_fields(officer_client, make_evidence):
    evidence_id = make_evidence()
    response = officer_client.put(f"/evidence/{evidence_id}", json={
        "description": "Black smartphone, screen replaced",
        "serial_number": "SN-42",
    })
    assert response.status_code == 200
    assert response.json()["serial_number"] == "SN-42"

    assert officer_client.put(f"/evidence/{evidence_id}", json={"description": None}).status_code == 400


def test_update_custody_is_booked_as_transfer(officer_client, make_evidence, users, lookups):
    evidence_id = make_evidence(current_location_id=lookups["Evidence Room A"])

    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_location_id": lookups["Secure Vault"]})
    assert response.status_code == 200
    assert response.json()["current_location_id"] == lookups["Secure Vault"]

    history = officer_client.get(f"/evidence/{evidence_id}/history").json()
    assert [t["transfer_type"] for t in history] == ["receipt", "internal"]
    assert history[-1]["from_location_id"] == lookups["Evidence Room A"]
    assert history[-1]["to_location_id"] == lookups["Secure Vault"]

    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_location_id": None})
    assert response.status_code == 400


def test_update_renumber_checks_uniqueness(officer_client, make_evidence):
    make_evidence(item_number="X-1")
    other = make_evidence(item_number="X-2")
    assert officer_client.put(f"/evidence/{other}", json={"item_number": "X-1"}).status_code == 409
    assert officer_client.put(f"/evidence/{other}", json={"item_number": "X-3"}).status_code == 200


def test_working_status_can_be_edited(officer_client, make_evidence):
    evidence_id = make_evidence()
    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "in_analysis"})
    assert response.status_code == 200
    assert response.json()["current_status"] == "in_analysis"


def test_release_and_disposal_need_a_transfer(officer_client, make_evidence, lookups):
    evidence_id = make_evidence(current_location_id=lookups["Evidence Room A"])

    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "disposed"})
    assert response.status_code == 409
    assert "disposal" in response.json()["detail"]
    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "released"})
    assert response.status_code == 409
    assert "release" in response.json()["detail"]

    item = officer_client.get(f"/evidence/{evidence_id}").json()
    assert item["item"]["current_status"] == "stored"
    assert [t["transfer_type"] for t in item["transfers"]] == ["receipt"]


def test_destroyed_only_after_disposal(officer_client, make_evidence):
    evidence_id = make_evidence()
    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "destroyed"})
    assert response.status_code == 409

    officer_client.post("/transfers", json={"evidence_item_id": evidence_id, "transfer_type": "disposal"})
    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "destroyed"})
    assert response.status_code == 200
    assert response.json()["current_status"] == "destroyed"

    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "stored"})
    assert response.status_code == 409
    response = officer_client.put(f"/evidence/{evidence_id}", json={"current_status": "disposed"})
    assert response.status_code == 409


def test_intake_cannot_start_released(officer_client, lookups):
    response = officer_client.post("/evidence", json={
        "case_number": "CASE-8",
        "item_number": "1",
        "description": "Wallet",
        "collected_date": "2024-03-01T10:00:00Z",
        "collected_by": "Det. Morgan",
        "current_status": "released",
    })
    assert response.status_code == 400


def test_search_treats_wildcards_literally(officer_client, make_evidence):
    make_evidence(description="Bottle, 50% full")
    make_evidence(description="Bottle, empty")
    make_evidence(description="file_name.txt on desk")
    make_evidence(description="filename list")

    assert officer_client.get("/evidence", params={"search": "50%"}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"search": "%"}).json()["total"] == 1
    assert officer_client.get("/evidence", params={"search": "file_"}).json()["total"] == 1


def test_delete_blocked_by_transfer_history(officer_client, make_evidence, lookups):
    evidence_id = make_evidence(current_location_id=lookups["Evidence Room A"])
    assert officer_client.delete(f"/evidence/{evidence_id}").status_code == 409
    assert officer_client.get(f"/evidence/{evidence_id}").status_code == 200


def test_delete_removes_item_notes_and_photos(officer_client, make_evidence):
    evidence_id = make_evidence()
    officer_client.post(f"/evidence/{evidence_id}/notes", json={"note": "Bagged at scene"})
    officer_client.post(
        f"/evidence/{evidence_id}/photos",
        files={"file": ("front.png", PNG_BYTES, "image/png")},
    )

    assert officer_client.delete(f"/evidence/{evidence_id}").status_code == 200
    assert officer_client.get(f"/evidence/{evidence_id}").status_code == 404
    assert officer_client.get(f"/evidence/{evidence_id}/notes").status_code == 404


def test_notes(officer_client, auditor_client, make_evidence):
    evidence_id = make_evidence()

    response = officer_client.post(f"/evidence/{evidence_id}/notes", json={"note": "  Seal number 4471  "})
    assert response.status_code == 201
    assert response.json()["note"] == "Seal number 4471"
    assert response.json()["created_by_name"] == "Oscar Officer"

    assert officer_client.post(f"/evidence/{evidence_id}/notes", json={"note": "   "}).status_code == 400
    assert auditor_client.post(f"/evidence/{evidence_id}/notes", json={"note": "hi"}).status_code == 403

    notes = auditor_client.get(f"/evidence/{evidence_id}/notes").json()
    assert [n["note"] for n in notes] == ["Seal number 4471"]


def test_photo_upload_and_download(officer_client, make_evidence):
    evidence_id = make_evidence()

    response = officer_client.post(
        f"/evidence/{evidence_id}/photos",
        files={"file": ("front.png", PNG_BYTES, "image/png")},
        data={"caption": "Front view"},
    )
    assert response.status_code == 201
    photo = response.json()
    assert photo["sha256_hex"] == hashlib.sha256(PNG_BYTES).hexdigest()
    assert photo["caption"] == "Front view"
    assert photo["size_bytes"] == len(PNG_BYTES)

    response = officer_client.get(f"/evidence/{evidence_id}/photos/{photo['id']}/download")
    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-type"] == "image/png"

    assert len(officer_client.get(f"/evidence/{evidence_id}/photos").json()) == 1


def test_photo_upload_rejects_bad_files(officer_client, make_evidence):
    evidence_id = make_evidence()

    response = officer_client.post(
        f"/evidence/{evidence_id}/photos",
        files={"file": ("notes.txt", b"plain text", "text/plain")},
    )
    assert response.status_code == 400

    response = officer_client.post(
        f"/evidence/{evidence_id}/photos",
        files={"file": ("empty.png", b"", "image/png")},
    )
    assert response.status_code == 400
    assert officer_client.get(f"/evidence/{evidence_id}/photos").json() == []


def test_download_unknown_photo(officer_client, make_evidence):
    evidence_id = make_evidence()
    assert officer_client.get(f"/evidence/{evidence_id}/photos/77/download").status_code == 404


def test_download_keeps_non_latin_filename(officer_client, make_evidence):
    evidence_id = make_evidence()
    photo = officer_client.post(
        f"/evidence/{evidence_id}/photos",
        files={"file": ("фото улики.png", PNG_BYTES, "image/png")},
    ).json()

    response = officer_client.get(f"/evidence/{evidence_id}/photos/{photo['id']}/download")
    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="')
    assert "filename*=UTF-8''%D1%84%D0%BE%D1%82%D0%BE%20" in disposition
    assert response.content == PNG_BYTES
