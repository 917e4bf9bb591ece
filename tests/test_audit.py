from evidence_tracker.models.audit import AuditLog


def test_workflow_writes_chained_entries(admin_client, make_evidence, lookups):
    evidence_id = make_evidence(current_location_id=lookups["Evidence Room A"])
    transfer_id = admin_client.post("/transfers", json={
        "evidence_item_id": evidence_id,
        "transfer_type": "internal",
        "transfer_reason_id": lookups["Court Presentation"],
        "to_location_id": lookups["Court Evidence Locker"],
    }).json()["id"]
    admin_client.put(f"/transfers/{transfer_id}", json={"action": "approve"})

    body = admin_client.get(f"/audit/{evidence_id}").json()
    actions = [e["action"] for e in body["entries"]]
    assert actions == ["EVIDENCE_CREATED", "TRANSFER_CREATED", "TRANSFER_CREATED", "TRANSFER_APPROVED"]
    assert body["entries"][0]["prev_hash_hex"] == ""
    for previous, entry in zip(body["entries"], body["entries"][1:]):
        assert entry["prev_hash_hex"] == previous["entry_hash_hex"]
    assert body["entries"][0]["actor_name"] == "Oscar Officer"

    verify = admin_client.get(f"/audit/{evidence_id}/verify").json()
    assert verify["chain_valid"] is True
    assert verify["total"] == 4


def test_tampering_breaks_the_chain(db, auditor_client, make_evidence):
    evidence_id = make_evidence()
    entry = db.query(AuditLog).filter(AuditLog.evidence_id == evidence_id).first()
    entry.details_json = '{"case_number": "FORGED"}'
    db.commit()

    verify = auditor_client.get(f"/audit/{evidence_id}/verify").json()
    assert verify["chain_valid"] is False
    assert verify["details"][0]["entry_hash_valid"] is False


def test_failed_operation_leaves_no_entry(officer_client, make_evidence, users):
    evidence_id = make_evidence()
    response = officer_client.post("/transfers", json={
        "evidence_item_id": evidence_id,
        "transfer_type": "internal",
        "to_custodian_id": users["retired"],
    })
    assert response.status_code == 400
    assert officer_client.get(f"/audit/{evidence_id}").json()["total"] == 1


def test_trail_outlives_deleted_item(officer_client, make_evidence):
    evidence_id = make_evidence()
    officer_client.delete(f"/evidence/{evidence_id}")

    body = officer_client.get(f"/audit/{evidence_id}").json()
    assert [e["action"] for e in body["entries"]] == ["EVIDENCE_CREATED", "EVIDENCE_DELETED"]
    assert officer_client.get(f"/audit/{evidence_id}/verify").json()["chain_valid"] is True
