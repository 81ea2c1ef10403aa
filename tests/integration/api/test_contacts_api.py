from __future__ import annotations

LEAD = {
    "name": "Paula Reis",
    "email": "paula@example.com",
    "phone": "(11) 97777-6666",
    "lead_source": "WEBSITE",
    "budget": 650000,
    "urgency": "MEDIUM",
    "property_type": "APARTMENT",
    "preferred_location": "Pinheiros",
}


def _create(client, headers, **overrides):
    response = client.post("/api/v1/contacts", json={**LEAD, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_list_and_update_contact(client, admin, auth_headers):
    headers = auth_headers(admin)
    created = _create(client, headers)
    contact = created["contact"]
    assert contact["stage"] == "NEW"
    assert contact["phone"] == "+5511977776666"
    assert contact["lead_score"] > 0
    assert created["assignment"] is None

    listing = client.get("/api/v1/contacts", params={"search": "paula"}, headers=headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == contact["id"]

    patched = client.patch(f"/api/v1/contacts/{contact['id']}", json={"notes": "Prefere andar alto"}, headers=headers)
    assert patched.status_code == 200
    assert patched.json()["notes"] == "Prefere andar alto"

    activities = client.get(f"/api/v1/contacts/{contact['id']}/activities", headers=headers).json()
    assert activities["total"] >= 1


def test_duplicate_email_conflicts(client, admin, auth_headers):
    headers = auth_headers(admin)
    _create(client, headers)
    response = client.post("/api/v1/contacts", json={**LEAD, "phone": None}, headers=headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "conflict"


def test_funnel_endpoints(client, admin, auth_headers):
    headers = auth_headers(admin)
    contact_id = _create(client, headers)["contact"]["id"]

    advanced = client.post(f"/api/v1/contacts/{contact_id}/stage/advance", json={}, headers=headers)
    assert advanced.status_code == 200
    assert advanced.json()["stage"] == "CONTACTED"

    skipped = client.post(
        f"/api/v1/contacts/{contact_id}/stage/advance",
        json={"target_stage": "NEGOTIATING"},
        headers=headers,
    )
    assert skipped.status_code == 409
    assert skipped.json()["error_code"] == "invalid_transition"

    lost = client.post(f"/api/v1/contacts/{contact_id}/lost", json={"reason": "Comprou com outra imobiliária"}, headers=headers)
    assert lost.json()["stage"] == "LOST"

    reopened = client.post(f"/api/v1/contacts/{contact_id}/reopen", json={}, headers=headers)
    assert reopened.json()["stage"] == "CONTACTED"


def test_agent_cannot_delete_and_admin_can(client, admin, agent, auth_headers):
    contact_id = _create(client, auth_headers(admin), agent_id=agent.id)["contact"]["id"]

    denied = client.delete(f"/api/v1/contacts/{contact_id}", headers=auth_headers(agent))
    assert denied.status_code == 403
    assert denied.json()["error_code"] == "authorization_error"

    assert client.delete(f"/api/v1/contacts/{contact_id}", headers=auth_headers(admin)).status_code == 204
    assert client.get(f"/api/v1/contacts/{contact_id}", headers=auth_headers(admin)).status_code == 404


def test_agent_sees_only_own_contacts(client, admin, agent, other_agent, auth_headers):
    admin_headers = auth_headers(admin)
    mine = _create(client, admin_headers, agent_id=agent.id)["contact"]["id"]
    theirs = _create(client, admin_headers, email="outro@example.com", phone="11 96666-5555", agent_id=other_agent.id)["contact"]["id"]

    listing = client.get("/api/v1/contacts", headers=auth_headers(agent)).json()
    assert [item["id"] for item in listing["items"]] == [mine]
    assert client.get(f"/api/v1/contacts/{theirs}", headers=auth_headers(agent)).status_code == 404


def test_manual_assignment(client, admin, agent, auth_headers):
    headers = auth_headers(admin)
    contact_id = _create(client, headers)["contact"]["id"]

    response = client.post(f"/api/v1/contacts/{contact_id}/assign", json={"agent_id": agent.id}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "assigned"
    assert body["agent_id"] == agent.id
