from __future__ import annotations

CONTACT = {
    "name": "Helena Duarte",
    "email": "helena@example.com",
    "phone": "(11) 95555-4444",
    "lead_source": "REFERRAL",
    "budget": 900000,
}


def _contact_id(client, headers, **overrides):
    response = client.post("/api/v1/contacts", json={**CONTACT, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["contact"]["id"]


def test_deal_walks_the_pipeline_to_won(client, admin, auth_headers):
    headers = auth_headers(admin)
    contact_id = _contact_id(client, headers)

    created = client.post(
        "/api/v1/deals",
        json={"contact_id": contact_id, "title": "Cobertura Perdizes", "value": 880000},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    deal = created.json()
    assert deal["stage"] == "LEAD_IN"
    assert deal["probability"] == 10

    for expected in ("QUALIFICATION", "PROPOSAL", "NEGOTIATION"):
        moved = client.post(f"/api/v1/deals/{deal['id']}/move", json={}, headers=headers)
        assert moved.status_code == 200, moved.text
        assert moved.json()["stage"] == expected

    won = client.post(f"/api/v1/deals/{deal['id']}/won", json={"reason": "Escritura marcada"}, headers=headers)
    assert won.json()["status"] == "CLOSED"
    assert won.json()["weighted_value"] == 880000

    history = client.get(f"/api/v1/deals/{deal['id']}/history", headers=headers).json()
    assert [item["to_stage"] for item in history][:2] == ["WON", "NEGOTIATION"]
    contact = client.get(f"/api/v1/contacts/{contact_id}", headers=headers).json()
    assert contact["category"] == "CLIENT"

    metrics = client.get("/api/v1/deals/metrics", headers=headers).json()
    assert metrics["deals_by_stage"]["WON"] == 1
    assert metrics["win_rate"] == 100.0


def test_skipping_a_stage_conflicts(client, admin, auth_headers):
    headers = auth_headers(admin)
    deal_id = client.post("/api/v1/deals", json={"contact_id": _contact_id(client, headers)}, headers=headers).json()["id"]

    response = client.post(f"/api/v1/deals/{deal_id}/move", json={"target_stage": "WON"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "invalid_transition"

    out_of_range = client.post(
        "/api/v1/deals", json={"contact_id": _contact_id(client, headers, email="b@example.com"), "probability": 90}, headers=headers
    )
    assert out_of_range.status_code == 422


def test_only_admins_cancel_deals(client, admin, agent, auth_headers):
    admin_headers = auth_headers(admin)
    contact_id = _contact_id(client, admin_headers, agent_id=agent.id)
    deal_id = client.post("/api/v1/deals", json={"contact_id": contact_id}, headers=auth_headers(agent)).json()["id"]

    denied = client.delete(f"/api/v1/deals/{deal_id}", headers=auth_headers(agent))
    assert denied.status_code == 403

    cancelled = client.delete(f"/api/v1/deals/{deal_id}", params={"reason": "Cliente desistiu"}, headers=admin_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert client.get("/api/v1/deals", headers=admin_headers).json()["total"] == 0


def test_stage_board_lists_columns_in_order(client, agent, auth_headers):
    stages = client.get("/api/v1/deals/stages", headers=auth_headers(agent)).json()
    assert [item["stage"] for item in stages] == ["LEAD_IN", "QUALIFICATION", "PROPOSAL", "NEGOTIATION", "WON", "LOST"]
    assert stages[3]["next_stages"] == ["LOST", "WON"]
    assert stages[4]["default_probability"] == 100
