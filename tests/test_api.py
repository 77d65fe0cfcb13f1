from calcforge.agent import fallbacks

ALICE = {"X-User-Id": "alice", "X-User-Name": "alice@example.com"}
BOB = {"X-User-Id": "bob"}


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "healthy"}


def test_generate_without_key_returns_fallback(client):
    response = client.post("/api/generate", json={"prompt": "tip calculator"})
    body = response.get_json()

    assert response.status_code == 200
    assert body["source"] == "fallback"
    assert body["notice"]
    assert body["spec"]["title"] == "Tip Calculator"
    assert body["spec"]["kind"] == "tip"
    assert [f["id"] for f in body["spec"]["fields"]] == ["bill_amount", "tip_percentage"]


def test_generate_requires_prompt(client):
    response = client.post("/api/generate", json={"prompt": "   "})
    assert response.status_code == 400


def test_generate_rejects_concurrent_request_for_same_session(app, client):
    app.extensions["sessions"].get("s1").begin("loan")
    response = client.post("/api/generate", json={"prompt": "bmi"}, headers={"X-Session-Id": "s1"})
    assert response.status_code == 409

    other = client.post("/api/generate", json={"prompt": "bmi"}, headers={"X-Session-Id": "s2"})
    assert other.status_code == 200

    state = client.get("/api/generate/session", headers={"X-Session-Id": "s2"}).get_json()
    assert state["state"] == "idle"
    assert state["prompt"] == "bmi"
    assert state["spec"]["title"] == "BMI Calculator"


def test_generate_status_without_key(client):
    body = client.get("/api/generate/status").get_json()
    assert body["has_api_key"] is False
    assert body["available"] is False


def test_evaluate(client):
    response = client.post("/api/evaluate", json={
        "spec": fallbacks.TIP.to_dict(),
        "values": {"bill_amount": "50", "tip_percentage": "18"},
    })
    assert response.get_json() == {"result": "Tip: $9.00, Total: $59.00", "error": None}


def test_evaluate_reports_input_problems_as_results(client):
    response = client.post("/api/evaluate", json={
        "spec": fallbacks.BMI.to_dict(),
        "values": {"weight": "70"},
    })
    assert response.status_code == 200
    assert response.get_json()["result"] == "Please fill in: Height (cm)"


def test_evaluate_rejects_invalid_spec(client):
    response = client.post("/api/evaluate", json={"spec": {"fields": []}, "values": {}})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid calculator specification"


def test_evaluate_formula(client):
    response = client.post("/api/evaluate/formula", json={
        "formula": "length * width",
        "variables": {"length": 10, "width": 8},
    })
    body = response.get_json()
    assert body["value"] == 80
    assert sorted(body["variables"]) == ["length", "width"]

    bad = client.post("/api/evaluate/formula", json={"formula": "__import__('os')"})
    assert bad.status_code == 400


def test_saving_requires_identity(client):
    response = client.post("/api/calculators", json={"spec": fallbacks.TIP.to_dict()})
    assert response.status_code == 401
    assert response.get_json()["error"] == "User not authenticated"


def test_calculator_lifecycle(client):
    created = client.post("/api/calculators", headers=ALICE, json={
        "title": "Dinner Tips",
        "prompt": "tip calculator",
        "spec": fallbacks.TIP.to_dict(),
        "is_public": True,
        "tags": ["food", "food", "dining"],
    })
    assert created.status_code == 201
    calculator = created.get_json()["calculator"]
    calculator_id = calculator["id"]
    assert calculator["tags"] == ["food", "dining"]
    assert calculator["profile"]["username"] == "alice@example.com"

    loaded = client.get(f"/api/calculators/{calculator_id}", headers=BOB).get_json()["calculator"]
    assert loaded["views_count"] == 1

    assert client.post(f"/api/calculators/{calculator_id}/like", headers=BOB).status_code == 200
    assert client.post(f"/api/calculators/{calculator_id}/like", headers=BOB).status_code == 409

    forked = client.post(f"/api/calculators/{calculator_id}/fork", headers=BOB)
    assert forked.status_code == 201
    assert forked.get_json()["calculator"]["title"] == "Dinner Tips (Fork)"

    result = client.post(f"/api/calculators/{calculator_id}/evaluate",
                         json={"values": {"bill_amount": "50", "tip_percentage": "18"}})
    assert result.get_json()["result"] == "Tip: $9.00, Total: $59.00"

    assert client.delete(f"/api/calculators/{calculator_id}", headers=BOB).status_code == 403
    assert client.delete(f"/api/calculators/{calculator_id}", headers=ALICE).status_code == 200
    assert client.get(f"/api/calculators/{calculator_id}").status_code == 404


def test_update_with_invalid_spec(client):
    created = client.post("/api/calculators", headers=ALICE, json={"spec": fallbacks.BMI.to_dict()})
    calculator_id = created.get_json()["calculator"]["id"]

    response = client.put(f"/api/calculators/{calculator_id}", headers=ALICE, json={"spec": {"title": "x"}})
    assert response.status_code == 400


def test_saved_calculator_is_added_to_session(client):
    headers = dict(ALICE, **{"X-Session-Id": "s9"})
    created = client.post("/api/calculators", headers=headers, json={"spec": fallbacks.ROI.to_dict()})
    calculator_id = created.get_json()["calculator"]["id"]

    state = client.get("/api/generate/session", headers={"X-Session-Id": "s9"}).get_json()
    assert state["saved_calculators"] == [calculator_id]


def test_private_calculator_is_only_served_to_its_owner(client):
    created = client.post("/api/calculators", headers=ALICE, json={
        "title": "Private Tips",
        "spec": fallbacks.TIP.to_dict(),
    })
    calculator_id = created.get_json()["calculator"]["id"]
    values = {"values": {"bill_amount": "50", "tip_percentage": "18"}}

    assert client.get(f"/api/calculators/{calculator_id}", headers=BOB).status_code == 404
    assert client.post(f"/api/calculators/{calculator_id}/like", headers=BOB).status_code == 404
    assert client.post(f"/api/calculators/{calculator_id}/fork", headers=BOB).status_code == 404
    assert client.post(f"/api/calculators/{calculator_id}/evaluate", headers=BOB, json=values).status_code == 404
    assert client.post(f"/api/calculators/{calculator_id}/evaluate", json=values).status_code == 404

    result = client.post(f"/api/calculators/{calculator_id}/evaluate", headers=ALICE, json=values)
    assert result.get_json()["result"] == "Tip: $9.00, Total: $59.00"
    loaded = client.get(f"/api/calculators/{calculator_id}", headers=ALICE).get_json()["calculator"]
    assert loaded["views_count"] == 1


def test_deeply_nested_formula_is_rejected(client):
    response = client.post("/api/evaluate/formula", json={"formula": "-" * 200000 + "1"})
    assert response.status_code == 400
    assert response.get_json()["error"]


def test_session_reads_do_not_create_sessions(app, client):
    registry = app.extensions["sessions"]
    for n in range(20):
        state = client.get("/api/generate/session", headers={"X-Session-Id": f"visitor-{n}"}).get_json()
        assert state["state"] == "idle"
        assert state["spec"] is None
    assert len(registry) == 0


def test_deleting_a_session_discards_it(app, client):
    headers = {"X-Session-Id": "s3"}
    client.post("/api/generate", json={"prompt": "tip"}, headers=headers)
    assert len(app.extensions["sessions"]) == 1

    response = client.delete("/api/generate/session", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["prompt"] == ""
    assert len(app.extensions["sessions"]) == 0


def test_deleted_calculator_leaves_the_session(client):
    headers = dict(ALICE, **{"X-Session-Id": "s4"})
    created = client.post("/api/calculators", headers=headers, json={"spec": fallbacks.ROI.to_dict()})
    calculator_id = created.get_json()["calculator"]["id"]

    assert client.delete(f"/api/calculators/{calculator_id}", headers=headers).status_code == 200
    state = client.get("/api/generate/session", headers={"X-Session-Id": "s4"}).get_json()
    assert state["saved_calculators"] == []
