from __future__ import annotations

USER = {
    "id": 1,
    "name": "Taro",
    "age": 30,
    "gender": "male",
    "heightCm": 175,
    "weightKg": 70,
    "workStyle": "sedentary",
}


def _create(client, **overrides):
    r = client.post("/api/v1/users", json={**USER, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_user_create_fetch_patch(client):
    body = _create(client)
    assert body["heightCm"] == 175
    assert client.post("/api/v1/users", json=USER).status_code == 409

    r = client.patch("/api/v1/users/1", json={"weightKg": 72.5, "exerciseFrequency": 2})
    assert r.status_code == 200
    assert r.json()["weightKg"] == 72.5
    assert r.json()["heightCm"] == 175

    assert client.get("/api/v1/users/1").json()["exerciseFrequency"] == 2
    assert client.get("/api/v1/users/99").status_code == 404


def test_preferences_roundtrip(client):
    _create(client)
    assert client.get("/api/v1/users/1/preferences").status_code == 404
    r = client.put(
        "/api/v1/users/1/preferences",
        json={"nutritionGoal": "lose", "weightChangeRate": 0.5, "healthConditions": ["hypertension"]},
    )
    assert r.status_code == 200
    prefs = client.get("/api/v1/users/1/preferences").json()
    assert prefs["nutritionGoal"] == "lose"
    assert prefs["healthConditions"] == ["hypertension"]
    assert prefs["pregnancyStatus"] == "none"


def test_preview_does_not_store(client):
    r = client.post(
        "/api/v1/nutrition-targets/preview",
        json={"age": 30, "gender": "male", "height": 175, "weight": 70},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["summary"]["tdee"] == 1978.5
    assert body["summary"]["pal"] == 1.2
    assert "workStyle" not in body["calculationBasis"]
    assert "work_style" in body["calculationBasis"]["missing_fields"]
    assert body["version"] is None


def test_preview_rejects_out_of_range(client):
    r = client.post(
        "/api/v1/nutrition-targets/preview",
        json={"age": 30, "gender": "male", "height": 175, "weight": -3},
    )
    assert r.status_code == 422


def test_calculate_upserts_single_row(client):
    _create(client)
    client.put(
        "/api/v1/users/1/preferences",
        json={"nutritionGoal": "lose", "weightChangeRate": 0.5},
    )
    first = client.post("/api/v1/nutrition-targets/1/calculate")
    assert first.status_code == 200, first.text
    assert first.json()["version"] == 1
    assert first.json()["calculationBasis"]["energy"]["goal_adjustment"]["delta_kcal"] == -550

    client.patch("/api/v1/users/1", json={"weightKg": 80})
    second = client.post("/api/v1/nutrition-targets/1/calculate")
    assert second.json()["version"] == 2

    stored = client.get("/api/v1/nutrition-targets/1").json()
    assert stored["version"] == 2
    assert stored["calories"] == second.json()["summary"]["calories"]
    assert stored["proteinG"] == second.json()["targetData"]["protein_g"]
    assert "lastCalculatedAt" in stored


def test_calculate_with_stale_version(client):
    _create(client)
    client.post("/api/v1/nutrition-targets/1/calculate")
    r = client.post("/api/v1/nutrition-targets/1/calculate", params={"expectedVersion": 0})
    assert r.status_code == 409
    assert client.get("/api/v1/nutrition-targets/1").json()["version"] == 1

    ok = client.post("/api/v1/nutrition-targets/1/calculate", params={"expectedVersion": 1})
    assert ok.json()["version"] == 2


def test_incomplete_profile_is_422_and_nothing_stored(client):
    _create(client, id=2, heightCm=None)
    r = client.post("/api/v1/nutrition-targets/2/calculate")
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["error"] == "invalid_profile"
    assert "height" in detail["fields"]
    assert client.get("/api/v1/nutrition-targets/2").status_code == 404


def test_unknown_user(client):
    assert client.post("/api/v1/nutrition-targets/42/calculate").status_code == 404
    assert client.get("/api/v1/nutrition-targets/42").status_code == 404
