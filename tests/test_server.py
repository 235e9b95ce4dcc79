from fastapi.testclient import TestClient

from server import app

client = TestClient(app)

SMALL_CONFIG = {
    "scenario": "API",
    "initialCapital": 1000,
    "monthlyContribution": 100,
    "investmentYears": 3,
    "expectedReturn": 6,
    "volatility": 12,
    "managementFees": 0.2,
    "taxRate": 26,
    "inflationRate": 2,
    "startDate": "2025-01-01",
    "run": {"num_simulations": 20, "seed": 7},
}


def test_health():
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_default_config_is_valid():
    default = client.get("/api/config/default").json()

    response = client.post("/api/validate", json={"config": default})

    assert response.status_code == 200
    assert response.json()["total_periods"] == default["investmentYears"] * 12


def test_validate_rejects_bad_config():
    response = client.post(
        "/api/validate", json={"config": {**SMALL_CONFIG, "investmentYears": 0}}
    )

    assert response.status_code == 422


def test_simulate_returns_summary_and_ensemble():
    response = client.post("/api/simulate", json={"config": SMALL_CONFIG})

    assert response.status_code == 200
    body = response.json()
    assert body["scenario"] == "API"
    assert len(body["annual"]) == 3
    assert body["summary"]["total_contributions"] == 1000 + 36 * 100
    ensemble = body["ensemble"]
    assert ensemble["completed_runs"] == 20
    assert ensemble["seed"] == 7
    assert ensemble["percentiles"]["p5"] <= ensemble["percentiles"]["p95"]
    assert len(ensemble["yearly_bands"]["p50"]) == 4
    assert ensemble["real_percentiles"]["p50"] <= ensemble["percentiles"]["p95"]


def test_simulate_without_ensemble():
    response = client.post(
        "/api/simulate", json={"config": SMALL_CONFIG, "include_ensemble": False}
    )

    assert response.status_code == 200
    assert response.json()["ensemble"] is None
