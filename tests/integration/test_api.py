"""Integration tests for API endpoints"""

from fastapi.testclient import TestClient


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient, sample_state):
    """Test Prometheus metrics endpoint"""
    client.post("/v1/risk-findings", json={"currentCollectionsState": sample_state})

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "budget_risk_evaluations_total" in response.text
    assert "http_request_duration_seconds" in response.text


def test_risk_findings_endpoint(client: TestClient, sample_state):
    """Test POST /v1/risk-findings with a valid snapshot"""
    response = client.post(
        "/v1/risk-findings",
        json={"currentCollectionsState": sample_state, "correlationId": "corr-1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["error"] is None
    assert data["correlationId"] == "corr-1"
    ids = [finding["id"] for finding in data["findings"]]
    assert "dti-gt-20" in ids
    assert all("metricValue" in finding for finding in data["findings"])


def test_risk_findings_mints_correlation_id(client: TestClient, empty_state):
    response = client.post("/v1/risk-findings", json={"currentCollectionsState": empty_state})

    assert response.status_code == 200
    assert response.json()["correlationId"]


def test_risk_findings_malformed_snapshot(client: TestClient):
    """Validation problems come back in the body, not as an HTTP error"""
    response = client.post("/v1/risk-findings", json={"currentCollectionsState": {"income": "oops"}})

    assert response.status_code == 200
    data = response.json()
    assert data["findings"] == []
    assert data["error"]["kind"] == "VALIDATION"
    assert data["error"]["recoverable"] is True


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated(client: TestClient):
    response = client.get("/health")
    assert response.headers["X-Request-ID"]


def test_net_worth_projection_endpoint(client: TestClient, sample_state):
    """Test POST /v1/net-worth-projection"""
    response = client.post(
        "/v1/net-worth-projection",
        json={"currentCollectionsState": sample_state, "referenceDate": "2024-03-20"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["error"] is None
    projection = data["projection"]
    assert [horizon["id"] for horizon in projection["horizons"]] == [
        "current", "6-months", "1-year", "2-years", "5-years", "10-years",
    ]
    assert [profile["id"] for profile in projection["profiles"]] == ["conservative", "base", "accelerated"]
    assert projection["baselineVariables"]["startingAssetValue"] == 29000
    assert projection["baselineVariables"]["startingLiabilityBalance"] == 213500

    current = projection["profiles"][1]["points"][0]
    assert current["horizonId"] == "current"
    assert current["projectedNetWorth"] == 29000 - 213500


def test_net_worth_projection_malformed(client: TestClient):
    response = client.post("/v1/net-worth-projection", json={"currentCollectionsState": None})

    assert response.status_code == 200
    data = response.json()
    assert data["projection"] is None
    assert data["error"]["message"] == "currentCollectionsState must be an object"


def test_invalid_reference_date(client: TestClient, empty_state):
    response = client.post(
        "/v1/net-worth-projection",
        json={"currentCollectionsState": empty_state, "referenceDate": "not-a-date"},
    )
    assert response.status_code == 422
