import pytest


@pytest.mark.asyncio
async def test_health_check_success(client):
    """Health check reports a reachable database."""
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_status"] == "healthy"
    assert "uptime_seconds" in data
    assert "version" in data


@pytest.mark.asyncio
async def test_liveness_probe(client):
    """Liveness probe."""
    response = await client.get("/api/v1/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness_probe(client):
    """Readiness probe succeeds when the database answers."""
    response = await client.get("/api/v1/health/ready")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_version_endpoint(client):
    """Version information."""
    response = await client.get("/api/v1/health/version")

    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "1.0.0"
    assert data["api_version"] == "/api/v1"


@pytest.mark.asyncio
async def test_prometheus_metrics_exposed(client):
    """Metrics endpoint serves the Prometheus text format."""
    await client.get("/api/v1/health/live")
    response = await client.get("/api/v1/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text


@pytest.mark.asyncio
async def test_process_time_header(client):
    """Every response carries X-Process-Time."""
    response = await client.get("/")

    assert response.status_code == 200
    assert "x-process-time" in response.headers
    assert response.json()["status"] == "running"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client):
    """A 404 is rendered with the standard envelope."""
    response = await client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["meta"]["code"] == 404
    assert body["data"] is None
