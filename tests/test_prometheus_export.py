"""Prometheus export endpoint contract tests.

Validates that the scrape endpoint is reachable and exposes the expected
metric names. Absolute counter values are process-wide and not asserted.
"""

from common_rest.api.observability.metrics import normalize_path


def test_prometheus_metrics_endpoint_returns_200(client):
    client.post("/api/hero", json={"name": "Zeus"})
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "commonrest_http_requests_total" in r.text
    assert "commonrest_resource_operations_total" in r.text
    assert "commonrest_sequence_values_total" in r.text


def test_normalize_path_keeps_labels_low_cardinality():
    assert normalize_path("/api/hero/12") == "/api/hero/:id"
    assert normalize_path("/api/hero/zeus") == "/api/hero/:id"
    assert normalize_path("/api/note/0f8e3c7d9b2a4e61a5c3d7e9f1b2c4d6") == "/api/note/:hex"
    assert normalize_path("/api/hero/batch-delete") == "/api/hero/batch-delete"
    assert normalize_path("/api/hero") == "/api/hero"


def test_metrics_can_be_limited_to_named_samples(client):
    client.get("/api/hero")
    r = client.get("/metrics", params={"name[]": "commonrest_http_requests_total"})
    assert r.status_code == 200
    assert "commonrest_http_requests_total{" in r.text
    assert "commonrest_sequence_values_total" not in r.text


def test_metrics_speak_openmetrics_when_asked(client):
    r = client.get("/metrics", headers={"Accept": "application/openmetrics-text; version=1.0.0"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/openmetrics-text")
    assert r.text.endswith("# EOF\n")


def test_normalize_path_bounds_unknown_resources_and_routes():
    known = ["hero", "note"]
    assert normalize_path("/api/hero/7", resources=known) == "/api/hero/:id"
    assert normalize_path("/api/ghost-1", resources=known) == "/api/:resource"
    assert normalize_path("/api/whatever/abc", resources=known) == "/api/:resource/:id"
    assert normalize_path("/api/hero/1/extra/segments", resources=known) == "/api/hero/:id/*"
    assert normalize_path("/wp-login.php", resources=known) == "/:unmatched"
    assert normalize_path("/health/ready", resources=known) == "/health/ready"
    assert normalize_path("/api/", resources=known) == "/api/"


def test_unknown_resources_share_one_metrics_label(client):
    for name in ("nope-a", "nope-b"):
        assert client.get(f"/api/{name}").status_code == 400
    text = client.get("/metrics").text
    assert 'path="/api/:resource"' in text
    assert "nope-a" not in text
