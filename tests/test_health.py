def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/health/live").json() == {"status": "ok"}


def test_ready_reports_storage_and_resources(client):
    r = client.get("/health/ready")
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "ready", "storage": "file", "resources": ["hero", "note"]}


def test_not_ready_when_storage_is_gone(client, data_dir):
    for p in data_dir.iterdir():
        p.unlink()
    data_dir.rmdir()

    r = client.get("/health/ready")
    assert r.status_code == 503
    assert r.json()["problems"] == ["storage_unreachable:file"]
