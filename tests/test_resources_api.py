from fastapi.testclient import TestClient


def _create(client: TestClient, body):
    r = client.post("/api/hero", json=body)
    assert r.status_code == 200, r.text
    return r.json()


def test_hero_scenario(client):
    zeus = _create(client, {"name": "Zeus"})
    assert zeus == {"id": 1, "name": "Zeus", "rank": 0}

    hera = _create(client, {"name": "Hera"})
    assert hera["id"] == 2

    r = client.delete("/api/hero/999")
    assert r.status_code == 404, r.text
    assert r.json()["code"] == "not_found"

    r = client.put("/api/hero/1", json={"id": 1, "name": "Zeus II"})
    assert r.status_code == 200, r.text
    assert r.json() == {"id": 1, "name": "Zeus II", "rank": 0}

    r = client.get("/api/hero/1")
    assert r.json()["name"] == "Zeus II"


def test_output_never_contains_non_readable_fields(client):
    _create(client, {"name": "Zeus"})
    for doc in [client.get("/api/hero/1").json(), *client.get("/api/hero").json()]:
        assert "_id" not in doc
        assert "__v" not in doc


def test_create_ignores_caller_supplied_protected_fields(client):
    body = _create(client, {"id": 50, "name": "Zeus", "owner": "mallory", "isAdmin": True})
    assert body["id"] == 1
    assert "owner" not in body
    assert "isAdmin" not in body


def test_create_missing_required_field(client):
    r = client.post("/api/hero", json={"power": "thunder"})
    assert r.status_code == 400, r.text
    body = r.json()
    assert body["code"] == "missing_parameter"
    assert body["parameter"] == "name"
    assert body["detail"] == "name is required to create the hero"

    # the failed create did not consume an id
    assert _create(client, {"name": "Zeus"})["id"] == 1


def test_update_without_required_field_succeeds(client):
    _create(client, {"name": "Zeus", "power": "thunder"})
    r = client.put("/api/hero/1", json={"power": "lightning"})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Zeus"
    assert r.json()["power"] == "lightning"


def test_update_unknown_id_is_404(client):
    r = client.put("/api/hero/42", json={"name": "nobody"})
    assert r.status_code == 404, r.text


def test_get_unknown_and_uncastable_ids_are_404(client):
    _create(client, {"name": "Zeus"})
    assert client.get("/api/hero/2").status_code == 404
    assert client.get("/api/hero/zeus").status_code == 404


def test_unknown_resource_is_400(client):
    for r in (
        client.get("/api/villain"),
        client.get("/api/villain/1"),
        client.post("/api/villain", json={"name": "x"}),
        client.delete("/api/villain/1"),
    ):
        assert r.status_code == 400, r.text
        assert r.json()["code"] == "unknown_resource"
        assert r.json()["resource"] == "villain"


def test_create_many(client):
    r = client.post("/api/hero", json=[{"name": "Zeus"}, {"name": "Hera"}, {"name": "Ares"}])
    assert r.status_code == 200, r.text
    assert [h["id"] for h in r.json()] == [1, 2, 3]
    assert all("_id" not in h for h in r.json())


def test_create_many_validates_every_item_first(client):
    r = client.post("/api/hero", json=[{"name": "Zeus"}, {"power": "none"}])
    assert r.status_code == 400, r.text
    assert client.get("/api/hero").json() == []
    assert _create(client, {"name": "Zeus"})["id"] == 1


def test_list_filters_on_readable_fields(client):
    _create(client, {"name": "Zeus", "power": "thunder"})
    _create(client, {"name": "Hera", "power": "marriage"})

    r = client.get("/api/hero", params={"power": "thunder"})
    assert [h["name"] for h in r.json()] == ["Zeus"]

    r = client.get("/api/hero", params={"id": "2"})
    assert [h["name"] for h in r.json()] == ["Hera"]

    # non-readable and unknown parameters do not filter
    r = client.get("/api/hero", params={"__v": "5", "page": "2"})
    assert len(r.json()) == 2


def test_delete(client):
    _create(client, {"name": "Zeus"})
    r = client.delete("/api/hero/1")
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted": 1}
    assert client.get("/api/hero/1").status_code == 404


def test_resource_addressed_by_implicit_id(client):
    r = client.post("/api/note", json={"title": "hello", "body": "world"})
    assert r.status_code == 200, r.text
    note = r.json()
    note_id = note["_id"]

    assert client.get(f"/api/note/{note_id}").json()["title"] == "hello"
    r = client.put(f"/api/note/{note_id}", json={"body": "there"})
    assert r.json()["body"] == "there"
    assert client.delete(f"/api/note/{note_id}").status_code == 200


def test_storage_validation_error_is_400(client):
    r = client.post("/api/hero", json={"name": "Zeus", "rank": "first"})
    assert r.status_code == 400, r.text
    assert r.json()["code"] == "invalid_document"
    assert r.json()["field"] == "rank"


def test_index_lists_resources(client):
    r = client.get("/api/")
    assert r.status_code == 200, r.text
    assert r.json()["resources"] == ["hero", "note"]
