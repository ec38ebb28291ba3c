"""Incident report API tests."""


def test_reporting_requires_login(client):
    r = client.post("/incidents", json={"type": "THEFT", "latitude": 27.5, "longitude": 77.6})
    assert r.status_code == 401


def test_invalid_coordinates_are_rejected(client, register_and_login):
    _, headers = register_and_login()
    r = client.post("/incidents", headers=headers, json={"type": "THEFT", "latitude": 123.0, "longitude": 77.6})
    assert r.status_code == 422


def test_active_incidents_readable_without_login(client, register_and_login):
    _, headers = register_and_login()
    incident_id = client.post(
        "/incidents", headers=headers, json={"type": "FIRE", "latitude": 27.5, "longitude": 77.6}
    ).json()["id"]
    ids = [i["id"] for i in client.get("/incidents").json()]
    assert incident_id in ids


def test_only_reporter_can_resolve_or_delete(client, register_and_login):
    _, owner = register_and_login()
    _, other = register_and_login()
    incident_id = client.post(
        "/incidents", headers=owner, json={"type": "FIRE", "latitude": 27.5, "longitude": 77.6}
    ).json()["id"]

    assert client.post(f"/incidents/{incident_id}/resolve", headers=other).status_code == 403
    assert client.delete(f"/incidents/{incident_id}", headers=other).status_code == 403
    assert client.delete(f"/incidents/{incident_id}", headers=owner).status_code == 204
    assert client.delete(f"/incidents/{incident_id}", headers=owner).status_code == 404
    assert incident_id not in [i["id"] for i in client.get("/incidents").json()]
