"""Emergency contact visibility and ownership tests."""

from types import SimpleNamespace

import pytest

from safecampus.models.emergency_contact import EmergencyContact
from safecampus.services.contact_service import can_delete, is_visible


@pytest.fixture
def three_contacts(client, db_session, register_and_login):
    """{public}, {owned by U1}, {owned by U2}."""
    u1, u1_headers = register_and_login()
    u2, u2_headers = register_and_login()

    public = EmergencyContact(user_id=None, name="Campus Security", phone="100")
    db_session.add(public)
    db_session.commit()

    id2 = client.post("/contacts", headers=u1_headers, json={"name": "Mom", "phone": "555-0101"}).json()["id"]
    id3 = client.post("/contacts", headers=u2_headers, json={"name": "Dad", "phone": "555-0102"}).json()["id"]
    return SimpleNamespace(id1=public.id, id2=id2, id3=id3, u1_headers=u1_headers, u2_headers=u2_headers)


@pytest.mark.parametrize(
    "owner, viewer, visible, deletable",
    [
        (None, 1, True, False),
        (None, None, True, False),
        (1, 1, True, True),
        (1, 2, False, False),
        (1, None, False, False),
    ],
)
def test_visibility_rules(owner, viewer, visible, deletable):
    contact = SimpleNamespace(user_id=owner)
    assert is_visible(contact, viewer) is visible
    assert can_delete(contact, viewer) is deletable


def test_user_sees_public_and_own_contacts(client, three_contacts):
    body = client.get("/contacts", headers=three_contacts.u1_headers).json()
    ids = {c["id"] for c in body}
    assert {three_contacts.id1, three_contacts.id2} <= ids
    assert three_contacts.id3 not in ids

    flags = {c["id"]: (c["is_public"], c["can_delete"]) for c in body}
    assert flags[three_contacts.id1] == (True, False)
    assert flags[three_contacts.id2] == (False, True)


def test_anonymous_sees_only_public_contacts(client, three_contacts):
    body = client.get("/contacts").json()
    ids = {c["id"] for c in body}
    assert three_contacts.id1 in ids
    assert three_contacts.id2 not in ids and three_contacts.id3 not in ids
    assert all(c["user_id"] is None and not c["can_delete"] for c in body)


def test_only_owner_can_delete(client, three_contacts):
    headers = three_contacts.u1_headers
    assert client.delete(f"/contacts/{three_contacts.id1}", headers=headers).status_code == 403
    assert client.delete(f"/contacts/{three_contacts.id3}", headers=headers).status_code == 404
    assert client.delete(f"/contacts/{three_contacts.id2}", headers=headers).status_code == 204

    ids = {c["id"] for c in client.get("/contacts", headers=headers).json()}
    assert three_contacts.id2 not in ids


def test_anonymous_cannot_delete(client, three_contacts):
    assert client.delete(f"/contacts/{three_contacts.id1}").status_code == 403


def test_adding_contact_requires_login_and_fields(client, register_and_login):
    assert client.post("/contacts", json={"name": "X", "phone": "12345"}).status_code == 401

    _, headers = register_and_login()
    r = client.post("/contacts", headers=headers, json={"name": "   ", "phone": "12345"})
    assert r.status_code == 400


def test_contacts_listed_newest_first(client, register_and_login):
    _, headers = register_and_login()
    first = client.post("/contacts", headers=headers, json={"name": "A", "phone": "111"}).json()["id"]
    second = client.post("/contacts", headers=headers, json={"name": "B", "phone": "222"}).json()["id"]

    mine = [c["id"] for c in client.get("/contacts", headers=headers).json() if not c["is_public"]]
    assert mine == [second, first]
