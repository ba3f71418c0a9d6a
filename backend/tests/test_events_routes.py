# tests/test_events_routes.py
import datetime as dt

from fastapi.encoders import jsonable_encoder

from ecotrack.core.utils import utcnow

CREATOR = "organizer-1"


def _create(client, auth, payload) -> dict:
    r = client.post("/events", json=jsonable_encoder(payload), headers=auth(CREATOR))
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_create_event_uses_max_participants_as_capacity(client, auth, event_data):
    ev = _create(client, auth, event_data(max_participants=12))

    assert ev["capacity"] == 12
    assert ev["spots_remaining"] == 12
    assert ev["location"]["city"] == "Brighton"
    assert ev["slug"] == "beach-cleanup-day"


def test_create_event_in_the_past_is_rejected(client, auth, event_data):
    r = client.post(
        "/events",
        json=jsonable_encoder(event_data(date=utcnow() - dt.timedelta(hours=1))),
        headers=auth(CREATOR),
    )

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_create_event_requires_capacity(client, auth, event_data):
    payload = event_data()
    payload.pop("max_participants")

    r = client.post("/events", json=jsonable_encoder(payload), headers=auth(CREATOR))

    assert r.status_code == 422


def test_same_title_events_get_distinct_slugs(client, auth, event_data):
    first = _create(client, auth, event_data())
    second = _create(client, auth, event_data())

    assert (first["slug"], second["slug"]) == ("beach-cleanup-day", "beach-cleanup-day-1")


def test_event_full_then_spot_freed(client, auth, event_data):
    ev = _create(client, auth, event_data(max_participants=1))
    url = f"/events/{ev['id']}"

    assert client.post(f"{url}/join", headers=auth("alice")).status_code == 200
    full = client.post(f"{url}/join", headers=auth("bob"))
    assert full.status_code == 409
    assert full.json()["error"]["code"] == "FULL"

    assert client.post(f"{url}/leave", headers=auth("alice")).status_code == 200
    assert client.post(f"{url}/join", headers=auth("bob")).status_code == 200


def test_patch_event_date_to_past_is_rejected(client, auth, event_data):
    ev = _create(client, auth, event_data())

    r = client.patch(
        f"/events/{ev['id']}",
        json=jsonable_encoder({"date": utcnow() - dt.timedelta(days=1)}),
        headers=auth(CREATOR),
    )

    assert r.status_code == 422


def test_patch_event_status_transition(client, auth, event_data):
    ev = _create(client, auth, event_data())
    url = f"/events/{ev['id']}"

    done = client.patch(url, json={"status": "completed"}, headers=auth(CREATOR))
    assert done.status_code == 200
    assert done.json()["data"]["status"] == "completed"

    reopened = client.patch(url, json={"status": "active"}, headers=auth(CREATOR))
    assert reopened.status_code == 422
    assert reopened.json()["error"]["code"] == "VALIDATION_ERROR"


def test_delete_without_participants_removes_event(client, auth, event_data):
    ev = _create(client, auth, event_data())

    r = client.delete(f"/events/{ev['id']}", headers=auth(CREATOR))

    assert r.status_code == 200
    assert r.json()["data"]["deleted"] is True
    assert r.json()["data"]["cancelled"] is False
    assert r.json()["message"] == "Event deleted"
    assert client.get(f"/events/{ev['id']}").status_code == 404


def test_delete_forbidden_for_other_user(client, auth, event_data):
    ev = _create(client, auth, event_data())

    r = client.delete(f"/events/{ev['id']}", headers=auth("alice"))

    assert r.status_code == 403
    assert client.get(f"/events/{ev['id']}").status_code == 200


def test_list_filters_by_status_and_date_range(client, auth, event_data):
    now = utcnow()
    _create(client, auth, event_data(title="Beach Cleanup Day", date=now + dt.timedelta(days=3)))
    far = _create(client, auth, event_data(title="Tree Planting Morning", date=now + dt.timedelta(days=30)))
    client.patch(f"/events/{far['id']}", json={"status": "cancelled"}, headers=auth(CREATOR))

    active = client.get("/events", params={"status": "active"}).json()["data"]
    later = client.get(
        "/events", params={"date_from": (now + dt.timedelta(days=10)).isoformat()}
    ).json()["data"]
    newest_first = client.get("/events", params={"order": "desc"}).json()["data"]

    assert [e["title"] for e in active["items"]] == ["Beach Cleanup Day"]
    assert [e["title"] for e in later["items"]] == ["Tree Planting Morning"]
    assert [e["title"] for e in newest_first["items"]] == ["Tree Planting Morning", "Beach Cleanup Day"]
    assert client.get("/events", params={"status": "archived"}).status_code == 422


def test_my_joined_when_filter(client, auth, event_data):
    ev = _create(client, auth, event_data())
    client.post(f"/events/{ev['id']}/join", headers=auth("alice"))

    upcoming = client.get("/events/my/joined", headers=auth("alice")).json()["data"]
    past = client.get("/events/my/joined", params={"when": "past"}, headers=auth("alice")).json()["data"]

    assert [e["id"] for e in upcoming["items"]] == [ev["id"]]
    assert upcoming["items"][0]["is_joined"] is True
    assert past["items"] == []
    assert (past["upcoming"], past["past"]) == (1, 0)
