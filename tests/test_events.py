from datetime import datetime, timedelta

import pytest

from database import COLL_EVENTS, COLL_GUESTS, COLL_HOSTS
from errors import AuthorizationError, NotFoundError, ValidationError
from events import EventService, compute_guest_stats, parse_sort, status_breakdown
from identity import Account, AccountKind
from schemas import GuestEntry


def _account(db, phone, role="host"):
    doc = {"phone_number": phone, "username": f"user{phone}", "role": role}
    doc["_id"] = db[COLL_HOSTS].insert_one(doc).inserted_id
    return Account(AccountKind.HOST, doc)


@pytest.fixture
def service(db):
    return EventService(db)


@pytest.fixture
def owner(db):
    return _account(db, "0500000001")


@pytest.fixture
def stranger(db):
    return _account(db, "0500000002")


def _details(**extra):
    return {"event_details": {"title": "Launch", "type": "meeting",
                              "date": datetime(2099, 1, 1), **extra}}


def _guests(*names):
    return [GuestEntry(name=n, email=f"{n.lower()}@example.com") for n in names]


def test_guest_stats_rollup():
    assert compute_guest_stats(["confirmed", "invited", "attended"]) == {
        "total_invited": 3, "total_confirmed": 1, "total_attended": 1,
    }
    assert compute_guest_stats([]) == {"total_invited": 0, "total_confirmed": 0, "total_attended": 0}


def test_status_breakdown_keys():
    breakdown = status_breakdown(["invited", "no-response", "no-response"])
    assert breakdown == {"invited": 1, "confirmed": 0, "declined": 0, "attended": 0, "no_response": 2}


def test_parse_sort():
    assert parse_sort(None) == [("created_at", -1)]
    assert parse_sort("-event_details.date,status") == [("event_details.date", -1), ("status", 1)]


def test_create_event_attaches_guests(db, service, owner):
    event = service.create_event(_details(), _guests("Ann", "Bob"), owner)

    assert [g["name"] for g in event["guest_list"]] == ["Ann", "Bob"]
    assert event["host"]["username"] == owner.doc["username"]
    assert event["status"] == "draft"
    assert event["guest_stats"]["total_invited"] == 2

    stored = db[COLL_GUESTS].find({"event": event["_id"]})
    for guest in stored:
        assert guest["status"] == "invited"
        assert guest["qrcode"].startswith(f"guest_{guest['_id']}_")


def test_create_event_requires_details_and_guests(service, owner):
    with pytest.raises(ValidationError):
        service.create_event({}, _guests("Ann"), owner)
    with pytest.raises(ValidationError):
        service.create_event(_details(), [], owner)


def test_stats_follow_guest_statuses(db, service, owner):
    event = service.create_event(_details(), _guests("G1", "G2", "G3"), owner)
    ids = [g["_id"] for g in event["guest_list"]]
    service.set_guest_status(event["_id"], ids[0], "confirmed", owner)
    service.check_in_guest(event["_id"], ids[2], owner)

    stats = service.event_stats(event["_id"], owner)
    assert stats["stats"] == {"total_invited": 3, "total_confirmed": 1, "total_attended": 1}
    assert stats["guest_status_breakdown"]["invited"] == 1
    assert db[COLL_EVENTS].find_one({"_id": event["_id"]})["guest_stats"]["total_attended"] == 1


def test_update_reconciles_guest_list(db, service, owner):
    event = service.create_event(_details(), _guests("Ann", "Bob", "Cid"), owner)
    ann, bob, cid = [g["_id"] for g in event["guest_list"]]

    new_list = [
        GuestEntry(id=str(bob), name="Bobby", email="bob@example.com"),
        GuestEntry(name="Dee", phone="+966500000001"),
    ]
    updated = service.update_event(event["_id"], {}, new_list, owner)

    names = [g["name"] for g in updated["guest_list"]]
    assert names == ["Bobby", "Dee"]
    assert updated["guest_list"][0]["_id"] == bob
    assert db[COLL_GUESTS].find_one({"_id": ann}) is None
    assert db[COLL_GUESTS].find_one({"_id": cid}) is None
    assert db[COLL_GUESTS].count_documents({"event": event["_id"]}) == 2
    assert updated["guest_stats"]["total_invited"] == 2


def test_update_ignores_ids_from_other_events(db, service, owner):
    first = service.create_event(_details(), _guests("Ann"), owner)
    second = service.create_event(_details(), _guests("Bob"), owner)
    foreign = str(first["guest_list"][0]["_id"])

    updated = service.update_event(second["_id"], {}, [GuestEntry(id=foreign, name="Ann", email="a@x.io")], owner)

    assert updated["guest_list"][0]["_id"] != first["guest_list"][0]["_id"]
    assert db[COLL_GUESTS].find_one({"_id": first["guest_list"][0]["_id"]}) is not None


def test_update_without_guest_list_keeps_guests(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    updated = service.update_event(event["_id"], {"event_details": {"title": "Renamed"}}, None, owner)
    assert updated["event_details"]["title"] == "Renamed"
    assert len(updated["guest_list"]) == 1


def test_only_owner_can_touch_event(service, owner, stranger):
    event = service.create_event(_details(), _guests("Ann"), owner)
    with pytest.raises(AuthorizationError):
        service.update_event(event["_id"], {}, None, stranger)
    with pytest.raises(AuthorizationError):
        service.delete_event(event["_id"], stranger)
    with pytest.raises(AuthorizationError):
        service.event_stats(event["_id"], stranger)
    with pytest.raises(AuthorizationError):
        service.get_event(event["_id"], stranger)
    with pytest.raises(AuthorizationError):
        service.update_status(event["_id"], "published", stranger)


def test_delete_event_removes_guests(db, service, owner):
    event = service.create_event(_details(), _guests("Ann", "Bob"), owner)
    service.delete_event(event["_id"], owner)
    assert db[COLL_EVENTS].count_documents({}) == 0
    assert db[COLL_GUESTS].count_documents({}) == 0
    with pytest.raises(NotFoundError):
        service.get_event(event["_id"], owner)


def test_update_status(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    assert service.update_status(event["_id"], "published", owner)["status"] == "published"
    with pytest.raises(ValidationError):
        service.update_status(event["_id"], "archived", owner)
    with pytest.raises(ValidationError):
        service.update_status(event["_id"], None, owner)


def test_invalid_event_id(service, owner):
    with pytest.raises(ValidationError):
        service.get_event("nope", owner)


def test_rsvp_stamped_once(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    guest_id = event["guest_list"][0]["_id"]

    confirmed = service.set_guest_status(event["_id"], guest_id, "confirmed", owner)
    stamped_at = confirmed["rsvp"]["responded_at"]
    assert confirmed["rsvp"]["responded"] is True

    declined = service.set_guest_status(event["_id"], guest_id, "declined", owner)
    assert declined["rsvp"]["responded_at"] == stamped_at


def test_non_rsvp_status_does_not_stamp(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    guest = service.set_guest_status(event["_id"], event["guest_list"][0]["_id"], "no-response", owner)
    assert guest["rsvp"]["responded"] is False


def test_check_in_forces_attended(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    guest = service.check_in_guest(event["_id"], event["guest_list"][0]["_id"], owner)
    assert guest["status"] == "attended"
    assert guest["check_in"]["checked_in"] is True
    assert guest["check_in"]["checked_in_at"] is not None


def test_invitation_tracking_keeps_status(service, owner):
    event = service.create_event(_details(), _guests("Ann"), owner)
    guest = service.mark_invitation_sent(event["_id"], event["guest_list"][0]["_id"], "whatsapp", owner)
    assert guest["invitation"]["sent"] is True
    assert guest["invitation"]["method"] == "whatsapp"
    assert guest["status"] == "invited"


def test_listing_is_scoped_to_requester(service, owner, stranger):
    service.create_event(_details(), _guests("Ann"), owner)
    service.create_event(_details(), _guests("Bob"), owner)
    service.create_event(_details(), _guests("Cid"), stranger)

    events, total = service.list_events(owner)
    assert total == 2
    assert all(e["host"]["_id"] == owner.id for e in events)

    page, total = service.list_events(owner, page=2, limit=1)
    assert total == 2 and len(page) == 1


def test_upcoming_events(service, owner):
    service.create_event(_details(date=datetime(2099, 1, 1)), _guests("Ann"), owner)
    service.create_event(_details(date=datetime.utcnow() - timedelta(days=1)), _guests("Bob"), owner)
    upcoming = service.upcoming_events(owner)
    assert len(upcoming) == 1
    assert upcoming[0]["event_details"]["date"].year == 2099


def test_events_by_host_requires_same_host(service, owner, stranger):
    service.create_event(_details(), _guests("Ann"), owner)
    assert len(service.events_by_host(str(owner.id), owner)) == 1
    with pytest.raises(AuthorizationError):
        service.events_by_host(str(owner.id), stranger)
