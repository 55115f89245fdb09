from datetime import timedelta

import pytest

from ridecrew.core.errors import ApiErrorCode
from ridecrew.modules.participants.service import ParticipantService


@pytest.fixture
def open_ride(fake_supabase, now):
    return fake_supabase.add_ride("alice", now + timedelta(hours=3))


def participations(db, ride_id):
    return [p for p in db.tables["ride_participants"] if p["ride_id"] == ride_id]


def service(db, session, now):
    return ParticipantService(db, session, clock=lambda: now)


@pytest.mark.parametrize("status", ["closed", "cancelled"])
def test_join_rejects_rides_that_are_not_open(fake_supabase, bob, now, status):
    ride = fake_supabase.add_ride("alice", now + timedelta(hours=3), status=status)
    response = service(fake_supabase, bob, now).join_ride(ride["id"])
    assert response.error.code == ApiErrorCode.RIDE_EXPIRED
    assert participations(fake_supabase, ride["id"]) == []


@pytest.mark.parametrize("status", ["open", "closed"])
def test_join_rejects_rides_that_already_started(fake_supabase, bob, now, status):
    ride = fake_supabase.add_ride("alice", now - timedelta(minutes=5), preset="now", status=status)
    response = service(fake_supabase, bob, now).join_ride(ride["id"])
    assert response.error.code == ApiErrorCode.RIDE_EXPIRED
    assert participations(fake_supabase, ride["id"]) == []


def test_join_rejects_a_ride_starting_right_now(fake_supabase, bob, now):
    ride = fake_supabase.add_ride("alice", now, preset="now")
    response = service(fake_supabase, bob, now).join_ride(ride["id"])
    assert response.error.code == ApiErrorCode.RIDE_EXPIRED


def test_creator_cannot_join_own_ride(fake_supabase, alice, now, open_ride):
    response = service(fake_supabase, alice, now).join_ride(open_ride["id"])
    assert response.success is False
    assert response.error.code == ApiErrorCode.ALREADY_PARTICIPANT
    assert response.error.user_message == "You cannot join a ride you created."
    assert participations(fake_supabase, open_ride["id"]) == []


def test_second_join_is_rejected_without_duplicate(fake_supabase, bob, now, open_ride):
    svc = service(fake_supabase, bob, now)
    first = svc.join_ride(open_ride["id"])
    assert first.success is True
    assert first.data.user_id == "bob"

    second = svc.join_ride(open_ride["id"])
    assert second.error.code == ApiErrorCode.ALREADY_PARTICIPANT
    assert len(participations(fake_supabase, open_ride["id"])) == 1


def test_join_unknown_ride(fake_supabase, bob, now):
    response = service(fake_supabase, bob, now).join_ride("missing")
    assert response.error.code == ApiErrorCode.NOT_FOUND


def test_join_requires_login(fake_supabase, anonymous, now, open_ride):
    response = service(fake_supabase, anonymous, now).join_ride(open_ride["id"])
    assert response.error.code == ApiErrorCode.UNAUTHORIZED
    assert fake_supabase.calls == []


def test_creator_cannot_leave_own_ride(fake_supabase, alice, now, open_ride):
    fake_supabase.add_participant(open_ride["id"], "bob")
    response = service(fake_supabase, alice, now).leave_ride(open_ride["id"])
    assert response.error.code == ApiErrorCode.CANNOT_LEAVE_OWN_RIDE
    assert len(participations(fake_supabase, open_ride["id"])) == 1


def test_non_participant_cannot_leave(fake_supabase, bob, now, open_ride):
    response = service(fake_supabase, bob, now).leave_ride(open_ride["id"])
    assert response.error.code == ApiErrorCode.NOT_PARTICIPANT


def test_join_then_leave_restores_participation_table(fake_supabase, bob, now, open_ride):
    before = list(fake_supabase.tables["ride_participants"])
    svc = service(fake_supabase, bob, now)
    assert svc.join_ride(open_ride["id"]).success
    assert svc.leave_ride(open_ride["id"]).success
    assert fake_supabase.tables["ride_participants"] == before


def test_participants_are_listed_in_join_order(fake_supabase, alice, now, open_ride):
    fake_supabase.add_profile("carol", "Carol")
    fake_supabase.add_participant(open_ride["id"], "carol", created_at="2024-01-02T00:00:00+00:00")
    fake_supabase.add_participant(open_ride["id"], "bob", created_at="2024-01-01T00:00:00+00:00")

    response = service(fake_supabase, alice, now).get_ride_participants(open_ride["id"])
    assert [p.user_id for p in response.data] == ["bob", "carol"]
    assert response.data[0].profile.first_name == "Bob"


def test_participation_queries(fake_supabase, bob, now, open_ride):
    svc = service(fake_supabase, bob, now)
    assert svc.is_user_participating(open_ride["id"]).data is False
    svc.join_ride(open_ride["id"])

    assert svc.is_user_participating(open_ride["id"]).data is True
    assert svc.get_ride_participant_count(open_ride["id"]).data == 1
    assert svc.get_user_participations().data == [open_ride["id"]]


def test_anonymous_is_never_participating(fake_supabase, anonymous, now, open_ride):
    response = service(fake_supabase, anonymous, now).is_user_participating(open_ride["id"])
    assert response.data is False
