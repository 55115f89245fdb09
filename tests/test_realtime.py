import pytest

from ridecrew.database.supabase_client import SupabaseClient
from ridecrew.realtime.profile_watcher import ProfileWatcher
from ridecrew.realtime.subscription import ChangeEvent, ChangeSubscription


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.bindings = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.bindings.append({"event": event, "table": table, "schema": schema, "filter": filter})
        self.callback = callback
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        if callback is not None:
            callback("SUBSCRIBED", None)
        return self

    def push(self, event_type, record, old=None, table="profiles"):
        self.callback({"data": {
            "type": event_type,
            "table": table,
            "record": record,
            "old_record": old or {},
        }})


class FakeRealtimeClient:
    def __init__(self):
        self.channels = {}
        self.removed = []

    def channel(self, name):
        self.channels[name] = FakeChannel(name)
        return self.channels[name]

    async def remove_channel(self, channel):
        self.removed.append(channel.name)


def test_change_event_from_flat_payload():
    event = ChangeEvent.from_payload({"eventType": "insert", "new": {"id": 1}}, "rides")
    assert event.event_type == "INSERT"
    assert event.table == "rides"
    assert event.new == {"id": 1}
    assert event.old == {}


async def test_subscription_delivers_events_then_closes():
    client = FakeRealtimeClient()
    async with ChangeSubscription(client, "rides", event="INSERT", name="rides-feed") as subscription:
        channel = client.channels["rides-feed"]
        assert channel.bindings == [{"event": "INSERT", "table": "rides", "schema": "public", "filter": None}]
        channel.push("INSERT", {"id": "ride-1"}, table="rides")
        event = await subscription.get(timeout=1)
        assert event.event_type == "INSERT"
        assert event.new == {"id": "ride-1"}

    assert client.removed == ["rides-feed"]
    assert subscription.is_open is False
    assert await subscription.get(timeout=1) is None


async def test_events_queued_before_close_are_still_delivered():
    client = FakeRealtimeClient()
    subscription = await ChangeSubscription(client, "rides", name="feed").open()
    client.channels["feed"].push("DELETE", {}, old={"id": "ride-9"}, table="rides")
    await subscription.close()
    client.channels["feed"].push("INSERT", {"id": "late"}, table="rides")

    events = [event async for event in subscription]
    assert [e.old.get("id") for e in events] == ["ride-9"]


async def test_profile_watcher_merges_changes(alice):
    client = FakeRealtimeClient()
    changes = []
    async with ProfileWatcher(client, alice, on_change=changes.append) as watcher:
        channel = client.channels["profile-data-changes-alice"]
        assert channel.bindings[0]["filter"] == "id=eq.alice"
        assert channel.bindings[0]["event"] == "UPDATE"
        channel.push("UPDATE", {"id": "alice", "first_name": "Alicia", "onboarding_completed": True})
        channel.push("UPDATE", {"id": "alice", "first_name": "Alicia"})
        await watcher.subscription.close()
        await watcher._task

    assert alice.profile["first_name"] == "Alicia"
    assert changes == [{"first_name": "Alicia"}]
    assert client.removed == ["profile-data-changes-alice"]


def test_profile_watcher_needs_a_user(anonymous):
    with pytest.raises(ValueError):
        ProfileWatcher(FakeRealtimeClient(), anonymous)


async def test_watcher_for_session_uses_shared_async_client(monkeypatch, bob):
    client = FakeRealtimeClient()
    monkeypatch.setattr(SupabaseClient, "_async_client", client)
    watcher = await ProfileWatcher.for_session(bob)
    assert client.channels["profile-data-changes-bob"].subscribed is True
    await watcher.stop()
    assert client.removed == ["profile-data-changes-bob"]
