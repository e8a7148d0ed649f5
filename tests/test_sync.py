"""
Tests for POST /events/sync and GET /events/current.

Covers:
- End-to-end: lock + 15 min unlock → 2 confirmations, 27.08 points
- Idempotent re-send: no second row, no second confirmation
- Stale rejection and future clamping
- Multi-device delta: newEvents, no echo, lastSync cursor, sub-millisecond
  cursors and overlapping requests
- Storage failure on one event leaves the rest confirmed
- Scoring failure never fails the sync
- Current streak state
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import OperationalError

from app.models.event import Event
from app.services import ledger, materializer
from app.services.clock import as_utc, to_epoch_ms
from app.services.sync import SyncEvent, sync_events
from app.services.user_directory import StaticUserDirectory

SYNC_URL = "/events/sync"


def _ev(event_type: str, ts, client_id: str | None = None, source: str = "automatic") -> dict:
    return {
        "id": client_id or str(uuid.uuid4()),
        "eventType": event_type,
        "timestamp": to_epoch_ms(ts),
        "source": source,
    }


def _sync(client, clock, events, last_sync: int = 0) -> dict:
    r = client.post(SYNC_URL, json={
        "events": events,
        "lastSync": last_sync,
        "clientTime": to_epoch_ms(clock.now),
    })
    assert r.status_code == 200, r.text
    return r.json()


def _stored(db, user_id) -> list[Event]:
    db.expire_all()
    return list(db.scalars(select(Event).where(Event.user_id == user_id)))


class TestEndToEnd:
    def test_lock_unlock_scores_fifteen_minutes(self, client, clock):
        t0 = clock.now - timedelta(hours=1)
        body = _sync(client, clock, [
            _ev("lock", t0),
            _ev("unlock", t0 + timedelta(milliseconds=900_000)),
        ])
        assert len(body["confirmed"]) == 2

        score = client.get("/scores/week").json()
        assert score["totalPoints"] == 27.08
        assert score["streakCount"] == 1
        assert score["longestStreak"] == 900

    def test_confirmation_shape(self, client, clock):
        event = _ev("lock", clock.now - timedelta(minutes=1))
        body = _sync(client, clock, [event])
        assert body["confirmed"][0]["clientId"] == event["id"]
        assert body["confirmed"][0]["serverId"]
        assert body["serverTime"] == to_epoch_ms(clock.now)

    def test_confirmations_follow_request_order(self, client, clock):
        events = [_ev("lock", clock.now - timedelta(minutes=m)) for m in (3, 9, 1)]
        body = _sync(client, clock, events)
        assert [c["clientId"] for c in body["confirmed"]] == [e["id"] for e in events]

    def test_empty_batch_only_pulls(self, client, clock):
        body = _sync(client, clock, [])
        assert body == {"confirmed": [], "newEvents": [], "serverTime": to_epoch_ms(clock.now)}


class TestIdempotentInsert:
    def test_resend_is_noop(self, client, clock, db, user_id):
        payload = [_ev("lock", clock.now - timedelta(minutes=5))]
        first = _sync(client, clock, payload)
        second = _sync(client, clock, payload)
        assert len(first["confirmed"]) == 1
        assert second["confirmed"] == []
        assert len(_stored(db, user_id)) == 1

    def test_duplicate_inside_one_batch(self, client, clock, db, user_id):
        event = _ev("lock", clock.now - timedelta(minutes=5))
        body = _sync(client, clock, [event, dict(event)])
        assert len(body["confirmed"]) == 1
        assert len(_stored(db, user_id)) == 1


class TestClockNormalization:
    def test_stale_event_never_stored(self, client, clock, db, user_id):
        stale = _ev("lock", clock.now - timedelta(days=7, seconds=1))
        fresh = _ev("unlock", clock.now - timedelta(minutes=1))
        body = _sync(client, clock, [stale, fresh])
        assert [c["clientId"] for c in body["confirmed"]] == [fresh["id"]]
        assert [e.client_id for e in _stored(db, user_id)] == [fresh["id"]]

    def test_future_event_clamped_to_server_time(self, client, clock, db, user_id):
        future = _ev("lock", clock.now + timedelta(minutes=10))
        body = _sync(client, clock, [future])
        assert len(body["confirmed"]) == 1
        stored = _stored(db, user_id)[0]
        assert as_utc(stored.timestamp) == clock.now

    def test_small_drift_kept(self, client, clock, db, user_id):
        ahead = clock.now + timedelta(seconds=30)
        _sync(client, clock, [_ev("lock", ahead)])
        assert as_utc(_stored(db, user_id)[0].timestamp) == ahead


class TestMultiDevice:
    def test_other_device_events_returned(self, client, clock):
        phone = [
            _ev("lock", clock.now - timedelta(minutes=40)),
            _ev("unlock", clock.now - timedelta(minutes=20)),
        ]
        _sync(client, clock, phone)

        clock.advance(seconds=30)
        tablet = [_ev("lock", clock.now - timedelta(minutes=30))]
        body = _sync(client, clock, tablet, last_sync=0)

        returned = [e["id"] for e in body["newEvents"]]
        assert len(returned) == 2
        assert all(e["eventType"] in ("lock", "unlock") for e in body["newEvents"])
        timestamps = [e["timestamp"] for e in body["newEvents"]]
        assert timestamps == sorted(timestamps)

    def test_no_echo_of_sent_events(self, client, clock):
        sent = [_ev("lock", clock.now - timedelta(minutes=2))]
        body = _sync(client, clock, sent, last_sync=0)
        assert body["newEvents"] == []

    def test_cursor_skips_already_seen(self, client, clock):
        first = _sync(client, clock, [_ev("lock", clock.now - timedelta(minutes=10))])
        cursor = first["serverTime"]

        clock.advance(minutes=1)
        other = _ev("unlock", clock.now - timedelta(seconds=10))
        _sync(client, clock, [other])

        clock.advance(minutes=1)
        body = _sync(client, clock, [], last_sync=cursor)
        assert [e["timestamp"] for e in body["newEvents"]] == [other["timestamp"]]

    def test_sub_millisecond_cursor_keeps_later_events(self, client, clock):
        clock.now = clock.now.replace(microsecond=123600)
        cursor = _sync(client, clock, [])["serverTime"]
        assert cursor == to_epoch_ms(clock.now.replace(microsecond=123000))

        clock.now = clock.now.replace(microsecond=123800)
        other = _ev("lock", clock.now - timedelta(minutes=1))
        _sync(client, clock, [other])

        body = _sync(client, clock, [], last_sync=cursor)
        assert [e["timestamp"] for e in body["newEvents"]] == [other["timestamp"]]

    def test_overlapping_request_lands_after_cursor(self, db, user_id):
        started = datetime(2092, 8, 6, 12, 0, tzinfo=timezone.utc)

        # Device A reads the ledger one second after device B's request began.
        pull = sync_events(db, user_id, [], last_sync=started - timedelta(days=1),
                           directory=StaticUserDirectory(), now=started + timedelta(seconds=1))
        assert pull.new_events == []

        # Device B's insert happens after A's read, although B started earlier.
        late = SyncEvent(client_id=str(uuid.uuid4()), event_type="lock",
                         timestamp=started - timedelta(minutes=5), source="automatic")
        sync_events(db, user_id, [late], last_sync=started - timedelta(days=1),
                    directory=StaticUserDirectory(), now=started,
                    received_clock=lambda: started + timedelta(seconds=5))

        body = sync_events(db, user_id, [], last_sync=pull.server_time,
                           directory=StaticUserDirectory(), now=started + timedelta(seconds=10))
        assert [e.client_id for e in body.new_events] == [late.client_id]

    def test_new_events_survive_recompute_commit(self, db, user_id):
        now = datetime(2092, 8, 13, 12, 0, tzinfo=timezone.utc)
        directory = StaticUserDirectory()

        def event(minutes_ago):
            return SyncEvent(client_id=str(uuid.uuid4()), event_type="lock",
                             timestamp=now - timedelta(minutes=minutes_ago), source="automatic")

        sync_events(db, user_id, [event(30), event(20)], last_sync=now - timedelta(days=1),
                    directory=directory, now=now)
        result = sync_events(db, user_id, [event(10)], last_sync=now - timedelta(days=1),
                             directory=directory, now=now + timedelta(seconds=1))

        assert result.score_updated is True
        assert len(result.new_events) == 2
        for ev in result.new_events:
            state = inspect(ev)
            assert state.detached
            assert not state.expired_attributes
        assert [to_epoch_ms(ev.timestamp) for ev in result.new_events] == [
            to_epoch_ms(now - timedelta(minutes=30)),
            to_epoch_ms(now - timedelta(minutes=20)),
        ]

    def test_new_events_carry_server_ids(self, client, clock):
        sent = _ev("lock", clock.now - timedelta(minutes=10), source="manual")
        confirmed = _sync(client, clock, [sent])["confirmed"][0]

        clock.advance(seconds=5)
        body = _sync(client, clock, [], last_sync=0)
        assert body["newEvents"] == [{
            "id": confirmed["serverId"],
            "eventType": "lock",
            "timestamp": sent["timestamp"],
            "source": "manual",
        }]

    def test_page_size_cap(self, client, clock, monkeypatch):
        from app.core.config import settings
        monkeypatch.setattr(settings, "SYNC_PAGE_SIZE", 3)
        _sync(client, clock, [_ev("lock", clock.now - timedelta(minutes=m)) for m in range(1, 6)])
        clock.advance(seconds=1)
        body = _sync(client, clock, [], last_sync=0)
        assert len(body["newEvents"]) == 3


class TestFailureIsolation:
    def test_scoring_failure_does_not_fail_sync(self, client, clock, db, user_id, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("scoring exploded")

        monkeypatch.setattr(materializer, "calculate_week", boom)
        body = _sync(client, clock, [
            _ev("lock", clock.now - timedelta(minutes=30)),
            _ev("unlock", clock.now - timedelta(minutes=10)),
        ])
        assert len(body["confirmed"]) == 2
        assert len(_stored(db, user_id)) == 2

        monkeypatch.undo()
        assert client.get("/scores/week").json()["calculatedAt"] is None

    def test_storage_failure_skips_only_that_event(self, client, clock, db, user_id, monkeypatch):
        events = [_ev("lock", clock.now - timedelta(minutes=m)) for m in (30, 20, 10)]
        broken = events[1]["id"]
        real_insert = ledger.insert

        def flaky_insert(db, **kwargs):
            if kwargs["client_id"] == broken:
                raise OperationalError("INSERT INTO events", {}, Exception("connection lost"))
            return real_insert(db, **kwargs)

        monkeypatch.setattr(ledger, "insert", flaky_insert)
        body = _sync(client, clock, events)
        assert [c["clientId"] for c in body["confirmed"]] == [events[0]["id"], events[2]["id"]]
        assert sorted(e.client_id for e in _stored(db, user_id)) == sorted(
            [events[0]["id"], events[2]["id"]]
        )

        monkeypatch.undo()
        retry = _sync(client, clock, events)
        assert [c["clientId"] for c in retry["confirmed"]] == [broken]


class TestCurrentStreak:
    def test_no_events(self, client):
        r = client.get("/events/current")
        assert r.status_code == 200
        assert r.json() == {"inStreak": False, "streakStartedAt": None, "currentStreakSeconds": 0}

    def test_in_streak_after_lock(self, client, clock):
        lock_at = clock.now - timedelta(minutes=10)
        _sync(client, clock, [_ev("lock", lock_at)])
        body = client.get("/events/current").json()
        assert body["inStreak"] is True
        assert body["streakStartedAt"] == to_epoch_ms(lock_at)
        assert body["currentStreakSeconds"] == 600

    def test_not_in_streak_after_unlock(self, client, clock):
        _sync(client, clock, [
            _ev("lock", clock.now - timedelta(minutes=10)),
            _ev("unlock", clock.now - timedelta(minutes=2)),
        ])
        assert client.get("/events/current").json()["inStreak"] is False


@pytest.mark.parametrize("source", ["automatic", "manual", "shortcut", "install", "verification"])
def test_known_sources_accepted(client, clock, source):
    body = _sync(client, clock, [_ev("lock", clock.now - timedelta(minutes=1), source=source)])
    assert len(body["confirmed"]) == 1


def test_rows_scoped_to_authenticated_user(client, clock, db, user_id):
    _sync(client, clock, [_ev("lock", clock.now - timedelta(minutes=1))])
    total = db.scalar(select(func.count(Event.id)).where(Event.user_id == user_id))
    assert total == 1


def test_fractional_millisecond_timestamp_floored(client, clock, db, user_id):
    whole = to_epoch_ms(clock.now - timedelta(minutes=3))
    event = {"id": str(uuid.uuid4()), "eventType": "lock", "timestamp": whole + 0.75, "source": "manual"}
    r = client.post(SYNC_URL, json={
        "events": [event],
        "lastSync": 0.5,
        "clientTime": to_epoch_ms(clock.now) + 0.25,
    })
    assert r.status_code == 200, r.text
    assert len(r.json()["confirmed"]) == 1
    [stored] = _stored(db, user_id)
    assert to_epoch_ms(stored.timestamp) == whole
