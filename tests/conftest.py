"""
Shared fixtures: an in-memory stand-in for the Supabase client covering the
query-builder calls the services make, plus ready-made sessions.
"""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from ridecrew.core.session import SessionContext
from ridecrew.modules.auth.service import clear_auth_cache

_ids = itertools.count(1)

SUMMARY_FIELDS = ("id", "first_name", "last_name", "avatar_url")


class FakeResult:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.columns = "*"
        self.action = "select"
        self.payload = None
        self.filters = []
        self.ordering = None
        self.row_limit = None
        self.want_single = False
        self.count_mode = None
        self.head = False
        self.ignore_duplicates = False

    def select(self, columns="*", count=None, head=False):
        self.columns = columns
        self.count_mode = count
        self.head = head
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, ignore_duplicates=False):
        self.action = "upsert"
        self.payload = payload
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def single(self):
        self.want_single = True
        return self

    def _matching(self):
        return [r for r in self.db.tables[self.table] if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.action))
        if self.db.fail_with is not None:
            raise self.db.fail_with
        return getattr(self, f"_execute_{self.action}")()

    def _execute_select(self):
        rows = [self.db.embed(self.table, self.columns, r) for r in self._matching()]
        if self.ordering:
            column, desc = self.ordering
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        count = len(rows) if self.count_mode == "exact" else None
        if self.head:
            return FakeResult(data=[], count=count)
        if self.want_single:
            if len(rows) != 1:
                raise APIError({
                    "code": "PGRST116",
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "details": f"The result contains {len(rows)} rows",
                    "hint": None,
                })
            return FakeResult(data=rows[0], count=count)
        return FakeResult(data=rows, count=count)

    def _execute_insert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for row in rows:
            row = dict(row)
            if self.table != "ride_participants":
                row.setdefault("id", f"{self.table}-{next(_ids)}")
            self.db.check_unique(self.table, row)
            self.db.tables[self.table].append(row)
            inserted.append(copy.deepcopy(row))
        return FakeResult(data=inserted)

    def _execute_upsert(self):
        row = dict(self.payload)
        existing = [r for r in self.db.tables[self.table] if r.get("id") == row.get("id")]
        if existing:
            if not self.ignore_duplicates:
                existing[0].update(row)
            return FakeResult(data=[] if self.ignore_duplicates else [copy.deepcopy(existing[0])])
        self.db.tables[self.table].append(row)
        return FakeResult(data=[copy.deepcopy(row)])

    def _execute_update(self):
        updated = []
        for row in self._matching():
            row.update(self.payload)
            updated.append(copy.deepcopy(row))
        return FakeResult(data=updated)

    def _execute_delete(self):
        doomed = self._matching()
        self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in doomed]
        if self.table == "rides":
            ids = {r["id"] for r in doomed}
            self.db.tables["ride_participants"] = [
                p for p in self.db.tables["ride_participants"] if p["ride_id"] not in ids
            ]
        return FakeResult(data=copy.deepcopy(doomed))


class FakeAuth:
    def __init__(self):
        self.tokens = {}
        self.passwords = {}
        self.signed_out = False
        self.reset_emails = []
        self.admin = SimpleNamespace(update_user_by_id=self._update_user_by_id)

    def add_user(self, token, user_id, email):
        user = SimpleNamespace(
            id=user_id,
            email=email,
            user_metadata={},
            app_metadata={},
            created_at="2024-01-01T00:00:00+00:00",
            updated_at="2024-01-01T00:00:00+00:00",
        )
        self.tokens[token] = user
        return user

    def get_user(self, jwt=None):
        user = self.tokens.get(jwt)
        if user is None:
            raise APIError({"code": "401", "message": "invalid JWT", "details": None, "hint": None})
        return SimpleNamespace(user=user)

    def sign_up(self, credentials):
        user = self.add_user(f"token-{credentials['email']}", f"user-{next(_ids)}", credentials["email"])
        self.passwords[credentials["email"]] = credentials["password"]
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        if self.passwords.get(credentials["email"]) != credentials["password"]:
            raise APIError({"code": "400", "message": "Invalid login credentials", "details": None, "hint": None})
        token = f"token-{credentials['email']}"
        return SimpleNamespace(
            user=self.tokens[token],
            session=SimpleNamespace(access_token=token, refresh_token="refresh"),
        )

    def sign_out(self):
        self.signed_out = True

    def reset_password_for_email(self, email, options=None):
        self.reset_emails.append((email, options))

    def _update_user_by_id(self, user_id, attributes):
        user = next(u for u in self.tokens.values() if u.id == user_id)
        self.passwords[user.email] = attributes["password"]
        return SimpleNamespace(user=user)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, content, options=None):
        self.storage.files[(self.name, path)] = content
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"

    def list(self, folder):
        prefix = folder.rstrip("/") + "/"
        return [
            {"name": path[len(prefix):]}
            for (bucket, path) in self.storage.files
            if bucket == self.name and path.startswith(prefix)
        ]

    def remove(self, paths):
        for path in paths:
            self.storage.files.pop((self.name, path), None)


class FakeStorage:
    def __init__(self):
        self.files = {}

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables = {"profiles": [], "rides": [], "ride_participants": []}
        self.auth = FakeAuth()
        self.storage = FakeStorage()
        self.calls = []
        self.fail_with = None

    def table(self, name):
        return FakeQuery(self, name)

    def check_unique(self, table, row):
        if table != "ride_participants":
            return
        for existing in self.tables[table]:
            if existing["ride_id"] == row["ride_id"] and existing["user_id"] == row["user_id"]:
                raise APIError({
                    "code": "23505",
                    "message": "duplicate key value violates unique constraint",
                    "details": None,
                    "hint": None,
                })

    def _profile(self, user_id, fields=None):
        profile = next((p for p in self.tables["profiles"] if p["id"] == user_id), None)
        if profile is None:
            return None
        if fields is None:
            return copy.deepcopy(profile)
        return {k: profile.get(k) for k in fields}

    def embed(self, table, columns, row):
        row = copy.deepcopy(row)
        if table == "rides" and "creator:profiles" in columns:
            row["creator"] = self._profile(row["creator_id"], SUMMARY_FIELDS)
        if table == "rides" and "participants:ride_participants" in columns:
            row["participants"] = [
                {"user_id": p["user_id"], "profiles": self._profile(p["user_id"], SUMMARY_FIELDS)}
                for p in self.tables["ride_participants"]
                if p["ride_id"] == row["id"]
            ]
        if table == "ride_participants" and "profiles!" in columns:
            row["profiles"] = self._profile(row["user_id"])
        return row

    # Seeding helpers

    def add_profile(self, user_id, first_name=None, onboarded=True, **extra):
        profile = {
            "id": user_id,
            "first_name": first_name,
            "last_name": extra.pop("last_name", None),
            "avatar_url": extra.pop("avatar_url", None),
            "social_media_url": extra.pop("social_media_url", None),
            "onboarding_completed": onboarded,
            "created_at": extra.pop("created_at", "2024-01-01T00:00:00+00:00"),
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        profile.update(extra)
        self.tables["profiles"].append(profile)
        return profile

    def add_ride(self, creator_id, start_time, preset="lunch", status="open", **extra):
        start = start_time if isinstance(start_time, datetime) else datetime.fromisoformat(start_time)
        ride = {
            "id": extra.pop("id", f"ride-{next(_ids)}"),
            "creator_id": creator_id,
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(hours=2)).isoformat(),
            "preset": preset,
            "distance_km": 50,
            "bike_type": "road",
            "status": status,
            "starting_point_address": "Main Square",
            "starting_point_coords": "59.437000, 24.753600",
            "created_at": extra.pop("created_at", start.isoformat()),
            "updated_at": start.isoformat(),
        }
        ride.update(extra)
        self.tables["rides"].append(ride)
        return ride

    def add_participant(self, ride_id, user_id, created_at="2024-01-01T00:00:00+00:00"):
        row = {"ride_id": ride_id, "user_id": user_id, "created_at": created_at}
        self.tables["ride_participants"].append(row)
        return row


def session_for(user_id, first_name="Alice", onboarded=True, email=None):
    return SessionContext(
        user={"id": user_id, "email": email or f"{user_id}@example.com"},
        profile={
            "id": user_id,
            "first_name": first_name,
            "last_name": None,
            "avatar_url": None,
            "social_media_url": None,
            "onboarding_completed": onboarded,
        },
        access_token=f"token-{user_id}",
    )


@pytest.fixture(autouse=True)
def _fresh_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def fake_supabase():
    db = FakeSupabase()
    db.add_profile("alice", "Alice")
    db.add_profile("bob", "Bob")
    return db


@pytest.fixture
def alice():
    return session_for("alice", "Alice")


@pytest.fixture
def bob():
    return session_for("bob", "Bob")


@pytest.fixture
def anonymous():
    return SessionContext.anonymous()


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def future():
    return datetime.now(timezone.utc) + timedelta(days=1)
