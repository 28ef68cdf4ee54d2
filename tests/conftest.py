import copy
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from google.api_core.exceptions import NotFound
from google.cloud import firestore

from app.container import build_services
from repos.user_repo import UserProfileRepository
from security.firebase_auth import IdentityProvider
from storage.local_cache import LocalCache
from storage.local_store import MemoryLocalStore

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
}

_MISSING = object()


class FakeSnapshot:
    def __init__(self, ref, data):
        self.reference = ref
        self.id = ref.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def _rows(self):
        return self._db.data.setdefault(self._collection, {})

    def get(self, timeout=None):
        self._db.check(self._collection, "get")
        return FakeSnapshot(self, copy.deepcopy(self._rows().get(self.id)))

    def set(self, data, merge=False):
        self._db.check(self._collection, "set")
        self._db.apply_set(self, data, merge)
        self._db.notify(self._collection)

    def update(self, data):
        self._db.check(self._collection, "update")
        self._db.apply_update(self, data)
        self._db.notify(self._collection)

    def delete(self):
        self._db.check(self._collection, "delete")
        self._rows().pop(self.id, None)
        self._db.notify(self._collection)


class FakeWatch:
    def __init__(self, db, query, callback):
        self._db = db
        self.query = query
        self.callback = callback

    def fire(self):
        self.callback(self.query.snapshots(), [], self._db.now())

    def unsubscribe(self):
        if self in self._db.watches:
            self._db.watches.remove(self)


class FakeQuery:
    def __init__(self, db, collection, filters=(), orders=(), limit_n=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_n

    def _copy(self, **kw):
        args = {"filters": self._filters, "orders": self._orders, "limit_n": self._limit}
        args.update(kw)
        return FakeQuery(self._db, self._collection, **args)

    def where(self, filter=None):
        return self._copy(filters=self._filters + ((filter.field_path, filter.op_string, filter.value),))

    def order_by(self, field, direction="ASCENDING"):
        return self._copy(orders=self._orders + ((field, direction),))

    def limit(self, n):
        return self._copy(limit_n=n)

    def snapshots(self):
        rows = self._db.data.get(self._collection, {})
        out = []
        for doc_id, data in rows.items():
            ok = True
            for field, op, value in self._filters:
                v = data.get(field, _MISSING)
                if v is _MISSING or not _OPS[op](v, value):
                    ok = False
                    break
            # Firestore drops documents missing an order_by field.
            if ok and all(f in data for f, _ in self._orders):
                out.append((doc_id, data))
        for field, direction in reversed(self._orders):
            out.sort(key=lambda r: r[1][field], reverse=direction == firestore.Query.DESCENDING)
        if self._limit:
            out = out[: self._limit]
        return [FakeSnapshot(FakeDocumentRef(self._db, self._collection, i), copy.deepcopy(d)) for i, d in out]

    def stream(self):
        self._db.check(self._collection, "stream")
        return iter(self.snapshots())

    def on_snapshot(self, callback):
        watch = FakeWatch(self._db, self, callback)
        self._db.watches.append(watch)
        watch.fire()
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self.id = name

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, self._collection, doc_id or self._db.new_id())

    def add(self, data):
        self._db.check(self._collection, "add")
        ref = self.document()
        self._db.apply_set(ref, data, merge=False)
        self._db.notify(self._collection)
        return self._db.now(), ref


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append(("set", ref, data, merge))

    def update(self, ref, data):
        self._ops.append(("update", ref, data, None))

    def delete(self, ref):
        self._ops.append(("delete", ref, None, None))

    def commit(self):
        self._db.check(None, "commit")
        if len(self._ops) > 500:
            raise ValueError("maximum 500 writes allowed per request")
        self._db.batch_sizes.append(len(self._ops))
        touched = set()
        for kind, ref, data, merge in self._ops:
            touched.add(ref._collection)
            if kind == "set":
                self._db.apply_set(ref, data, merge)
            elif kind == "update":
                self._db.apply_update(ref, data)
            else:
                ref._rows().pop(ref.id, None)
        for name in touched:
            self._db.notify(name)


class FakeFirestore:
    """
    In-memory stand-in for google.cloud.firestore.Client covering what the
    services use. SERVER_TIMESTAMP resolves to a clock that moves forward one
    second per write, so ordering by timestamp is deterministic.
    """

    def __init__(self):
        self.data = {}
        self.watches = []
        self.batch_sizes = []
        self._failures = set()
        self._ids = itertools.count(1)
        self._ticks = itertools.count()

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    def new_id(self):
        return f"doc{next(self._ids):05d}"

    def now(self):
        return T0 + timedelta(seconds=next(self._ticks))

    def fail(self, collection, op):
        self._failures.add((collection, op))

    def heal(self):
        self._failures.clear()

    def check(self, collection, op):
        if (collection, op) in self._failures:
            raise RuntimeError(f"firestore unavailable: {op} {collection}")

    def _resolve(self, data):
        out = {}
        for k, v in data.items():
            out[k] = self.now() if v is firestore.SERVER_TIMESTAMP else copy.deepcopy(v)
        return out

    def apply_set(self, ref, data, merge):
        rows = ref._rows()
        resolved = self._resolve(data)
        if merge and ref.id in rows:
            rows[ref.id].update(resolved)
        else:
            rows[ref.id] = resolved

    def apply_update(self, ref, data):
        rows = ref._rows()
        if ref.id not in rows:
            raise NotFound(f"No document to update: {ref._collection}/{ref.id}")
        for key, value in self._resolve(data).items():
            # update() treats dotted keys as nested field paths.
            *parents, leaf = key.split(".")
            target = rows[ref.id]
            for p in parents:
                if not isinstance(target.get(p), dict):
                    target[p] = {}
                target = target[p]
            target[leaf] = value

    def notify(self, collection):
        for w in list(self.watches):
            if w.query._collection == collection:
                w.fire()

    def docs(self, collection):
        return {k: copy.deepcopy(v) for k, v in self.data.get(collection, {}).items()}


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


def fake_verifier(token):
    # Tokens are "<uid>" for tests; "bad" is rejected like an invalid signature.
    from security.auth_errors import AuthError

    if token == "bad":
        raise AuthError("auth/invalid-id-token", "signature mismatch")
    return {"sub": token, "email": f"{token}@example.com", "name": "Test User", "email_verified": True}


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return LocalCache(store=MemoryLocalStore(), ttl_seconds=1800, clock=clock)


@pytest.fixture
def services(db, cache):
    identity = IdentityProvider(UserProfileRepository(db=db), verifier=fake_verifier)
    return build_services(db=db, cache=cache, identity=identity)
