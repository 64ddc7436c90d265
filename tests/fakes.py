# tests/fakes.py

import json
from io import BytesIO
from types import SimpleNamespace

from google.cloud import firestore
from PIL import Image


def make_jpeg(size=(64, 48), color=(40, 120, 40)) -> bytes:
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, 'JPEG')
    return buffer.getvalue()


def judgment_text(waste_type, quantity, confidence, prose=True) -> str:
    payload = json.dumps({"wasteType": waste_type, "quantity": quantity, "confidence": confidence})
    if not prose:
        return payload
    return f"Here is my analysis of the photo:\n```json\n{payload}\n```\nLet me know if you need more."


class ScriptedOracle:
    """
    Oracle double for workflow tests.

    - Returns `next_text` (or raises `error`) on every call
    - Captures calls for assertions
    """

    def __init__(self, next_text="", error=None):
        self.next_text = next_text
        self.error = error
        self.calls = []

    def judge(self, image_bytes, expected_waste_type, expected_amount, mime_type="image/jpeg"):
        self.calls.append((image_bytes, expected_waste_type, expected_amount))
        if self.error is not None:
            raise self.error
        return self.next_text

    def health_check(self):
        return {"status": "OK", "details": "scripted"}


class FakeGenaiClient:
    """Stands in for genai.Client; pops one scripted result per generate_content call."""

    def __init__(self, api_key, script):
        self.api_key = api_key
        self._script = script
        self.models = SimpleNamespace(generate_content=self._generate_content)

    def _generate_content(self, model, contents, config=None):
        self._script.calls.append((self.api_key, model))
        result = self._script.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(text=result)


class GenaiScript:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def factory(self, api_key):
        return FakeGenaiClient(api_key, self)


class FakeRedis:
    def __init__(self):
        self.values = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, ex=None):
        self.values[key] = str(value)

    def delete(self, key):
        self.values.pop(key, None)

    def ping(self):
        return True


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def get(self, field_paths=None, transaction=None):
        return FakeSnapshot(self.id, self._db.data.setdefault(self._collection, {}).get(self.id))

    def set(self, data):
        self._db.apply('set', self, data)

    def update(self, data):
        self._db.apply('update', self, data)


class FakeQuery:
    def __init__(self, docs):
        self._docs = docs

    def order_by(self, field):
        return FakeQuery(sorted(self._docs, key=lambda s: s.to_dict().get(field)))

    def limit(self, count):
        return FakeQuery(self._docs[:count])

    def stream(self):
        return iter(self._docs)


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        self._db = db
        self._name = name

    @property
    def _docs(self):
        return [FakeSnapshot(doc_id, data) for doc_id, data in self._db.data.get(self._name, {}).items()]

    def document(self, doc_id=None):
        if doc_id is None:
            self._db.auto_ids += 1
            doc_id = f"auto-{self._db.auto_ids}"
        return FakeDocument(self._db, self._name, doc_id)

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return None, ref


class FakeWriteBatch:
    """Buffers writes until commit(), like a Firestore WriteBatch."""

    def __init__(self, db):
        self._db = db
        self.writes = []

    def set(self, ref, data):
        self.writes.append(('set', ref, data))

    def update(self, ref, data):
        self.writes.append(('update', ref, data))

    def commit(self):
        for kind, ref, data in self.writes:
            self._db.apply(kind, ref, data)


class FakeTransaction(FakeWriteBatch):
    """Passed straight to a transactional function's body; writes apply immediately."""

    def set(self, ref, data):
        super().set(ref, data)
        self._db.apply('set', ref, data)

    def update(self, ref, data):
        super().update(ref, data)
        self._db.apply('update', ref, data)


class FakeFirestore:
    """
    Dict-backed stand-in for a google.cloud.firestore Client.

    - `data` maps collection name -> document id -> dict
    - `update` applies firestore.Increment and fails on missing documents, like Firestore
    """

    def __init__(self, data=None):
        self.data = data or {}
        self.auto_ids = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeWriteBatch(self)

    def apply(self, kind, ref, data):
        docs = self.data.setdefault(ref._collection, {})
        if kind == 'set':
            docs[ref.id] = dict(data)
            return
        if ref.id not in docs:
            raise LookupError(f"No document to update: {ref._collection}/{ref.id}")
        for key, value in data.items():
            if isinstance(value, firestore.Increment):
                docs[ref.id][key] = docs[ref.id].get(key, 0) + value.value
            else:
                docs[ref.id][key] = value
