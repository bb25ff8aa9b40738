"""
Shared fakes for bootstrap tests.

The fakes implement the DocumentStore / SearchEngine capabilities in memory
and record every call, so tests can assert on sequencing without a live
Couchbase or Elasticsearch.
"""

from typing import Any, Dict, List, Optional, Set

import pytest

from couchsearch.config import BootstrapSettings, CouchbaseSettings, ElasticsearchSettings
from couchsearch.engine.base import SearchEngine
from couchsearch.store.base import DocumentStore


class FakeStore(DocumentStore):
    def __init__(self, fail_upsert: Optional[Exception] = None):
        self.fail_upsert = fail_upsert
        self.upserts: List[tuple] = []
        self.closed = False

    @property
    def handle(self):
        return "bucket-handle"

    async def upsert_view_document(self, name, view_document):
        self.upserts.append((name, view_document.to_json()))
        if self.fail_upsert:
            raise self.fail_upsert

    async def close(self):
        self.closed = True


class FakeEngine(SearchEngine):
    """
    In-memory engine. ``failures`` maps a method name, or "<method>:<type>",
    to the exception that call should raise.
    """

    def __init__(self, index="test_index", exists=False, mappings: Optional[Set[str]] = None,
                 failures: Optional[Dict[str, Exception]] = None):
        self.index = index
        self.exists = exists
        self.mappings: Set[str] = set(mappings or ())
        self.failures = failures or {}
        self.calls: List[tuple] = []
        self.bodies: Dict[str, Any] = {}
        self.closed = False

    def _maybe_fail(self, method, type_name=None):
        if type_name is not None and f"{method}:{type_name}" in self.failures:
            raise self.failures[f"{method}:{type_name}"]
        if method in self.failures:
            raise self.failures[method]

    @property
    def handle(self):
        return "engine-handle"

    async def index_exists(self, index):
        self.calls.append(("index_exists", index))
        self._maybe_fail("index_exists")
        return self.exists

    async def create_index(self, index, settings):
        self.calls.append(("create_index", index, settings))
        self._maybe_fail("create_index")
        self.exists = True

    async def get_mappings(self, index):
        self.calls.append(("get_mappings", index))
        self._maybe_fail("get_mappings")
        return set(self.mappings)

    async def put_mapping(self, index, type_name, body):
        self.calls.append(("put_mapping", index, type_name))
        self._maybe_fail("put_mapping", type_name)
        self.mappings.add(type_name)
        self.bodies[type_name] = body

    async def delete_mapping(self, index, type_name):
        self.calls.append(("delete_mapping", index, type_name))
        self._maybe_fail("delete_mapping", type_name)
        self.mappings.discard(type_name)

    async def close(self):
        self.closed = True

    def calls_named(self, *names):
        return [c for c in self.calls if c[0] in names]


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays"""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay):
        self.calls.append(delay)


@pytest.fixture
def fake_store_cls():
    return FakeStore


@pytest.fixture
def fake_engine_cls():
    return FakeEngine


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def bootstrap_settings():
    return BootstrapSettings(
        couchbase=CouchbaseSettings(host="cb.local", bucket_name="app", bucket_password="secret"),
        elasticsearch=ElasticsearchSettings(host="http://es.local:9200", index="test_index"),
        settle_interval=5.0,
    )
