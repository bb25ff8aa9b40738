"""
Unit tests for the Bootstrapper orchestrator.

Both backends are in-memory fakes; the tests check phase sequencing, error
aggregation, idempotence across repeated calls and the end-to-end example.
"""

from unittest.mock import AsyncMock, patch

import pytest

from couchsearch.connection import Bootstrapper
from couchsearch.engine.elasticsearch_engine import ElasticsearchEngine
from couchsearch.engine.reconciler import MappingReconciler
from couchsearch.engine.settle import FixedIntervalSettler, MappingPollSettler
from couchsearch.exceptions import BootstrapError, EngineQueryError, StoreConnectionError, StoreWriteError
from couchsearch.models import BootstrapResult, CollectionDescriptor
from couchsearch.store.installer import ViewInstaller

COLLECTIONS = [
    CollectionDescriptor("widgetmodel", {"color": "keyword"}),
    CollectionDescriptor("logmodel", None),
]


def make_bootstrapper(opener, engine, sleep):
    factory_calls = []

    def engine_factory(config):
        factory_calls.append(config)
        return engine

    bootstrapper = Bootstrapper(
        installer=ViewInstaller(open_store=opener),
        reconciler=MappingReconciler(engine_factory=engine_factory, settler=FixedIntervalSettler(5.0, sleep=sleep)),
    )
    return bootstrapper, factory_calls


class TestSequencing:
    """Test suite for phase ordering and error aggregation."""

    @pytest.mark.asyncio
    async def test_store_failure_never_reaches_engine(self, fake_engine_cls, recording_sleep, bootstrap_settings):
        engine = fake_engine_cls()
        opener = AsyncMock(side_effect=ConnectionRefusedError("cb down"))
        bootstrapper, factory_calls = make_bootstrapper(opener, engine, recording_sleep)

        with pytest.raises(BootstrapError) as exc_info:
            await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)

        assert exc_info.value.phase == "store"
        assert isinstance(exc_info.value.cause, StoreConnectionError)
        assert factory_calls == []
        assert engine.calls == []

    @pytest.mark.asyncio
    async def test_store_write_failure(self, fake_store_cls, fake_engine_cls, recording_sleep, bootstrap_settings):
        store = fake_store_cls(fail_upsert=RuntimeError("rejected"))
        engine = fake_engine_cls()
        bootstrapper, factory_calls = make_bootstrapper(AsyncMock(return_value=store), engine, recording_sleep)

        with pytest.raises(BootstrapError) as exc_info:
            await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)

        assert isinstance(exc_info.value.cause, StoreWriteError)
        assert factory_calls == []

    @pytest.mark.asyncio
    async def test_engine_failure_releases_store(self, fake_store_cls, fake_engine_cls, recording_sleep,
                                                 bootstrap_settings):
        store = fake_store_cls()
        engine = fake_engine_cls(failures={"index_exists": ConnectionError("es down")})
        bootstrapper, _ = make_bootstrapper(AsyncMock(return_value=store), engine, recording_sleep)

        with pytest.raises(BootstrapError) as exc_info:
            await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)

        assert exc_info.value.phase == "engine"
        assert isinstance(exc_info.value.cause, EngineQueryError)
        assert exc_info.value.__cause__ is exc_info.value.cause
        assert len(store.upserts) == 1
        assert store.closed is True

    @pytest.mark.asyncio
    async def test_invalid_collections_fail_before_io(self, fake_engine_cls, recording_sleep, bootstrap_settings):
        opener = AsyncMock()
        bootstrapper, factory_calls = make_bootstrapper(opener, fake_engine_cls(), recording_sleep)

        with pytest.raises(ValueError):
            await bootstrapper.bootstrap(bootstrap_settings, {"widgetmodel": None, "widget": None})

        opener.assert_not_awaited()
        assert factory_calls == []


class TestBootstrap:
    """Test suite for successful bootstrap runs."""

    @pytest.mark.asyncio
    async def test_end_to_end_example(self, fake_store_cls, fake_engine_cls, recording_sleep, bootstrap_settings):
        store = fake_store_cls()
        engine = fake_engine_cls(index="test_index")
        bootstrapper, factory_calls = make_bootstrapper(AsyncMock(return_value=store), engine, recording_sleep)

        result = await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)
        await bootstrapper.reconciler.wait_pending()

        assert isinstance(result, BootstrapResult)
        assert result.store is store
        assert result.engine is engine
        assert factory_calls == [bootstrap_settings.elasticsearch]

        name, view_json = store.upserts[0]
        assert name == "app"
        assert '"widget":' in view_json and '"log":' in view_json

        assert engine.calls_named("put_mapping") == [("put_mapping", "test_index", "widget")]
        assert engine.bodies == {"widget": {"properties": {"color": "keyword"}}}
        assert recording_sleep.calls == [5.0]

    @pytest.mark.asyncio
    async def test_repeated_bootstrap_is_idempotent(self, fake_store_cls, fake_engine_cls, recording_sleep,
                                                    bootstrap_settings):
        store = fake_store_cls()
        engine = fake_engine_cls()
        bootstrapper, _ = make_bootstrapper(AsyncMock(return_value=store), engine, recording_sleep)

        await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)
        await bootstrapper.reconciler.wait_pending()
        await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)

        assert len(store.upserts) == 2
        assert store.upserts[0] == store.upserts[1]

        # Second run takes the index-exists fast path
        assert len(engine.calls_named("create_index")) == 1
        assert len(engine.calls_named("put_mapping")) == 1
        assert recording_sleep.calls == [5.0]

    @pytest.mark.asyncio
    async def test_schema_changes_not_applied_to_existing_index(self, fake_store_cls, fake_engine_cls,
                                                                recording_sleep, bootstrap_settings):
        engine = fake_engine_cls(exists=True, mappings={"widget"})
        bootstrapper, _ = make_bootstrapper(AsyncMock(return_value=fake_store_cls()), engine, recording_sleep)

        changed = [CollectionDescriptor("widgetmodel", {"color": "text", "size": "long"})]
        await bootstrapper.bootstrap(bootstrap_settings, changed)

        assert engine.calls_named("put_mapping", "delete_mapping", "create_index") == []

    @pytest.mark.asyncio
    async def test_mapping_failure_still_returns_result(self, fake_store_cls, fake_engine_cls, recording_sleep,
                                                        bootstrap_settings):
        engine = fake_engine_cls(failures={"put_mapping:widget": RuntimeError("bad mapping")})
        collections = COLLECTIONS + [CollectionDescriptor("gadgetmodel", {"weight": "long"})]
        bootstrapper, _ = make_bootstrapper(AsyncMock(return_value=fake_store_cls()), engine, recording_sleep)

        result = await bootstrapper.bootstrap(bootstrap_settings, collections)
        outcome = await bootstrapper.reconciler.wait_pending()

        assert result.engine is engine
        assert outcome == {"widget": False, "gadget": True}

    @pytest.mark.asyncio
    async def test_default_reconciler_uses_configured_settle(self, fake_store_cls, fake_engine_cls,
                                                             bootstrap_settings):
        engine = fake_engine_cls(exists=True)
        bootstrapper = Bootstrapper(installer=ViewInstaller(open_store=AsyncMock(return_value=fake_store_cls())))

        config = bootstrap_settings.model_copy(update={"settle_interval": 0.0})
        with patch.object(ElasticsearchEngine, "from_settings", return_value=engine) as from_settings:
            result = await bootstrapper.bootstrap(config, COLLECTIONS)

        from_settings.assert_called_once_with(config.elasticsearch)
        assert result.engine is engine
        assert bootstrapper.reconciler is None
        assert isinstance(bootstrapper.last_reconciler, MappingReconciler)
        assert bootstrapper.last_reconciler.settler.interval == 0.0
        assert sorted(bootstrapper.last_view_document.views) == ["log", "widget"]

    @pytest.mark.asyncio
    async def test_each_call_builds_reconciler_from_its_config(self, fake_store_cls, fake_engine_cls,
                                                               bootstrap_settings):
        bootstrapper = Bootstrapper(installer=ViewInstaller(open_store=AsyncMock(side_effect=lambda c: fake_store_cls())))
        fast = bootstrap_settings.model_copy(update={"settle_interval": 0.0})
        slow = bootstrap_settings.model_copy(update={"settle_interval": 7.0, "settle_strategy": "poll"})

        with patch.object(ElasticsearchEngine, "from_settings", side_effect=lambda c: fake_engine_cls(exists=True)):
            await bootstrapper.bootstrap(fast, COLLECTIONS)
            first = bootstrapper.last_reconciler
            await bootstrapper.bootstrap(slow, COLLECTIONS)

        assert first.settler.interval == 0.0
        assert bootstrapper.last_reconciler is not first
        assert bootstrapper.last_reconciler.settler.interval == 7.0
        assert isinstance(bootstrapper.last_reconciler.settler, MappingPollSettler)
        assert bootstrapper.reconciler is None

    @pytest.mark.asyncio
    async def test_injected_reconciler_is_reused(self, fake_store_cls, fake_engine_cls, recording_sleep,
                                                 bootstrap_settings):
        opener = AsyncMock(side_effect=lambda c: fake_store_cls())
        bootstrapper, _ = make_bootstrapper(opener, fake_engine_cls(exists=True), recording_sleep)

        await bootstrapper.bootstrap(bootstrap_settings, COLLECTIONS)
        await bootstrapper.bootstrap(bootstrap_settings.model_copy(update={"settle_interval": 7.0}), COLLECTIONS)

        assert bootstrapper.last_reconciler is bootstrapper.reconciler


class TestBootstrapResult:
    """Test suite for releasing bootstrap handles."""

    @pytest.mark.asyncio
    async def test_close_releases_both(self, fake_store_cls, fake_engine_cls):
        store, engine = fake_store_cls(), fake_engine_cls()
        await BootstrapResult(store=store, engine=engine).close()
        assert store.closed and engine.closed

    @pytest.mark.asyncio
    async def test_close_continues_after_failure(self, fake_engine_cls):
        store = AsyncMock()
        store.close.side_effect = RuntimeError("already closed")
        engine = fake_engine_cls()

        await BootstrapResult(store=store, engine=engine).close()
        assert engine.closed
