"""
Tests for ConfigurationCache.

Verifies:
- Fetch results are applied on the event loop, not in the fetching thread
- Listeners fire only when the configuration actually changes
- Failed fetches and unusable documents keep the previous configuration
- Only one fetch is in flight at a time
- Snapshots are written after success and used for a warm start
- Results landing after stop() are discarded
- A stopped cache can be started again
"""

from __future__ import annotations

import copy
from concurrent.futures import Executor, Future

import pytest

from marquee.infra.exceptions import ConfigurationFetchError, ConfigurationFormatError, ContractError
from marquee.providers import InlineConfigurationProvider
from marquee.runtime.event_loop import InlineExecutor
from marquee.scheduling.configuration_cache import ConfigurationCache
from marquee.storage.snapshot_store import InMemorySnapshotStore

CONFIG_ID = "5f1e2d3c4b5a697887766554"


class PendingExecutor(Executor):
    """Executor whose futures complete only when the test says so."""

    def __init__(self):
        self.futures: list[Future] = []
        self.calls: list[tuple] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        self.futures.append(future)
        self.calls.append((fn, args))
        return future


def _make_cache(loop, provider, **kwargs) -> ConfigurationCache:
    kwargs.setdefault("executor", InlineExecutor())
    return ConfigurationCache(provider, CONFIG_ID, loop, **kwargs)


class TestRefresh:
    def test_result_applied_on_loop(self, loop, document):
        cache = _make_cache(loop, InlineConfigurationProvider(document))
        changes = []
        cache.on_changed(changes.append)

        cache.start()
        # Fetched, but not yet handed back
        assert cache.get_current() is None
        assert cache.is_fetching

        loop.run_pending()

        assert cache.get_current() is not None
        assert [c.configuration_id for c in changes] == [CONFIG_ID]
        assert not cache.is_fetching

    def test_unchanged_document_does_not_notify(self, loop, document):
        provider = InlineConfigurationProvider(document)
        cache = _make_cache(loop, provider, poll_interval_s=60)
        changes = []
        cache.on_changed(changes.append)

        cache.start()
        loop.run_pending()
        loop.advance(60)

        assert provider.fetch_count == 2
        assert cache.fetch_count == 2
        assert len(changes) == 1

    def test_changed_document_notifies(self, loop, document):
        provider = InlineConfigurationProvider(document)
        cache = _make_cache(loop, provider, poll_interval_s=60)
        changes = []
        cache.on_changed(changes.append)
        cache.start()
        loop.run_pending()

        updated = copy.deepcopy(document)
        updated["schedules"].pop()
        provider.document = updated
        loop.advance(60)

        assert len(changes) == 2
        assert [s.id for s in cache.get_current().schedules] == ["top-of-hour"]

    def test_fetch_failure_keeps_previous(self, loop, document):
        provider = InlineConfigurationProvider(document)
        cache = _make_cache(loop, provider, poll_interval_s=60)
        cache.start()
        loop.run_pending()
        before = cache.get_current()

        provider.fail_with = ConfigurationFetchError("publisher unreachable")
        loop.advance(60)

        assert cache.get_current() is before
        assert isinstance(cache.last_error, ConfigurationFetchError)

        provider.fail_with = None
        loop.advance(60)
        assert cache.last_error is None

    @pytest.mark.parametrize(
        "bad_document",
        [
            {"configurationId": CONFIG_ID, "schedules": "nope"},
            {"configurationId": CONFIG_ID, "schedules": []},
            {"configurationId": CONFIG_ID, "schedules": [{"id": "s", "recurrenceExpression": "* * * * * *"}]},
        ],
    )
    def test_unusable_document_keeps_previous(self, loop, document, bad_document):
        provider = InlineConfigurationProvider(document)
        cache = _make_cache(loop, provider, poll_interval_s=60)
        cache.start()
        loop.run_pending()
        before = cache.get_current()

        provider.document = bad_document
        loop.advance(60)

        assert cache.get_current() is before
        assert isinstance(cache.last_error, ConfigurationFormatError)

    def test_one_fetch_in_flight(self, loop, document):
        executor = PendingExecutor()
        cache = _make_cache(loop, InlineConfigurationProvider(document), executor=executor)

        assert cache.refresh() is True
        assert cache.refresh() is False
        assert len(executor.calls) == 1

    def test_result_after_stop_is_discarded(self, loop, document):
        executor = PendingExecutor()
        cache = _make_cache(loop, InlineConfigurationProvider(document), executor=executor)
        cache.start()
        cache.stop()

        executor.futures[0].set_result(document)
        loop.run_pending()

        assert cache.get_current() is None
        assert not cache.is_fetching
        assert loop.pending_count == 0

    def test_restart_after_stop(self, loop, document):
        executor = PendingExecutor()
        cache = _make_cache(loop, InlineConfigurationProvider(document), executor=executor)
        cache.start()
        cache.stop()

        cache.start()
        assert len(executor.calls) == 2

        # The fetch from before stop() lands late and is dropped
        stale = copy.deepcopy(document)
        stale["configurationId"] = "stale"
        executor.futures[0].set_result(stale)
        loop.run_pending()
        assert cache.get_current() is None
        assert cache.is_fetching

        executor.futures[1].set_result(document)
        loop.run_pending()
        assert cache.get_current().configuration_id == document["configurationId"]

    def test_restart_with_own_executor(self, loop, document):
        cache = ConfigurationCache(InlineConfigurationProvider(document), CONFIG_ID, loop)
        cache.start()
        cache.stop()

        cache.start()

        assert cache.fetch_count == 2
        assert cache.last_error is None
        cache.stop()


class TestSnapshots:
    def test_successful_fetch_is_saved(self, loop, document):
        store = InMemorySnapshotStore()
        cache = _make_cache(loop, InlineConfigurationProvider(document), snapshot_store=store)

        cache.start()
        loop.run_pending()

        snapshot = store.load(CONFIG_ID)
        assert snapshot is not None
        assert snapshot.configuration == document

    def test_warm_start(self, loop, document):
        store = InMemorySnapshotStore()
        store.save(CONFIG_ID, document)
        provider = InlineConfigurationProvider(None)
        provider.fail_with = ConfigurationFetchError("offline")

        cache = _make_cache(loop, provider, snapshot_store=store)

        assert cache.warm_started
        assert cache.get_current() is not None

        cache.start()
        loop.run_pending()
        assert cache.get_current() is not None

    def test_unusable_snapshot_is_ignored(self, loop):
        store = InMemorySnapshotStore()
        store.save(CONFIG_ID, {"configurationId": CONFIG_ID, "schedules": []})

        cache = _make_cache(loop, InlineConfigurationProvider(None), snapshot_store=store)

        assert not cache.warm_started
        assert cache.get_current() is None


class TestContract:
    def test_requires_provider(self, loop):
        with pytest.raises(ContractError):
            ConfigurationCache(None, CONFIG_ID, loop, executor=InlineExecutor())

    def test_requires_positive_interval(self, loop, document):
        with pytest.raises(ContractError):
            _make_cache(loop, InlineConfigurationProvider(document), poll_interval_s=0)
