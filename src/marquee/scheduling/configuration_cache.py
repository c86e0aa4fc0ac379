"""ConfigurationCache: holds the current configuration and refreshes it.

The cache owns the "current configuration" reference. Fetches run on an
executor; their results are handed back to the event loop, so the current
reference only ever changes on the loop thread.

Failure policy: a failed fetch, a malformed document, or a document with no
usable schedule leaves the previous configuration in place. The failure is
logged and recorded in ``last_error``; it is never raised to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable

from marquee.domain.entities import Configuration
from marquee.infra.exceptions import ConfigurationFormatError, ContractError
from marquee.runtime.event_loop import EventLoop, TimerHandle
from marquee.storage.snapshot_store import SnapshotStore

ConfigurationListener = Callable[[Configuration], None]

DEFAULT_POLL_INTERVAL_S = 300.0


class ConfigurationCache:
    """Polls a configuration provider and exposes the last good document."""

    def __init__(
        self,
        provider,  # needs .fetch(configuration_id) -> dict
        configuration_id: str,
        loop: EventLoop,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        snapshot_store: SnapshotStore | None = None,
        executor: Executor | None = None,
    ):
        if provider is None:
            raise ContractError("ConfigurationCache requires a provider")
        if loop is None:
            raise ContractError("ConfigurationCache requires an event loop")
        if poll_interval_s <= 0:
            raise ContractError("poll_interval_s must be greater than zero")

        self._provider = provider
        self._configuration_id = configuration_id
        self._loop = loop
        self._poll_interval_s = poll_interval_s
        self._snapshot_store = snapshot_store
        self._owns_executor = executor is None
        self._executor: Executor | None = executor
        self._logger = logging.getLogger(__name__)

        self._current: Configuration | None = None
        self._listeners: list[ConfigurationListener] = []
        self._in_flight = False
        self._pending: Future | None = None
        self._started = False
        self._poll_handle: TimerHandle | None = None

        self.last_error: Exception | None = None
        self.warm_started = False
        self.fetch_count = 0

        self._warm_start()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def configuration_id(self) -> str:
        return self._configuration_id

    @property
    def is_fetching(self) -> bool:
        return self._in_flight

    def get_current(self) -> Configuration | None:
        """The last good configuration, or None if none has been loaded."""
        return self._current

    def on_changed(self, callback: ConfigurationListener) -> None:
        """Register a callback invoked (on the loop) when the configuration changes."""
        self._listeners.append(callback)

    def start(self) -> None:
        """Fetch immediately, then every poll interval."""
        if self._started:
            return
        self._started = True
        self._logger.info(
            "ConfigurationCache: started for %s (poll every %ss)",
            self._configuration_id,
            self._poll_interval_s,
        )
        self.refresh()
        self._schedule_poll()

    def stop(self) -> None:
        """Stop polling. A fetch still in flight is discarded when it lands."""
        self._started = False
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._pending = None
        self._in_flight = False
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._logger.info("ConfigurationCache: stopped")

    def refresh(self) -> bool:
        """Start a fetch. Returns False when one is already in flight."""
        if self._in_flight:
            self._logger.debug("Configuration fetch already in flight; skipping")
            return False
        try:
            future = self._fetch_executor().submit(self._provider.fetch, self._configuration_id)
        except RuntimeError as exc:
            self._record_failure("Configuration fetch could not be scheduled", exc)
            return False
        self._in_flight = True
        self._pending = future
        self.fetch_count += 1
        future.add_done_callback(self._hand_back)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="marquee-fetch")
        return self._executor

    def _warm_start(self) -> None:
        if self._snapshot_store is None:
            return
        try:
            snapshot = self._snapshot_store.load(self._configuration_id)
        except Exception as exc:
            self._logger.warning("Snapshot load failed: %s", exc)
            return
        if snapshot is None:
            return
        try:
            configuration = Configuration.from_dict(snapshot.configuration)
        except ConfigurationFormatError as exc:
            self._logger.warning("Ignoring unreadable snapshot: %s", exc)
            return
        if not configuration.is_usable:
            return
        self._current = configuration
        self.warm_started = True
        self._logger.info(
            "ConfigurationCache: warm start from snapshot saved at %s",
            snapshot.saved_at.isoformat(),
        )

    def _schedule_poll(self) -> None:
        self._poll_handle = self._loop.call_later(self._poll_interval_s, self._on_poll_timer)

    def _on_poll_timer(self) -> None:
        if not self._started:
            return
        self.refresh()
        self._schedule_poll()

    def _hand_back(self, future: Future) -> None:
        # Runs on the executor thread (or inline); apply on the loop.
        self._loop.call_soon_threadsafe(self._on_fetch_done, future)

    def _on_fetch_done(self, future: Future) -> None:
        if future is not self._pending:
            self._logger.debug("Discarding configuration fetched before stop()")
            return
        self._pending = None
        self._in_flight = False
        if not self._started:
            return

        try:
            document = future.result()
        except Exception as exc:
            self._record_failure("Configuration fetch failed", exc)
            return

        try:
            configuration = Configuration.from_dict(document)
        except ConfigurationFormatError as exc:
            self._record_failure("Configuration document rejected", exc)
            return

        if not configuration.is_usable:
            self._record_failure(
                "Configuration document rejected",
                ConfigurationFormatError("no schedule has any region"),
            )
            return

        self.last_error = None
        self._save_snapshot(document)

        if configuration == self._current:
            self._logger.debug("Configuration unchanged")
            return
        self._current = configuration
        self._logger.info(
            "Configuration updated: %s (%d schedules)",
            configuration.configuration_id or self._configuration_id,
            len(configuration.schedules),
        )
        self._notify(configuration)

    def _record_failure(self, message: str, exc: Exception) -> None:
        self.last_error = exc
        self._logger.warning("%s; keeping previous configuration: %s", message, exc)

    def _save_snapshot(self, document: dict[str, Any]) -> None:
        if self._snapshot_store is None:
            return
        try:
            self._snapshot_store.save(self._configuration_id, document)
        except Exception as exc:
            self._logger.warning("Snapshot save failed: %s", exc)

    def _notify(self, configuration: Configuration) -> None:
        for listener in list(self._listeners):
            try:
                listener(configuration)
            except Exception:
                self._logger.exception("Configuration listener failed")
