"""
Core orchestration module for Netfetch.

Resolves the active modules, runs them, and publishes their results into
the shared snapshot.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Iterable

from netfetch.collectors import get_collector
from netfetch.collectors.base import BaseCollector, HostContext
from netfetch.config import Config
from netfetch.locking import ReadWriteLock
from netfetch.model import Snapshot

logger = logging.getLogger(__name__)


class Collector:
    """
    Aggregator owning the host snapshot.

    Static modules run once when the collector is built; dynamic modules
    run on every `collect_dynamic` call. Each module builds its values
    completely before they are published, and publication holds the
    snapshot's write lock only for the assignment of that module's fields.
    Unrelated modules can therefore be refreshed from different threads
    while readers take copies through `snapshot`.
    """

    def __init__(
        self,
        active_modules: Iterable[str] | None = None,
        config: Config | None = None,
        context: HostContext | None = None,
    ):
        self.config = config or Config()
        self.context = context or HostContext(self.config)

        if active_modules is None:
            active_modules = self.config.resolved_modules()

        self.modules: dict[str, BaseCollector] = {}
        for name in active_modules:
            if name in self.modules:
                continue
            collector_cls = get_collector(name)
            if collector_cls is None:
                logger.debug(f"Ignoring unknown module '{name}'")
                continue
            try:
                self.modules[name] = collector_cls(self.context)
            except Exception as e:
                logger.error(f"Module '{name}' could not be initialised: {e}")

        self._snapshot = Snapshot()
        self._lock = ReadWriteLock()
        self._module_locks = {name: threading.Lock() for name in self.modules}

        self._stop_event = threading.Event()
        self._refresh_thread: threading.Thread | None = None

        self.collect_static()

    @property
    def static_modules(self) -> list[str]:
        return [name for name, module in self.modules.items() if not module.dynamic]

    @property
    def dynamic_modules(self) -> list[str]:
        return [name for name, module in self.modules.items() if module.dynamic]

    def collect_static(self) -> None:
        """Run every active module whose facts do not change during a run."""
        self._run_modules(self.static_modules)

    def collect_dynamic(self) -> None:
        """Refresh every active time-varying module in place."""
        self._run_modules(self.dynamic_modules)

    def collect_all(self) -> None:
        self.collect_static()
        self.collect_dynamic()

    def snapshot(self) -> Snapshot:
        """
        Return a copy of the current snapshot.

        The copy is taken under the read lock, so it never contains half of
        a module's publication, and later collections do not change it.
        """
        with self._lock.read():
            return copy.deepcopy(self._snapshot)

    def start_refresh(self, interval: float | None = None) -> None:
        """Run `collect_dynamic` every `interval` seconds from a daemon thread."""
        if self._refresh_thread and self._refresh_thread.is_alive():
            return

        interval = interval if interval is not None else self.config.refresh_interval
        self._stop_event.clear()
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval,),
            name="netfetch-refresh",
            daemon=True,
        )
        self._refresh_thread.start()
        logger.info(f"Refreshing dynamic modules every {interval}s")

    def stop_refresh(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._refresh_thread:
            self._refresh_thread.join(timeout)
            self._refresh_thread = None

    def _refresh_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.collect_dynamic()

    def _run_modules(self, names: list[str]) -> None:
        if not names:
            return
        logger.debug(f"Running {len(names)} modules")
        for name in names:
            self._run_module(name)

    def _run_module(self, name: str) -> bool:
        """
        Run one module and publish its fields.

        Returns:
            True if the module's values were published. On failure the
            fields keep their previous values.
        """
        module = self.modules[name]
        with self._module_locks[name]:
            start = time.perf_counter()
            try:
                values = module.collect()
            except Exception as e:
                logger.error(f"Module '{name}' failed: {e}")
                return False

            with self._lock.write():
                for field_name in module.fields:
                    if field_name in values:
                        setattr(self._snapshot, field_name, values[field_name])

            duration = (time.perf_counter() - start) * 1000
            logger.debug(f"Module '{name}' completed in {duration:.2f}ms")
            return True
