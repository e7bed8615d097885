"""Poller orchestrator: one cycle per calendar minute."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from ...cloud.client import CloudClient
from ...common.errors import FieldExtractionError, ParseError, TransportError
from ...pipelines.device_directory import DeviceDirectory
from ...pipelines.extractor import Reading, ReadingExtractor
from ...pipelines.metric_store import MetricStore, time_bucket
from .config import RunnerConfig
from .schedule import next_tick, seconds_until_next_tick
from .stats import CycleStats

logger = logging.getLogger(__name__)

STORED = "stored"
SKIPPED = "skipped"
FAILED = "failed"


class Poller:
    """Fetches the status of all configured devices and stores the readings.

    ``store_factory`` is called lazily and again after a failure, so an
    unreachable database only costs the cycles during which it is down.
    """

    def __init__(
        self,
        cfg: RunnerConfig,
        directory: DeviceDirectory,
        client: CloudClient,
        store_factory: Callable[[], MetricStore],
        extractor: Optional[ReadingExtractor] = None,
        clock: Callable[[], float] = time.time,
        stop_event: Optional[threading.Event] = None,
    ):
        self._cfg = cfg
        self._directory = directory
        self._client = client
        self._store_factory = store_factory
        self._extractor = extractor or ReadingExtractor()
        self._clock = clock
        self._stop = stop_event or threading.Event()
        self._store: Optional[MetricStore] = None

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def stop(self) -> None:
        self._stop.set()

    def _get_store(self) -> MetricStore:
        if self._store is None:
            self._store = self._store_factory()
        return self._store

    def _process_reading(self, store: MetricStore, reading: Reading) -> str:
        device = self._directory.lookup(reading.device_id)
        if device is None:
            logger.warning("[POLLER] unknown device id %s in response, skipped", reading.device_id)
            return SKIPPED

        timekey = time_bucket(self._clock())
        try:
            store.add_reading(
                device.station,
                device.sensor,
                timekey,
                reading.temperature,
                reading.humidity,
                reading.battery_voltage,
                reading.battery_percent,
            )
        except Exception as e:
            logger.error(
                "[POLLER] adding %s to %s/%s (temperature=%.1f, humidity=%.0f, "
                "battery=%.2f, capacity=%.0f) failed: %s",
                reading.device_id, device.station, device.sensor,
                reading.temperature, reading.humidity,
                reading.battery_voltage, reading.battery_percent, e,
            )
            return FAILED
        return STORED

    def _log_extraction_failure(self, failure: FieldExtractionError) -> None:
        device = self._directory.lookup(failure.device_id)
        logger.error(
            "[POLLER] reading of %s for %s failed: %s field %s (status=%s)",
            failure.device_id,
            f"{device.station}/{device.sensor}" if device else "unknown device",
            failure.reason,
            failure.path,
            failure.status,
        )

    def _count(self, stats: CycleStats, outcome: str) -> None:
        if outcome == STORED:
            stats.stored += 1
        elif outcome == SKIPPED:
            stats.skipped += 1
        else:
            stats.failed += 1

    def run_once(self) -> CycleStats:
        """One fetch -> extract -> persist cycle. Never raises for data or I/O errors."""
        stats = CycleStats()
        t0 = time.monotonic()
        try:
            self._cycle(stats)
        finally:
            stats.duration_ms = (time.monotonic() - t0) * 1000
            logger.info("[POLLER] cycle %s%s", stats, f" error={stats.error}" if stats.error else "")
        return stats

    def _cycle(self, stats: CycleStats) -> None:
        ids = self._directory.id_list()
        stats.requested = len(ids)

        try:
            payload = self._client.fetch(ids)
        except TransportError as e:
            logger.error("[POLLER] cannot retrieve data: %s", e)
            stats.error = str(e)
            return

        try:
            result = self._extractor.extract(payload)
        except ParseError as e:
            logger.error("[POLLER] cannot process data: %s", e)
            stats.error = str(e)
            return

        stats.received = result.total
        for failure in result.failures:
            self._log_extraction_failure(failure)
        stats.failed += len(result.failures)
        if not result.readings:
            return

        try:
            store = self._get_store()
        except Exception as e:
            logger.error("[POLLER] database not available: %s", e)
            stats.error = str(e)
            stats.failed += len(result.readings)
            return

        if self._cfg.workers <= 1:
            for reading in result.readings:
                self._count(stats, self._process_reading(store, reading))
            return

        with ThreadPoolExecutor(max_workers=self._cfg.workers) as pool:
            futures = {
                pool.submit(self._process_reading, store, reading): reading.device_id
                for reading in result.readings
            }
            for fut in as_completed(futures):
                try:
                    outcome = fut.result()
                except Exception as exc:
                    logger.error("[POLLER] device %s failed: %s", futures[fut], exc)
                    outcome = FAILED
                self._count(stats, outcome)

    def run(self) -> None:
        """Run cycles until the stop event is set (or once with ``cfg.once``)."""
        logger.info(
            "[POLLER] started: %d devices, workers=%d, dry_run=%s",
            len(self._directory), self._cfg.workers, self._cfg.dry_run,
        )
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("[POLLER] unexpected error in cycle")
            if self._cfg.once:
                break

            now = self._clock()
            delay = seconds_until_next_tick(now)
            logger.debug("[POLLER] next point in time: %d (in %.1fs)", next_tick(now), delay)
            self._stop.wait(delay)
        logger.info("[POLLER] stopped")
