"""Batch orchestration for IPO scraping.

One batch = resolve the sitemap window, register a pending scrape log per
IPO, then walk the IPOs in ascending source-id order:

- already mapped in storage -> Skipped, keep going
- extraction fails (after the extractor's own retries) -> Failed, stop the batch
- extraction succeeds -> persist IPO + mapping, Completed, keep going

Items after a failure stay Pending. Cancellation is checked between items;
an in-flight page is allowed to finish first, then the rest become Cancelled.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .base import (
    BatchOutcome,
    BatchRun,
    BatchRunSummary,
    ItemState,
    ScrapeStatus,
    SourceReference,
    monotonic_ms,
    now_utc,
)
from .events import EventBus, ProgressEvent, StatusEvent
from .extractor import PageExtractor
from .sitemap import SitemapResolver
from .transport import HttpTransport

logger = logging.getLogger(__name__)

_OUTCOME_STATUS = {
    BatchOutcome.COMPLETED: ScrapeStatus.COMPLETED,
    BatchOutcome.FAILED: ScrapeStatus.FAILED,
    BatchOutcome.NO_ITEMS: ScrapeStatus.FAILED,
    BatchOutcome.CANCELLED: ScrapeStatus.CANCELLED,
}


class BatchOrchestrator:
    """Runs at most one scraping batch at a time.

    `storage` must provide create_pending_log, update_log, record_exists,
    persist_record and persist_mapping. `config_provider` must provide
    get_batch_config(). Resolver and extractor are built per run from the
    config snapshot unless injected.
    """

    def __init__(
        self,
        storage,
        config_provider,
        *,
        transport: Optional[HttpTransport] = None,
        resolver: Optional[SitemapResolver] = None,
        extractor: Optional[PageExtractor] = None,
        events: Optional[EventBus] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.storage = storage
        self.config_provider = config_provider
        self.transport = transport or HttpTransport()
        self.resolver = resolver
        self.extractor = extractor
        self.events = events or EventBus()
        self.sleep = sleep

        self._lock = threading.Lock()
        self._running = False
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.current_batch: Optional[BatchRun] = None
        self.last_summary: Optional[BatchRunSummary] = None

    # --- Public API ---
    def is_running(self) -> bool:
        return self._running

    def run(self) -> Optional[BatchRunSummary]:
        """Run one batch in the calling thread. Returns None if a batch is already running."""
        if not self._claim():
            logger.warning("Scraping is already running")
            return None
        return self._run_claimed()

    def start(self) -> bool:
        """Run one batch on a background thread. False means a batch is already running."""
        if not self._claim():
            logger.warning("Scraping is already running")
            return False
        self._thread = threading.Thread(target=self._run_claimed, name="ipo-scrape-batch", daemon=True)
        self._thread.start()
        return True

    def stop(self) -> bool:
        """Request cancellation; takes effect at the next item boundary."""
        with self._lock:
            if not self._running:
                return False
            logger.info("Stopping scraping process...")
            self._cancel.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the background batch thread, if any. True when no batch is running afterwards."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self._running

    # --- Internals ---
    def _claim(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._cancel.clear()
            return True

    def _run_claimed(self) -> BatchRunSummary:
        try:
            summary = self._run_batch()
            self.last_summary = summary
            return summary
        finally:
            with self._lock:
                self._running = False

    def _run_batch(self) -> BatchRunSummary:
        batch = BatchRun()
        self.current_batch = batch
        started = monotonic_ms()
        self._status("Starting scraping workflow...", ScrapeStatus.IN_PROGRESS)

        try:
            config = self.config_provider.get_batch_config()
        except Exception as exc:
            logger.exception("Could not load scraping configuration")
            return self._finish(batch, BatchOutcome.FAILED, f"Fatal error: {exc}", started, error_detail=str(exc))

        logger.info("Starting scraping with BatchID: %s, Count: %d", batch.batch_id, config.window_size)
        resolver = self.resolver or SitemapResolver(self.transport, timeout_ms=config.fetch_timeout_ms)
        extractor = self.extractor or PageExtractor(self.transport, timeout_ms=config.fetch_timeout_ms, sleep=self.sleep)

        self._status("Fetching sitemap...", ScrapeStatus.IN_PROGRESS)
        try:
            refs = resolver.resolve(config.sitemap_url, config.window_size)
        except Exception as exc:
            logger.exception("Error parsing sitemap from %s", config.sitemap_url)
            return self._finish(
                batch, BatchOutcome.FAILED, f"Failed to fetch sitemap: {exc}", started, error_detail=str(exc)
            )

        if not refs:
            return self._finish(batch, BatchOutcome.NO_ITEMS, "No IPO URLs found in sitemap", started)
        logger.info("Found %d IPO URLs to scrape", len(refs))

        batch.items = [ItemState(ref=ref) for ref in refs]
        try:
            for item in batch.items:
                item.log_id = self.storage.create_pending_log(batch.batch_id, item.ref)
        except Exception as exc:
            logger.exception("Could not register scrape logs for batch %s", batch.batch_id)
            return self._finish(
                batch, BatchOutcome.FAILED, f"Failed to register scrape logs: {exc}", started, error_detail=str(exc)
            )

        total = len(batch.items)
        for index, item in enumerate(batch.items):
            if self._cancel.is_set():
                logger.info("Scraping cancelled by user")
                self._cancel_from(batch, index)
                return self._finish(batch, BatchOutcome.CANCELLED, "Scraping cancelled", started)

            try:
                status = self._process_item(item, index + 1, total, config, extractor)
            except Exception as exc:
                logger.exception("Error processing IPO %d", item.ref.source_id)
                self._fail_item(item, str(exc), index + 1, total)
                return self._finish(
                    batch,
                    BatchOutcome.FAILED,
                    f"Error processing {item.ref.slug}: {exc}",
                    started,
                    failed_item=item.ref,
                    error_detail=str(exc),
                )

            if status is ScrapeStatus.FAILED:
                return self._finish(
                    batch,
                    BatchOutcome.FAILED,
                    f"Scraping failed at {item.ref.slug}: {item.error_detail}",
                    started,
                    failed_item=item.ref,
                    error_detail=item.error_detail,
                )

        return self._finish(batch, BatchOutcome.COMPLETED, "Scraping completed!", started)

    def _process_item(self, item: ItemState, current: int, total: int, config, extractor: PageExtractor) -> ScrapeStatus:
        ref = item.ref

        if self.storage.record_exists(ref.source_id):
            logger.info("IPO %d already exists, skipping", ref.source_id)
            self._persist(item, ScrapeStatus.SKIPPED, current_step="Already exists")
            self._progress(current, total, ref, ScrapeStatus.SKIPPED)
            return ScrapeStatus.SKIPPED

        self._persist(item, ScrapeStatus.IN_PROGRESS, current_step=f"Scraping {ref.slug}")
        self._status(f"Scraping {current}/{total}: {ref.slug}", ScrapeStatus.IN_PROGRESS)
        self._progress(current, total, ref, ScrapeStatus.IN_PROGRESS)

        result = extractor.extract(
            ref,
            config.primary_selector,
            config.secondary_selector,
            config.max_retries,
            config.base_delay_ms,
        )
        item.attempts = result.attempts
        item.duration_ms = result.duration_ms

        if not result.success:
            logger.error("Failed to scrape IPO %d: %s", ref.source_id, result.error_detail)
            item.error_detail = result.error_detail
            self._persist(
                item,
                ScrapeStatus.FAILED,
                detail=result.error_detail,
                duration_ms=result.duration_ms,
                retry_count=max(result.attempts - 1, 0),
            )
            self._progress(current, total, ref, ScrapeStatus.FAILED)
            return ScrapeStatus.FAILED

        record_id = self.storage.persist_record(result)
        self.storage.persist_mapping(record_id, ref.source_id, ref.slug, ref.url)
        item.record_id = record_id
        self._persist(
            item,
            ScrapeStatus.COMPLETED,
            current_step="Completed",
            duration_ms=result.duration_ms,
            retry_count=max(result.attempts - 1, 0),
            record_id=record_id,
        )
        logger.info("Successfully scraped IPO %d: %s", ref.source_id, result.name)
        self._progress(current, total, ref, ScrapeStatus.COMPLETED)
        return ScrapeStatus.COMPLETED

    def _persist(self, item: ItemState, status: ScrapeStatus, **fields) -> None:
        """Write the log row first, then move the in-memory state."""
        at = now_utc()
        if status is ScrapeStatus.IN_PROGRESS:
            fields["started_at"] = at
        elif status.is_terminal:
            fields["completed_at"] = at
        self.storage.update_log(item.log_id, status, **fields)
        item.transition(status, at=at)

    def _fail_item(self, item: ItemState, detail: str, current: int, total: int) -> None:
        if item.status is ScrapeStatus.PENDING:
            item.transition(ScrapeStatus.IN_PROGRESS)
        if not item.can_transition(ScrapeStatus.FAILED):
            return
        item.error_detail = detail
        item.transition(ScrapeStatus.FAILED)
        try:
            self.storage.update_log(item.log_id, ScrapeStatus.FAILED, detail=detail, completed_at=item.completed_at)
        except Exception:
            logger.exception("Could not record failure for IPO %d", item.ref.source_id)
        self._progress(current, total, item.ref, ScrapeStatus.FAILED)

    def _cancel_from(self, batch: BatchRun, start: int) -> None:
        for item in batch.items[start:]:
            if not item.can_transition(ScrapeStatus.CANCELLED):
                continue
            item.transition(ScrapeStatus.CANCELLED)
            try:
                self.storage.update_log(
                    item.log_id, ScrapeStatus.CANCELLED, current_step="Cancelled", completed_at=item.completed_at
                )
            except Exception:
                logger.exception("Could not record cancellation for IPO %d", item.ref.source_id)

    def _finish(
        self,
        batch: BatchRun,
        outcome: BatchOutcome,
        headline: str,
        started: int,
        *,
        failed_item: Optional[SourceReference] = None,
        error_detail: Optional[str] = None,
    ) -> BatchRunSummary:
        batch.finish()
        elapsed_ms = monotonic_ms() - started
        counts = batch.counts()
        message = (
            f"{headline} Success: {counts[ScrapeStatus.COMPLETED.value]}, "
            f"Failed: {counts[ScrapeStatus.FAILED.value]}, "
            f"Skipped: {counts[ScrapeStatus.SKIPPED.value]}, "
            f"Duration: {elapsed_ms / 1000.0:.1f}s"
        )
        summary = BatchRunSummary.from_run(
            batch, outcome, message, elapsed_ms=elapsed_ms, failed_item=failed_item, error_detail=error_detail
        )
        self._status(message, _OUTCOME_STATUS[outcome])
        log = logger.info if outcome is BatchOutcome.COMPLETED else logger.warning
        log(
            "Scraping workflow finished. BatchID: %s, Outcome: %s, Success: %d, Failed: %d, Skipped: %d",
            batch.batch_id, outcome.value, summary.completed, summary.failed, summary.skipped,
        )
        return summary

    def _status(self, message: str, status: ScrapeStatus) -> None:
        self.events.emit_status(StatusEvent(message=message, status=status))

    def _progress(self, current: int, total: int, ref: SourceReference, status: ScrapeStatus) -> None:
        self.events.emit_progress(ProgressEvent(current=current, total=total, item=ref, status=status))
