"""Process-wide scraping components.

Usage:
    from ipo_ingest.services.scraping_service import get_orchestrator
    started = get_orchestrator().start()
"""

from __future__ import annotations

import threading
from typing import Optional

from ipo_ingest.services.crawl.events import EventBus, RecentEvents
from ipo_ingest.services.crawl.orchestrator import BatchOrchestrator
from ipo_ingest.services.crawl.scheduler import AutoScrapeScheduler
from ipo_ingest.services.settings_service import ConfigProvider
from ipo_ingest.services.storage import GraphStorage

_lock = threading.Lock()
_storage: Optional[GraphStorage] = None
_config_provider: Optional[ConfigProvider] = None
_events: Optional[EventBus] = None
_recent: Optional[RecentEvents] = None
_orchestrator: Optional[BatchOrchestrator] = None
_scheduler: Optional[AutoScrapeScheduler] = None


def get_storage() -> GraphStorage:
    global _storage
    with _lock:
        if _storage is None:
            _storage = GraphStorage()
        return _storage


def get_config_provider() -> ConfigProvider:
    global _config_provider
    storage = get_storage()
    with _lock:
        if _config_provider is None:
            _config_provider = ConfigProvider(storage)
        return _config_provider


def get_recent_events() -> RecentEvents:
    _ensure_events()
    return _recent


def get_orchestrator() -> BatchOrchestrator:
    global _orchestrator
    storage = get_storage()
    provider = get_config_provider()
    events = _ensure_events()
    with _lock:
        if _orchestrator is None:
            _orchestrator = BatchOrchestrator(storage, provider, events=events)
        return _orchestrator


def get_scheduler() -> AutoScrapeScheduler:
    global _scheduler
    orchestrator = get_orchestrator()
    provider = get_config_provider()
    with _lock:
        if _scheduler is None:
            _scheduler = AutoScrapeScheduler(orchestrator, provider)
        return _scheduler


def shutdown() -> None:
    """Ask a running batch to cancel, then stop the scheduler.

    The cancel request goes first so the batch winds down while the
    scheduler thread is being joined.
    """
    with _lock:
        scheduler, orchestrator = _scheduler, _orchestrator
    if orchestrator is not None:
        orchestrator.stop()
    if scheduler is not None:
        scheduler.stop()


def _ensure_events() -> EventBus:
    global _events, _recent
    with _lock:
        if _events is None:
            _events = EventBus()
            _recent = RecentEvents()
            _recent.attach(_events)
        return _events
