from __future__ import annotations

import logging
import threading
from typing import Optional

from ipo_ingest.services.settings_service import ConfigKeys, ConfigProvider

from .orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 60.0


class AutoScrapeScheduler:
    """Background loop that runs a batch every `Scraping.RefreshInterval` seconds.

    Each tick re-reads `Scraping.AutoEnabled`, so automatic scraping can be
    switched on and off through the configuration API without a restart.
    """

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        config_provider: ConfigProvider,
        *,
        initial_delay: float = 5.0,
    ) -> None:
        self.orchestrator = orchestrator
        self.config_provider = config_provider
        self.initial_delay = initial_delay
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="ipo-auto-scrape", daemon=True)
        self._thread.start()
        logger.info("Scraping scheduler starting")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scraping scheduler stopped")

    def tick(self) -> float:
        """Run one scheduling step. Returns the number of seconds to wait before the next one."""
        interval = max(self.config_provider.get_int(ConfigKeys.SCRAPING_REFRESH_INTERVAL), 1)
        if not self.config_provider.get_bool(ConfigKeys.SCRAPING_AUTO_ENABLED):
            return float(interval)
        if self.orchestrator.is_running():
            logger.info("Scraping already in progress, skipping")
            return float(interval)
        logger.info("Auto-scraping triggered")
        self.orchestrator.run()
        return float(interval)

    def _loop(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            try:
                wait_for = self.tick()
            except Exception:
                logger.exception("Error in scraping scheduler")
                wait_for = ERROR_BACKOFF_SECONDS
            if self._stop.wait(wait_for):
                break
