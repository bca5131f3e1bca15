"""Storage collaborator used by the batch orchestrator.

GraphStorage maps the orchestrator's narrow persistence contract onto the
Neo4j graph functions. It also acts as the configuration store for
ConfigProvider (get_values / set_value).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ipo_ingest.services import graph_service
from ipo_ingest.services.crawl.base import ExtractionResult, ScrapeStatus, SourceReference, now_utc

logger = logging.getLogger(__name__)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class GraphStorage:
    # --- Orchestrator contract ---
    def create_pending_log(self, batch_id: str, ref: SourceReference) -> str:
        return graph_service.create_scrape_log(
            batch_id,
            ref.source_id,
            ref.url,
            ScrapeStatus.PENDING.value,
            created_at=_iso(now_utc()),
        )

    def update_log(
        self,
        log_id: str,
        status: ScrapeStatus,
        *,
        detail: Optional[str] = None,
        current_step: Optional[str] = None,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        duration_ms: Optional[int] = None,
        retry_count: Optional[int] = None,
        record_id: Optional[str] = None,
    ) -> None:
        updated = graph_service.update_scrape_log(
            log_id,
            status.value,
            current_step=current_step,
            error_message=detail,
            retry_count=retry_count,
            started_at=_iso(started_at),
            completed_at=_iso(completed_at),
            duration_ms=duration_ms,
            ipo_id=record_id,
        )
        if not updated:
            raise RuntimeError(f"Scrape log {log_id} not found")

    def record_exists(self, source_id: int) -> bool:
        return graph_service.premium_mapping_exists(source_id)

    def persist_record(self, result: ExtractionResult) -> str:
        return graph_service.create_ipo(
            result.name,
            card_html=result.fragment_primary,
            content_html=result.fragment_secondary,
            category=result.classification.value,
            scraped_at=_iso(now_utc()),
        )

    def persist_mapping(self, record_id: str, source_id: int, slug: str, url: str) -> None:
        """Link a stored IPO to its source id.

        If the mapping cannot be written the IPO node is removed again, so a
        later run does not find an unmapped record and store it twice.
        """
        try:
            graph_service.create_premium_mapping(record_id, source_id, slug, url, created_at=_iso(now_utc()))
        except Exception:
            logger.error("Mapping for IPO %d failed, removing record %s", source_id, record_id)
            try:
                graph_service.delete_ipo(record_id)
            except Exception:
                logger.exception("Could not remove unmapped IPO record %s", record_id)
            raise

    # --- Configuration store contract ---
    def get_values(self) -> Dict[str, Optional[str]]:
        return graph_service.get_config_values()

    def set_value(self, key: str, value: str, **meta: Any) -> None:
        graph_service.set_config_value(key, value, updated_at=_iso(now_utc()), **meta)

    # --- Read side for the API ---
    def get_batch_logs(self, batch_id: str) -> List[Dict[str, Any]]:
        return graph_service.get_batch_logs(batch_id)

    def get_batch_history(self, count: int = 10) -> List[Dict[str, Any]]:
        summaries = []
        for batch_id in graph_service.get_recent_batches(count):
            summary = graph_service.get_batch_summary(batch_id)
            if summary:
                summaries.append(summary)
        return summaries

    def get_latest_batch_summary(self) -> Dict[str, Any]:
        return graph_service.get_latest_batch_summary()
