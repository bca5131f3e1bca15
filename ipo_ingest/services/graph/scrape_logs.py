import uuid
from typing import Any, Dict, List, Optional

from ipo_ingest.db.neo4j_connector import run_cypher

_LOG_FIELDS = (
    "l.id AS id, l.batch_id AS batch_id, l.premium_id AS premium_id, l.url AS url, l.status AS status, "
    "l.current_step AS current_step, l.error_message AS error_message, l.retry_count AS retry_count, "
    "l.started_at AS started_at, l.completed_at AS completed_at, l.duration_ms AS duration_ms, "
    "l.created_at AS created_at, l.ipo_id AS ipo_id"
)


def create_scrape_log(
    batch_id: str,
    premium_id: Optional[int],
    url: Optional[str],
    status: str,
    *,
    created_at: Optional[str] = None,
) -> str:
    log_id = str(uuid.uuid4())
    query = (
        "CREATE (l:ScrapeLog {id: $id, batch_id: $batch_id, premium_id: $premium_id, url: $url, "
        "status: $status, retry_count: 0, created_at: $created_at}) "
        "RETURN l.id AS id"
    )
    res = run_cypher(
        query,
        {
            "id": log_id,
            "batch_id": batch_id,
            "premium_id": premium_id,
            "url": url,
            "status": status,
            "created_at": created_at,
        },
    )
    return res[0]["id"] if res else log_id


def update_scrape_log(
    log_id: str,
    status: str,
    *,
    current_step: Optional[str] = None,
    error_message: Optional[str] = None,
    retry_count: Optional[int] = None,
    started_at: Optional[str] = None,
    completed_at: Optional[str] = None,
    duration_ms: Optional[int] = None,
    ipo_id: Optional[str] = None,
) -> bool:
    """Set the status and any provided fields; None leaves a field unchanged."""
    query = (
        "MATCH (l:ScrapeLog {id: $id}) "
        "SET l.status = $status, "
        "    l.current_step = coalesce($current_step, l.current_step), "
        "    l.error_message = coalesce($error_message, l.error_message), "
        "    l.retry_count = coalesce($retry_count, l.retry_count), "
        "    l.started_at = coalesce($started_at, l.started_at), "
        "    l.completed_at = coalesce($completed_at, l.completed_at), "
        "    l.duration_ms = coalesce($duration_ms, l.duration_ms), "
        "    l.ipo_id = coalesce($ipo_id, l.ipo_id) "
        "RETURN l.id AS id"
    )
    res = run_cypher(
        query,
        {
            "id": log_id,
            "status": status,
            "current_step": current_step,
            "error_message": error_message,
            "retry_count": retry_count,
            "started_at": started_at,
            "completed_at": completed_at,
            "duration_ms": duration_ms,
            "ipo_id": ipo_id,
        },
    )
    return bool(res)


def get_batch_logs(batch_id: str) -> List[Dict[str, Any]]:
    q = (
        "MATCH (l:ScrapeLog {batch_id: $batch_id}) "
        f"RETURN {_LOG_FIELDS} "
        "ORDER BY l.premium_id"
    )
    return run_cypher(q, {"batch_id": batch_id}) or []


def get_recent_batches(count: int = 10) -> List[str]:
    q = (
        "MATCH (l:ScrapeLog) "
        "WITH l.batch_id AS batch_id, max(l.created_at) AS last_created "
        "RETURN batch_id ORDER BY last_created DESC LIMIT $count"
    )
    res = run_cypher(q, {"count": max(1, int(count))})
    return [r["batch_id"] for r in res or []]


def get_batch_summary(batch_id: str) -> Dict[str, Any]:
    """Aggregate counts for one batch. Returns empty dict for an unknown batch."""
    q = (
        "MATCH (l:ScrapeLog {batch_id: $batch_id}) "
        "RETURN count(l) AS total, "
        "  sum(CASE WHEN l.status = 'Completed' THEN 1 ELSE 0 END) AS completed, "
        "  sum(CASE WHEN l.status = 'Failed' THEN 1 ELSE 0 END) AS failed, "
        "  sum(CASE WHEN l.status = 'Skipped' THEN 1 ELSE 0 END) AS skipped, "
        "  sum(CASE WHEN l.status = 'Cancelled' THEN 1 ELSE 0 END) AS cancelled, "
        "  sum(CASE WHEN l.status = 'Pending' THEN 1 ELSE 0 END) AS pending, "
        "  sum(CASE WHEN l.status = 'InProgress' THEN 1 ELSE 0 END) AS in_progress, "
        "  min(l.created_at) AS started_at, max(l.completed_at) AS completed_at"
    )
    res = run_cypher(q, {"batch_id": batch_id})
    if not res or not res[0].get("total"):
        return {}
    row = dict(res[0])
    total = row["total"]
    done = (row.get("completed") or 0) + (row.get("skipped") or 0)
    row["batch_id"] = batch_id
    row["progress_percentage"] = round(done * 100.0 / total, 2) if total else 0.0
    row["is_completed"] = (row.get("pending") or 0) == 0 and (row.get("in_progress") or 0) == 0
    row["has_failures"] = (row.get("failed") or 0) > 0
    return row


def get_latest_batch_summary() -> Dict[str, Any]:
    batches = get_recent_batches(1)
    if not batches:
        return {}
    return get_batch_summary(batches[0])
