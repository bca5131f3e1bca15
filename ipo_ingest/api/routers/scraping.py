import time
from typing import List

from fastapi import APIRouter, HTTPException

from ipo_ingest.models.scraping import BatchSummaryOut, ScrapingActionResponse, ScrapingStatusResponse
from ipo_ingest.services.scraping_service import get_orchestrator, get_recent_events, get_storage

router = APIRouter(prefix="/api/scraping", tags=["scraping"])


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@router.post("/start", status_code=202, response_model=ScrapingActionResponse)
def api_start_scraping():
    orchestrator = get_orchestrator()
    if not orchestrator.start():
        raise HTTPException(status_code=409, detail="Scraping is already running")
    return {"message": "Scraping started successfully", "timestamp": _now_iso()}


@router.post("/stop", response_model=ScrapingActionResponse)
def api_stop_scraping():
    orchestrator = get_orchestrator()
    if not orchestrator.stop():
        raise HTTPException(status_code=409, detail="Scraping is not running")
    return {"message": "Scraping stop requested", "timestamp": _now_iso()}


@router.get("/status", response_model=ScrapingStatusResponse)
def api_scraping_status():
    orchestrator = get_orchestrator()
    try:
        current = get_storage().get_latest_batch_summary() or None
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error getting status: {exc}")
    last = orchestrator.last_summary.to_dict() if orchestrator.last_summary else None
    if last:
        last.pop("items", None)
    return {
        "is_running": orchestrator.is_running(),
        "current_batch": current,
        "last_run": last,
        "timestamp": _now_iso(),
    }


@router.get("/history", response_model=List[BatchSummaryOut])
def api_scraping_history(count: int = 10):
    try:
        return get_storage().get_batch_history(max(1, min(count, 100)))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error getting history: {exc}")


@router.get("/batch/{batch_id}/logs")
def api_batch_logs(batch_id: str):
    try:
        logs = get_storage().get_batch_logs(batch_id)
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error getting batch logs: {exc}")
    if not logs:
        raise HTTPException(status_code=404, detail="Batch not found")
    return logs


@router.get("/events")
def api_recent_events(limit: int = 50):
    items = get_recent_events().latest(max(1, min(limit, 200)))
    return {"count": len(items), "items": items}
