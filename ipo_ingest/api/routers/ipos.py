from typing import Optional

from fastapi import APIRouter, HTTPException

from ipo_ingest.models.scraping import IpoDetail, IpoList
from ipo_ingest.services.graph_service import deactivate_ipo, get_category_stats, get_ipo, list_ipos, search_ipos

router = APIRouter(prefix="/api/ipos", tags=["ipos"])

CATEGORIES = {"sme": "SME", "mainboard": "Mainboard"}


@router.get("", response_model=IpoList)
def api_list_ipos(category: Optional[str] = None, limit: int = 100):
    cat = None
    if category:
        cat = CATEGORIES.get(category.lower())
        if cat is None:
            raise HTTPException(status_code=400, detail="category must be SME or Mainboard")
    items = list_ipos(cat, max(1, min(limit, 500)))
    return {"count": len(items), "items": items}


@router.get("/stats")
def api_ipo_stats():
    stats = get_category_stats()
    return {"total": sum(stats.values()), "by_category": stats}


@router.get("/search", response_model=IpoList)
def api_search_ipos(q: str, limit: int = 20):
    items = search_ipos(q.strip(), max(1, min(limit, 100)))
    return {"count": len(items), "items": items}


@router.get("/{ipo_id}", response_model=IpoDetail)
def api_get_ipo(ipo_id: str):
    ipo = get_ipo(ipo_id)
    if not ipo:
        raise HTTPException(status_code=404, detail="IPO not found")
    return ipo


@router.delete("/{ipo_id}")
def api_delete_ipo(ipo_id: str):
    if not deactivate_ipo(ipo_id):
        raise HTTPException(status_code=404, detail="IPO not found")
    return {"message": "IPO deactivated", "id": ipo_id}
