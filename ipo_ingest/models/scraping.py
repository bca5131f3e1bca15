from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class ConfigUpdate(BaseModel):
    value: str = Field(..., description="New configuration value (stored as text)")


class ConfigEntry(BaseModel):
    key: str
    value: Optional[str]
    source: str = Field(..., description="Layer the value came from: default, env or stored")
    description: Optional[str] = None
    data_type: str = "string"
    category: str = "Scraping"


class ScrapingActionResponse(BaseModel):
    message: str
    timestamp: str


class ScrapingStatusResponse(BaseModel):
    is_running: bool
    current_batch: Optional[Dict[str, Any]] = Field(
        default=None, description="Latest persisted batch summary"
    )
    last_run: Optional[Dict[str, Any]] = Field(
        default=None, description="Summary of the last run finished by this process"
    )
    timestamp: str


class BatchSummaryOut(BaseModel):
    batch_id: str
    total: int
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0
    pending: int = 0
    in_progress: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    progress_percentage: float = 0.0
    is_completed: bool = False
    has_failures: bool = False


class IpoSummary(BaseModel):
    id: str
    name: Optional[str]
    category: Optional[str]
    scraped_at: Optional[str] = None
    premium_id: Optional[int] = None
    slug: Optional[str] = None
    source_url: Optional[str] = None


class IpoDetail(IpoSummary):
    card_html: Optional[str] = None
    content_html: Optional[str] = None
    created_at: Optional[str] = None
    is_active: Optional[bool] = None


class IpoList(BaseModel):
    count: int
    items: List[IpoSummary]
