from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class ScrapeError(Exception):
    """Base class for scraping pipeline errors."""


class FetchError(ScrapeError):
    """Transport failure, timeout or non-2xx response."""

    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(ScrapeError):
    """Malformed sitemap XML."""


class ContentNotFoundError(ScrapeError):
    """Neither selector matched anything on the fetched page."""


class InvalidTransition(ScrapeError):
    pass


class ScrapeStatus(str, Enum):
    """Status shared by in-memory item state, persisted scrape logs and events."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (ScrapeStatus.PENDING, ScrapeStatus.IN_PROGRESS)


_ALLOWED_TRANSITIONS = {
    ScrapeStatus.PENDING: {
        ScrapeStatus.IN_PROGRESS,
        ScrapeStatus.SKIPPED,
        ScrapeStatus.CANCELLED,
    },
    ScrapeStatus.IN_PROGRESS: {
        ScrapeStatus.COMPLETED,
        ScrapeStatus.FAILED,
        ScrapeStatus.CANCELLED,
    },
}


class Category(str, Enum):
    SME = "SME"
    MAINBOARD = "Mainboard"


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class BatchOutcome(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    NO_ITEMS = "NoItems"


@dataclass(frozen=True, order=True)
class SourceReference:
    """One record discovered in the sitemap, e.g. /view/ipo/1092/marc-technocrats-ltd."""

    source_id: int
    slug: str = field(compare=False)
    url: str = field(compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtractionResult:
    source_id: int
    slug: str
    url: str
    outcome: Outcome
    name: str = ""
    fragment_primary: Optional[str] = None
    fragment_secondary: Optional[str] = None
    classification: Category = Category.MAINBOARD
    duration_ms: int = 0
    error_detail: Optional[str] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["outcome"] = self.outcome.value
        d["classification"] = self.classification.value
        return d


@dataclass
class ItemState:
    ref: SourceReference
    status: ScrapeStatus = ScrapeStatus.PENDING
    attempts: int = 0
    error_detail: Optional[str] = None
    log_id: Optional[str] = None
    record_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    def can_transition(self, status: ScrapeStatus) -> bool:
        return status is self.status or status in _ALLOWED_TRANSITIONS.get(self.status, set())

    def transition(self, status: ScrapeStatus, at: Optional[datetime] = None) -> None:
        if status is self.status:
            return
        if not self.can_transition(status):
            raise InvalidTransition(
                f"Item {self.ref.source_id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if status is ScrapeStatus.IN_PROGRESS:
            self.started_at = at or now_utc()
        elif status.is_terminal:
            self.completed_at = at or now_utc()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.ref.source_id,
            "slug": self.ref.slug,
            "url": self.ref.url,
            "status": self.status.value,
            "attempts": self.attempts,
            "error_detail": self.error_detail,
            "log_id": self.log_id,
            "record_id": self.record_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class BatchRun:
    batch_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    items: List[ItemState] = field(default_factory=list)
    started_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.completed_at is not None

    def finish(self) -> None:
        if self.completed_at is None:
            self.completed_at = now_utc()

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in ScrapeStatus}
        for item in self.items:
            out[item.status.value] += 1
        return out


@dataclass
class BatchRunSummary:
    batch_id: str
    outcome: BatchOutcome
    message: str
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0
    pending: int = 0
    elapsed_ms: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_item: Optional[SourceReference] = None
    error_detail: Optional[str] = None
    items: List[ItemState] = field(default_factory=list)

    @classmethod
    def from_run(
        cls,
        run: BatchRun,
        outcome: BatchOutcome,
        message: str,
        *,
        elapsed_ms: int,
        failed_item: Optional[SourceReference] = None,
        error_detail: Optional[str] = None,
    ) -> "BatchRunSummary":
        counts = run.counts()
        return cls(
            batch_id=run.batch_id,
            outcome=outcome,
            message=message,
            total=len(run.items),
            completed=counts[ScrapeStatus.COMPLETED.value],
            failed=counts[ScrapeStatus.FAILED.value],
            skipped=counts[ScrapeStatus.SKIPPED.value],
            cancelled=counts[ScrapeStatus.CANCELLED.value],
            pending=counts[ScrapeStatus.PENDING.value],
            elapsed_ms=elapsed_ms,
            started_at=run.started_at,
            completed_at=run.completed_at,
            failed_item=failed_item,
            error_detail=error_detail,
            items=list(run.items),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "outcome": self.outcome.value,
            "message": self.message,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "pending": self.pending,
            "elapsed_ms": self.elapsed_ms,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "failed_item": self.failed_item.to_dict() if self.failed_item else None,
            "error_detail": self.error_detail,
            "items": [i.to_dict() for i in self.items],
        }
