from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterator, List, Optional

from selectolax.parser import HTMLParser, Node

from .base import (
    Category,
    ContentNotFoundError,
    ExtractionResult,
    Outcome,
    SourceReference,
    monotonic_ms,
)
from .transport import HttpTransport

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_SELECTOR = "card card-primary card-outline"
DEFAULT_SECONDARY_SELECTOR = "col-md-8 order-1"

_SME_RE = re.compile(r"\bsme\b")
_MAINBOARD_RE = re.compile(r"\bmainboard\b")
_TITLE_SPLIT_RE = re.compile(r"IPO|\||-")

# Applied after the slug has been upper-cased.
SLUG_ACRONYMS = {
    "LTD": "Ltd",
    "PVT": "Pvt",
}


def _class_tokens(node: Node) -> set:
    attrs = node.attributes or {}
    return set((attrs.get("class") or "").split())


def _walk(doc: HTMLParser) -> Iterator[Node]:
    root = doc.root
    if root is None:
        return iter(())
    return root.traverse(include_text=False)


def find_by_class(doc: HTMLParser, selector: str) -> Optional[Node]:
    """Find the first element (document order) matching a class selector like "col-md-8 order-1".

    An element carrying every token wins; otherwise fall back token by token to the
    first element carrying that single class.
    """
    tokens: List[str] = (selector or "").split()
    if not tokens:
        return None
    wanted = set(tokens)
    for node in _walk(doc):
        if wanted <= _class_tokens(node):
            return node
    for token in tokens:
        for node in _walk(doc):
            if token in _class_tokens(node):
                return node
    return None


def extract_fragment(doc: HTMLParser, selector: str) -> Optional[str]:
    node = find_by_class(doc, selector)
    if node is None:
        logger.debug("Element with class '%s' not found", selector)
        return None
    return node.html


def classify(body: str, fragment_primary: Optional[str], fragment_secondary: Optional[str]) -> Category:
    """SME vs Mainboard by word frequency; ties and zero counts go to Mainboard."""
    combined = f"{body} {fragment_primary or ''} {fragment_secondary or ''}".lower()
    sme = len(_SME_RE.findall(combined))
    mainboard = len(_MAINBOARD_RE.findall(combined))
    logger.debug("SME matches: %d, Mainboard matches: %d", sme, mainboard)
    if sme > mainboard and sme > 0:
        return Category.SME
    return Category.MAINBOARD


def slug_to_name(slug: str) -> str:
    name = " ".join(part for part in (slug or "").split("-") if part).upper()
    for acronym, replacement in SLUG_ACRONYMS.items():
        name = re.sub(rf"\b{acronym}\b", replacement, name)
    return name


def derive_name(doc: HTMLParser, slug: str) -> str:
    """Company name from <title>, then the first <h1>, then the slug."""
    title = doc.css_first("title")
    if title is not None:
        for part in _TITLE_SPLIT_RE.split(title.text() or ""):
            if part.strip():
                return part.strip()
    h1 = doc.css_first("h1")
    if h1 is not None:
        text = h1.text(strip=True)
        if text:
            return text
    return slug_to_name(slug)


class PageExtractor:
    """Fetch one IPO page and pull the configured fragments out of it, with retries."""

    def __init__(
        self,
        transport: Optional[HttpTransport] = None,
        *,
        timeout_ms: int = 30000,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport or HttpTransport()
        self.timeout_ms = int(timeout_ms)
        self.sleep = sleep

    def extract(
        self,
        ref: SourceReference,
        primary_selector: str = DEFAULT_PRIMARY_SELECTOR,
        secondary_selector: str = DEFAULT_SECONDARY_SELECTOR,
        max_retries: int = 3,
        base_delay_ms: int = 2000,
    ) -> ExtractionResult:
        """Run up to max_retries + 1 attempts. Never raises; check result.outcome."""
        started = monotonic_ms()
        max_attempts = max(int(max_retries), 0) + 1
        last_error: Optional[str] = None

        for attempt in range(max_attempts):
            if attempt > 0:
                logger.info("Retry attempt %d for %s", attempt, ref.url)
                self.sleep(base_delay_ms * attempt / 1000.0)
            try:
                logger.info("Scraping IPO %d from %s", ref.source_id, ref.url)
                return self._attempt(ref, primary_selector, secondary_selector, attempt + 1, started)
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Error scraping IPO %d (attempt %d/%d): %s",
                    ref.source_id, attempt + 1, max_attempts, last_error,
                )

        return ExtractionResult(
            source_id=ref.source_id,
            slug=ref.slug,
            url=ref.url,
            outcome=Outcome.FAILURE,
            error_detail=last_error or "Unknown error",
            duration_ms=monotonic_ms() - started,
            attempts=max_attempts,
        )

    def _attempt(
        self,
        ref: SourceReference,
        primary_selector: str,
        secondary_selector: str,
        attempt_no: int,
        started: int,
    ) -> ExtractionResult:
        body, _status = self.transport.fetch(ref.url, self.timeout_ms)
        doc = HTMLParser(body)

        primary = extract_fragment(doc, primary_selector)
        secondary = extract_fragment(doc, secondary_selector)
        if not primary and not secondary:
            raise ContentNotFoundError(
                f"No content found with classes '{primary_selector}' or '{secondary_selector}'"
            )

        return ExtractionResult(
            source_id=ref.source_id,
            slug=ref.slug,
            url=ref.url,
            outcome=Outcome.SUCCESS,
            name=derive_name(doc, ref.slug),
            fragment_primary=primary,
            fragment_secondary=secondary,
            classification=classify(body, primary, secondary),
            duration_ms=monotonic_ms() - started,
            attempts=attempt_no,
        )
