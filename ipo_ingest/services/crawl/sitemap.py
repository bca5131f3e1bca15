from __future__ import annotations

import logging
import re
import sys
import xml.etree.ElementTree as ET
from typing import List, Optional

from .base import ParseError, SourceReference
from .transport import HttpTransport

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

# /view/ipo/{id}/{slug}, e.g. https://www.ipopremium.in/view/ipo/1092/marc-technocrats-ltd
RECORD_URL_RE = re.compile(r"/view/ipo/([0-9]+)/([^/]+)")

UNBOUNDED = sys.maxsize


def parse_record_url(url: str) -> Optional[SourceReference]:
    """Return a SourceReference for a record URL, or None if it doesn't match the pattern."""
    m = RECORD_URL_RE.search(url or "")
    if not m:
        return None
    return SourceReference(source_id=int(m.group(1)), slug=m.group(2), url=url)


class SitemapResolver:
    """Turns the site's XML sitemap into an ordered list of record references."""

    def __init__(self, transport: Optional[HttpTransport] = None, *, timeout_ms: int = 30000) -> None:
        self.transport = transport or HttpTransport()
        self.timeout_ms = int(timeout_ms)

    def resolve(self, sitemap_url: str, window_size: int) -> List[SourceReference]:
        """Fetch the sitemap and return the `window_size` highest-ID references, ascending.

        FetchError and ParseError propagate to the caller; there is no retry here.
        """
        logger.info("Fetching sitemap from %s", sitemap_url)
        xml_text, _status = self.transport.fetch(sitemap_url, self.timeout_ms)
        refs = self.parse_sitemap(xml_text)
        logger.info("Found %d IPO URLs in sitemap", len(refs))

        window = int(window_size)
        if window <= 0:
            return []
        latest = refs[-window:]
        logger.info("Returning %d latest IPO URLs", len(latest))
        return latest

    def resolve_range(self, sitemap_url: str, min_id: int, max_id: int) -> List[SourceReference]:
        """All references with min_id <= source_id <= max_id, ascending, no windowing."""
        refs = self.resolve(sitemap_url, UNBOUNDED)
        return [r for r in refs if min_id <= r.source_id <= max_id]

    @staticmethod
    def parse_sitemap(xml_text: str) -> List[SourceReference]:
        """Parse sitemap XML into references sorted ascending by source_id.

        Entries whose <loc> doesn't match the record URL pattern are dropped
        silently. Duplicate ids are kept.
        """
        if not (xml_text or "").strip():
            return []
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            raise ParseError(f"Malformed sitemap XML: {exc}") from exc

        refs: List[SourceReference] = []
        for url_el in root.iter(f"{{{SITEMAP_NS}}}url"):
            loc = (url_el.findtext(f"{{{SITEMAP_NS}}}loc") or "").strip()
            if not loc:
                continue
            ref = parse_record_url(loc)
            if ref is None:
                logger.debug("Skipping non-record sitemap entry %s", loc)
                continue
            refs.append(ref)

        # sorted() is stable, so duplicate ids keep sitemap order
        return sorted(refs, key=lambda r: r.source_id)
