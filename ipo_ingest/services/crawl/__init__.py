"""IPO scraping pipeline.

Structure:
- base.py: core types (SourceReference, ExtractionResult, ItemState, BatchRun) and errors
- transport.py: httpx fetcher that turns every failure into FetchError
- sitemap.py: sitemap -> ordered SourceReference window (xml.etree)
- extractor.py: page fetch + class-selector fragments + SME/Mainboard classification (selectolax)
- events.py: progress/status observers
- orchestrator.py: fail-fast batch state machine
- scheduler.py: optional periodic batches
- runner.py: small CLI entrypoint for manual runs
"""

__all__ = [
    "base",
    "orchestrator",
]
