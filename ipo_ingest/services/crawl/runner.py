from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from ipo_ingest.services.settings_service import ConfigProvider

from .base import BatchOutcome
from .extractor import PageExtractor
from .sitemap import SitemapResolver, parse_record_url
from .transport import HttpTransport


def _print_json(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False))


def run_sitemap(args: argparse.Namespace, config) -> int:
    resolver = SitemapResolver(HttpTransport(), timeout_ms=config.fetch_timeout_ms)
    url = args.url or config.sitemap_url
    if args.min_id is not None or args.max_id is not None:
        lo = args.min_id if args.min_id is not None else 0
        hi = args.max_id if args.max_id is not None else sys.maxsize
        refs = resolver.resolve_range(url, lo, hi)
    else:
        refs = resolver.resolve(url, args.count if args.count is not None else config.window_size)
    for ref in refs:
        _print_json(ref.to_dict())
    return 0


def run_scrape(args: argparse.Namespace, config) -> int:
    ref = parse_record_url(args.url)
    if ref is None:
        print(f"Not an IPO page URL: {args.url}", file=sys.stderr)
        return 2
    extractor = PageExtractor(HttpTransport(), timeout_ms=config.fetch_timeout_ms)
    result = extractor.extract(
        ref,
        args.primary or config.primary_selector,
        args.secondary or config.secondary_selector,
        args.retries if args.retries is not None else config.max_retries,
        args.delay_ms if args.delay_ms is not None else config.base_delay_ms,
    )
    _print_json(result.to_dict())
    return 0 if result.success else 1


def run_batch(provider: ConfigProvider, storage) -> int:
    from .events import EventBus
    from .orchestrator import BatchOrchestrator

    events = EventBus()
    events.subscribe(
        on_progress=lambda e: print(f"[{e.current}/{e.total}] {e.item.slug}: {e.status.value}", file=sys.stderr),
        on_status=lambda e: print(f"[status] {e.status.value}: {e.message}", file=sys.stderr),
    )
    orchestrator = BatchOrchestrator(storage, provider, events=events)
    summary = orchestrator.run()
    if summary is None:
        return 1
    data = summary.to_dict()
    data.pop("items", None)
    _print_json(data)
    return 0 if summary.outcome is BatchOutcome.COMPLETED else 1


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="IPO sitemap scraping tasks")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sm = sub.add_parser("sitemap", help="List IPO pages found in the sitemap")
    sm.add_argument("--url", help="Sitemap URL (defaults to configuration)")
    sm.add_argument("--count", type=int, help="Number of latest IPOs (defaults to configuration)")
    sm.add_argument("--min-id", type=int, help="Lowest source id to include (range mode)")
    sm.add_argument("--max-id", type=int, help="Highest source id to include (range mode)")

    sc = sub.add_parser("scrape", help="Scrape a single IPO page and print the result")
    sc.add_argument("url", help="IPO page URL, e.g. https://www.ipopremium.in/view/ipo/1092/marc-technocrats-ltd")
    sc.add_argument("--primary", help="Primary class selector")
    sc.add_argument("--secondary", help="Secondary class selector")
    sc.add_argument("--retries", type=int, help="Retries after the first attempt")
    sc.add_argument("--delay-ms", type=int, help="Base retry delay in milliseconds")

    sub.add_parser("batch", help="Run one full scraping batch against Neo4j")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "batch":
        from ipo_ingest.services.graph_service import ensure_schema
        from ipo_ingest.services.storage import GraphStorage

        storage = GraphStorage()
        ensure_schema()
        provider = ConfigProvider(storage)
        return run_batch(provider, storage)

    config = ConfigProvider().get_batch_config()
    if args.cmd == "sitemap":
        return run_sitemap(args, config)
    if args.cmd == "scrape":
        return run_scrape(args, config)

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
