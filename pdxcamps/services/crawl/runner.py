from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any, Dict, List, Optional

from .importer_adapter import import_sessions_jsonl, validate_sessions_jsonl
from .pipeline import write_jsonl
from .spiders.jsonld_spider import JsonLdEventSpider
from .spiders.selector_spider import SelectorSessionSpider

logger = logging.getLogger(__name__)

DEFAULT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))
DEFAULT_OUT_DIR = os.path.join(DEFAULT_ROOT, "data", "scraped", "sessions")


def configure_logging() -> None:
    level = os.getenv("PDX_CAMPS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load_extraction(path: str) -> Dict[str, Any]:
    """Read a scraper config file; either a whole config or just its session_extraction block."""
    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)
    return config.get("session_extraction") or config


def run_scrape(
    *,
    spider_kind: str,
    url: Optional[str],
    file: Optional[str],
    config_path: Optional[str],
    source_site: str,
    out_dir: str,
) -> str:
    if spider_kind == "selector":
        if not config_path:
            raise ValueError("--config is required for the selector spider")
        spider = SelectorSessionSpider(_load_extraction(config_path), source_site=source_site)
    else:
        spider = JsonLdEventSpider(source_site=source_site)

    if url:
        records: List[Dict[str, Any]] = spider.fetch(url)
    else:
        with open(file, "r", encoding="utf-8") as f:
            html = f.read()
        records = spider.parse_html(html=html, source_url=file)
    return write_jsonl(records, out_dir=out_dir, filename_prefix=f"sessions-{source_site}")


def _print(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Camp scraping and maintenance tasks")
    sub = parser.add_subparsers(dest="cmd", required=True)

    scrape = sub.add_parser("scrape", help="Parse a camp listing page into sessions JSONL")
    src = scrape.add_mutually_exclusive_group(required=True)
    src.add_argument("--url", help="Listing page URL to fetch")
    src.add_argument("--file", help="Local HTML file path")
    scrape.add_argument("--spider", choices=("selector", "jsonld"), default="selector")
    scrape.add_argument("--config", help="JSON scraper config (selector spider)")
    scrape.add_argument("--source-site", default="camp_site", help="Label stored in meta_source_site")
    scrape.add_argument("--out-dir", default=DEFAULT_OUT_DIR, help="Output directory for JSONL files")

    validate = sub.add_parser("validate", help="Report completeness of staged sessions")
    validate.add_argument("jsonl", help="Sessions JSONL produced by 'scrape'")

    imp = sub.add_parser("import", help="Import staged sessions for a scrape source")
    imp.add_argument("jsonl", help="Sessions JSONL produced by 'scrape'")
    imp.add_argument("--source-id", required=True, help="ScrapeSource id the sessions belong to")

    cat = sub.add_parser("categorize", help="Categorize uncategorized camps with the LLM")
    cat.add_argument("--batch-size", type=int, default=50)
    cat.add_argument("--delay-ms", type=int, default=1000)
    cat.add_argument("--max-batches", type=int, default=None)

    dd = sub.add_parser("dedupe-sessions", help="Merge duplicate sessions")
    dd.add_argument("--city-id", default=None)
    dd.add_argument("--limit", type=int, default=1000)
    dd.add_argument("--apply", action="store_true", help="Write changes (default is a dry run)")

    geo = sub.add_parser("geocode", help="Geocode locations that still have placeholder coordinates")
    geo.add_argument("--limit", type=int, default=50)

    img = sub.add_parser("images", help="Generate photos for camps that have no images")
    img.add_argument("--limit", type=int, default=10)
    img.add_argument("--delay-ms", type=int, default=2000)

    args = parser.parse_args(argv)
    configure_logging()

    if args.cmd == "scrape":
        path = run_scrape(
            spider_kind=args.spider,
            url=args.url,
            file=args.file,
            config_path=args.config,
            source_site=args.source_site,
            out_dir=args.out_dir,
        )
        print(path)
        return 0

    if args.cmd == "validate":
        _print(validate_sessions_jsonl(args.jsonl))
        return 0

    # Remaining commands talk to the database (and, for categorize and images, the LLM).
    from pdxcamps.db.neo4j_connector import close_driver

    try:
        if args.cmd == "import":
            summary = import_sessions_jsonl(args.jsonl, args.source_id)
            _print(summary)
            return 0 if summary.get("success") else 1

        if args.cmd == "categorize":
            from pdxcamps.services.categorize_service import run_categorization
            _print(run_categorization(args.batch_size, args.delay_ms, args.max_batches))
            return 0

        if args.cmd == "dedupe-sessions":
            from pdxcamps.services.cleanup.sessions import merge_duplicate_sessions
            _print(merge_duplicate_sessions(dry_run=not args.apply, city_id=args.city_id, limit=args.limit))
            return 0

        if args.cmd == "geocode":
            from pdxcamps.services.cleanup.locations import batch_geocode_locations
            _print(batch_geocode_locations(limit=args.limit))
            return 0

        if args.cmd == "images":
            from pdxcamps.services.image_service import backfill_camp_images
            summary = backfill_camp_images(args.limit, args.delay_ms)
            _print(summary)
            return 1 if summary["stopped_early"] else 0
    finally:
        close_driver()

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
