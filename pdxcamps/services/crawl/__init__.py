"""Camp-page crawling subsystem.

Structure:
- base.py: record types and hashing utilities
- pipeline.py: dedupe + JSONL staging writer/reader
- spiders/: page parsers (CSS-selector driven listings, schema.org JSON-LD events)
- importer_adapter.py: validate staged sessions and import them as a scrape job
- runner.py: CLI entrypoint for manual and scheduled runs

Pages are fetched with httpx and parsed with selectolax. Sites that need a
browser are out of scope; save their HTML and feed it via ``--file``.
"""

__all__ = [
    "base",
    "pipeline",
    "importer_adapter",
    "runner",
]
