"""
Sitemap Index Notifier - Source Package

Modules:
- config: Configuration loading and validation
- sitemap_fetcher: HTTP fetching of the sitemap document
- sitemap_parser: XML parsing of the urlset into an ordered URL list
- delta_tracker: Last-sent marker persistence and new-URL delta
- google_indexing: Google Indexing API backend
- indexnow: IndexNow backend
- pinger: Best-effort sitemap ping
- main: Run orchestration and CLI entry point
"""

__version__ = "1.0.0"
