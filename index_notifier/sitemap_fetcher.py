"""
1.0 Sitemap Fetcher Module
Fetches the XML sitemap document for a run.

Key features:
- Exactly one attempt per run, no retries or backoff; recovery happens on
  the next scheduled run
- Optional timeout, otherwise the HTTP client default applies
- Any failure raises SitemapFetchError so the run exits non-zero
"""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from index_notifier.config import Settings
from index_notifier.exceptions import SitemapFetchError

logger = logging.getLogger(__name__)

# Same as the requests default, pinned so nothing can turn on in-run retries
NO_RETRIES = Retry(total=0, read=False)


class SitemapFetcher:
    """
    2.0 SitemapFetcher Class
    Fetches sitemap XML content through a shared requests Session.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        """
        2.1 Initialize the SitemapFetcher.

        Args:
            settings: Run settings (user_agent and timeout are used)
            session: Optional pre-built session, mainly for tests
        """
        self.user_agent = settings.user_agent
        self.timeout = settings.timeout
        self.session = session or self._create_session()

        logger.info(
            f"SitemapFetcher initialized: "
            f"User-Agent={self.user_agent[:50]}, "
            f"timeout={self.timeout or 'default'}"
        )

    def _create_session(self) -> requests.Session:
        """
        2.2 Create a requests Session.

        The adapter never retries: a failed fetch fails the run and the next
        scheduled run tries again.

        Returns:
            Configured requests.Session object
        """
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=NO_RETRIES)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.user_agent})
        return session

    def fetch_sitemap_xml(self, sitemap_url: str) -> bytes:
        """
        2.3 Fetch the raw XML content of a sitemap URL.

        Bytes are returned untouched so the parser can honour the document's
        own encoding declaration.

        Raises:
            SitemapFetchError: on transport errors or a non-200 response
        """
        logger.info(f"Fetching sitemap: {sitemap_url}")

        try:
            response = self.session.get(sitemap_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SitemapFetchError(f"Request error fetching {sitemap_url}: {e}") from e

        if response.status_code != 200:
            raise SitemapFetchError(
                f"Failed to fetch {sitemap_url}: status={response.status_code}"
            )

        logger.info(
            f"Successfully fetched {sitemap_url} "
            f"(status={response.status_code}, size={len(response.content):,} bytes)"
        )
        return response.content
