import logging
from typing import Optional

import requests

from index_notifier.config import Settings

logger = logging.getLogger(__name__)


class SitemapPinger:
    """Tells a search engine the sitemap changed. Best effort: never raises for HTTP problems."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        if not settings.ping_endpoint:
            raise ValueError("SitemapPinger needs a ping endpoint")
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.user_agent})

    def ping(self) -> bool:
        try:
            response = self.session.get(
                self.settings.ping_endpoint,
                params={"sitemap": self.settings.sitemap_url},
                timeout=self.settings.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Sitemap ping failed: {e}")
            return False

        if response.status_code == 200:
            logger.info(f"Sitemap pinged successfully: {self.settings.ping_endpoint}")
            return True
        logger.warning(f"Sitemap ping failed with status {response.status_code}")
        return False
