import logging
from typing import Optional, Sequence

import requests

from index_notifier.config import Settings
from index_notifier.outcomes import SubmitOutcome

logger = logging.getLogger(__name__)

# 400: bad request, 422: URLs don't belong to the host or the key doesn't match
MALFORMED_STATUS_CODES = (400, 422)


class IndexNowClient:
    """Submits a whole batch of URLs to IndexNow in one request."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        if not settings.indexnow_key:
            raise ValueError("IndexNowClient needs an IndexNow key")
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.user_agent})

    def build_payload(self, urls: Sequence[str]) -> dict:
        payload = {
            "host": self.settings.resolved_indexnow_host,
            "key": self.settings.indexnow_key,
            "urlList": list(urls),
        }
        if self.settings.indexnow_key_location:
            payload["keyLocation"] = self.settings.indexnow_key_location
        return payload

    def submit_batch(self, urls: Sequence[str]) -> SubmitOutcome:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        try:
            response = self.session.post(
                self.settings.indexnow_endpoint,
                json=self.build_payload(urls),
                headers=headers,
                timeout=self.settings.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"IndexNow: request error: {e}")
            return SubmitOutcome.OTHER_ERROR

        if response.status_code in (200, 202):
            logger.info(f"IndexNow: {len(urls)} URL(s) submitted (status={response.status_code})")
            return SubmitOutcome.DELIVERED
        if response.status_code == 429:
            logger.warning("IndexNow: rate limit reached (429).")
            return SubmitOutcome.RATE_LIMITED
        if response.status_code in MALFORMED_STATUS_CODES:
            logger.error(
                f"IndexNow: error {response.status_code} - check host, key or URL format. "
                f"Response: {response.text}"
            )
            return SubmitOutcome.MALFORMED_REQUEST

        logger.error(f"IndexNow: error {response.status_code}: {response.text}")
        return SubmitOutcome.OTHER_ERROR
