"""
1.0 Delta Tracker Module
Remembers the newest URL that was successfully sent and works out which
sitemap URLs are new on the next run.

State file layout (overwritten wholesale, never appended to):
    {
      "lastUpdated": "2025-01-01T12:00:00+00:00",
      "lastSentUrl": "https://example.com/newest-post"
    }

The sitemap is assumed to list the newest entries first and never to drop or
reorder entries between runs.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

# 1.1 Key names in the persisted marker
KEY_LAST_UPDATED = "lastUpdated"
KEY_LAST_SENT_URL = "lastSentUrl"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeltaTracker:
    """
    2.0 DeltaTracker Class
    Loads/saves the single last-sent marker and computes the per-run delta.
    """

    def __init__(
        self,
        state_file: str,
        max_urls_per_run: int = 10,
        first_run_limit: int = 5,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        2.1 Initialize the tracker.

        Args:
            state_file: Path of the JSON marker file
            max_urls_per_run: Cap applied to every delta
            first_run_limit: How many of the newest URLs to send when no marker exists
            clock: Returns the timestamp written to lastUpdated
        """
        self.state_file = state_file
        self.max_urls_per_run = max_urls_per_run
        self.first_run_limit = first_run_limit
        self._clock = clock

    # =========================================================================
    # 3.0 MARKER PERSISTENCE
    # =========================================================================

    def load(self) -> Optional[str]:
        """
        3.1 Read the last sent URL.

        A missing, unreadable or corrupt file counts as "no prior run" and
        never fails the run.
        """
        if not os.path.exists(self.state_file):
            logger.info(f"No marker file at {self.state_file} (first run).")
            return None

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read marker file {self.state_file}: {e}. Treating as first run.")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Marker file {self.state_file} is not a JSON object. Treating as first run.")
            return None

        last_sent_url = data.get(KEY_LAST_SENT_URL)
        if not isinstance(last_sent_url, str) or not last_sent_url:
            logger.warning(f"Marker file {self.state_file} has no '{KEY_LAST_SENT_URL}'. Treating as first run.")
            return None

        logger.info(f"Last sent URL: {last_sent_url} (updated {data.get(KEY_LAST_UPDATED, 'unknown')})")
        return last_sent_url

    def save(self, url: str) -> None:
        """
        3.2 Overwrite the marker with the newest URL of the dispatched batch.

        Written to a temporary sibling file first, then moved into place.
        Errors propagate.
        """
        payload = {
            KEY_LAST_UPDATED: self._clock().isoformat(),
            KEY_LAST_SENT_URL: url,
        }
        directory = os.path.dirname(os.path.abspath(self.state_file))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".marker-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.state_file)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"Saved last sent URL: {url}")

    # =========================================================================
    # 4.0 DELTA COMPUTATION
    # =========================================================================

    def compute_delta(self, snapshot: Sequence[str], marker: Optional[str]) -> List[str]:
        """
        4.1 Select the URLs that are new since the marker.

        - No marker: the first `first_run_limit` entries
        - Marker found at position k: entries [0, k)
        - Marker not in the sitemap: the whole sitemap

        The result is then capped at `max_urls_per_run`, keeping order.
        """
        if marker is None:
            new_urls = list(snapshot[:self.first_run_limit])
            logger.info(f"No marker: taking the {len(new_urls)} newest URL(s).")
        else:
            new_urls = []
            for url in snapshot:
                if url == marker:
                    break
                new_urls.append(url)
            else:
                logger.warning(
                    f"Marker {marker} not found in sitemap; treating all {len(new_urls)} URL(s) as new."
                )

        if len(new_urls) > self.max_urls_per_run:
            logger.info(
                f"Capping {len(new_urls)} new URL(s) to {self.max_urls_per_run} for this run."
            )
            new_urls = new_urls[:self.max_urls_per_run]
        return new_urls
