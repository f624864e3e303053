"""
1.0 Main Orchestrator Module
Runs one notification pass: fetch sitemap -> compute delta -> Google ->
IndexNow -> persist marker -> ping.

Key features:
- Strictly sequential, one attempt per URL per run
- A Google rate limit stops Google only; IndexNow still gets the whole batch
- The marker is written only when Google accepted at least one URL
- Exit code 0 for normal and no-op runs, 1 for configuration errors and
  anything unexpected
"""

import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from index_notifier.config import CONFIG_FILE_PATH, Settings, load_settings
from index_notifier.delta_tracker import DeltaTracker
from index_notifier.exceptions import ConfigError
from index_notifier.google_indexing import GoogleIndexingClient
from index_notifier.indexnow import IndexNowClient
from index_notifier.outcomes import SubmitOutcome
from index_notifier.pinger import SitemapPinger
from index_notifier.sitemap_fetcher import SitemapFetcher
from index_notifier.sitemap_parser import SitemapParser

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class RunState(Enum):
    FETCHING_SITEMAP = "fetching_sitemap"
    COMPUTING_DELTA = "computing_delta"
    DISPATCHING_GOOGLE = "dispatching_google"
    DISPATCHING_INDEXNOW = "dispatching_indexnow"
    PERSISTING_MARKER = "persisting_marker"
    PINGING = "pinging"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunResult:
    state: RunState = RunState.FETCHING_SITEMAP
    batch: List[str] = field(default_factory=list)
    google_success_count: int = 0
    indexnow_outcome: Optional[SubmitOutcome] = None
    saved_marker: Optional[str] = None
    pinged: bool = False
    message: str = ""


@dataclass
class Components:
    """Collaborators of a run. indexnow/pinger are None when disabled by configuration."""

    fetcher: SitemapFetcher
    parser: SitemapParser
    tracker: DeltaTracker
    google: GoogleIndexingClient
    indexnow: Optional[IndexNowClient] = None
    pinger: Optional[SitemapPinger] = None


def build_components(settings: Settings) -> Components:
    """2.0 Wire the real components from the settings."""
    return Components(
        fetcher=SitemapFetcher(settings),
        parser=SitemapParser(),
        tracker=DeltaTracker(
            settings.state_file,
            max_urls_per_run=settings.max_urls_per_run,
            first_run_limit=settings.first_run_limit,
        ),
        google=GoogleIndexingClient(settings),
        indexnow=IndexNowClient(settings) if settings.indexnow_key else None,
        pinger=SitemapPinger(settings) if settings.ping_endpoint else None,
    )


def dispatch_to_google(google: GoogleIndexingClient, batch: Sequence[str]) -> int:
    """
    3.0 Send the batch to Google one URL at a time, in order.

    Stops at the first RATE_LIMITED; OTHER_ERROR URLs are skipped. An
    unexpected exception ends the Google pass without failing the run.

    Returns:
        Number of URLs Google accepted
    """
    success_count = 0
    try:
        for position, url in enumerate(batch):
            outcome = google.submit_one(url)
            if outcome is SubmitOutcome.DELIVERED:
                success_count += 1
            elif outcome is SubmitOutcome.RATE_LIMITED:
                remaining = len(batch) - position
                logger.warning(
                    f"Google submissions stopped by rate limit. "
                    f"{remaining} URL(s) left for the next run."
                )
                break
    except Exception:
        logger.exception("Unexpected error while submitting to Google")

    logger.info(f"Google: {success_count}/{len(batch)} URL(s) accepted")
    return success_count


def dispatch_to_indexnow(indexnow: IndexNowClient, batch: Sequence[str]) -> SubmitOutcome:
    """3.1 Send the whole batch to IndexNow. Never raises."""
    try:
        return indexnow.submit_batch(batch)
    except Exception:
        logger.exception("Unexpected error while submitting to IndexNow")
        return SubmitOutcome.OTHER_ERROR


def run_once(settings: Settings, components: Components) -> RunResult:
    """
    4.0 Execute a single run.

    Sitemap fetch/parse errors and credential errors propagate to the caller.
    API-level failures are contained and only show up in the logs, in the
    returned RunResult and in whether the marker is written.
    """
    result = RunResult()

    # 4.1 Fetch the sitemap
    result.state = RunState.FETCHING_SITEMAP
    xml_content = components.fetcher.fetch_sitemap_xml(settings.sitemap_url)
    urls = components.parser.parse_sitemap(xml_content, sitemap_url=settings.sitemap_url)
    if not urls:
        result.state = RunState.ABORTED
        result.message = "No URLs found in sitemap"
        logger.warning(result.message)
        return result
    logger.info(f"Total URLs in sitemap: {len(urls)}")

    # 4.2 Work out what is new
    result.state = RunState.COMPUTING_DELTA
    marker = components.tracker.load()
    batch = components.tracker.compute_delta(urls, marker)
    if not batch:
        result.state = RunState.ABORTED
        result.message = "No new URLs to send"
        logger.info(result.message)
        return result
    result.batch = batch
    logger.info(f"Sending {len(batch)} new URL(s)")

    # 4.3 Google (credentials are exchanged once, here)
    result.state = RunState.DISPATCHING_GOOGLE
    components.google.authorize()
    result.google_success_count = dispatch_to_google(components.google, batch)

    # 4.4 IndexNow always gets the full batch, whatever Google did
    result.state = RunState.DISPATCHING_INDEXNOW
    if components.indexnow is not None:
        result.indexnow_outcome = dispatch_to_indexnow(components.indexnow, batch)
    else:
        logger.info("IndexNow disabled (no key configured). Skipping.")

    # 4.5 Only Google successes move the marker, and always to the newest URL
    result.state = RunState.PERSISTING_MARKER
    if result.google_success_count > 0:
        components.tracker.save(batch[0])
        result.saved_marker = batch[0]
    else:
        logger.warning("No URL accepted by Google. Marker left unchanged; the same URLs will be retried next run.")

    # 4.6 Best-effort ping
    result.state = RunState.PINGING
    if components.pinger is not None:
        result.pinged = components.pinger.ping()

    result.state = RunState.DONE
    result.message = "Run completed"
    return result


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """5.0 Root logging: console always, plus a log file when configured."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Notify Google Indexing API and IndexNow about new sitemap URLs"
    )
    parser.add_argument(
        "--config", "-c",
        default=CONFIG_FILE_PATH,
        help=f"Path to the JSON config file (default: {CONFIG_FILE_PATH})"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    6.0 Entry point. Returns the process exit code.
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    logger.info("=" * 60)
    logger.info("Starting sitemap indexing run")
    logger.info(f"Run timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if settings.log_file:
        try:
            configure_logging(args.verbose, settings.log_file)
        except OSError as e:
            logger.error(f"Cannot open log file {settings.log_file}: {e}")
            return 1

    try:
        result = run_once(settings, build_components(settings))
    except Exception as e:
        logger.exception(f"Fatal error: {type(e).__name__}: {e}")
        return 1

    logger.info("=" * 60)
    if result.state is RunState.ABORTED:
        logger.info(f"Run finished without sending anything: {result.message}")
    else:
        indexnow = result.indexnow_outcome.value if result.indexnow_outcome else "skipped"
        logger.info(
            f"Run summary: batch={len(result.batch)}, "
            f"google_accepted={result.google_success_count}, "
            f"indexnow={indexnow}, "
            f"marker={result.saved_marker or 'unchanged'}, "
            f"pinged={result.pinged}"
        )
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    import sys

    sys.exit(main())
