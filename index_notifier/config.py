import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Any, Mapping
from urllib.parse import urlparse

from index_notifier.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_PATH = "config.json"

# Environment variables holding secrets (never read from config.json)
ENV_SITEMAP_URL = "SITEMAP_URL"
ENV_INDEXNOW_KEY = "INDEXNOW_KEY"
ENV_GSA_CLIENT_EMAIL = "GSA_CLIENT_EMAIL"
ENV_GSA_PRIVATE_KEY = "GSA_PRIVATE_KEY"

DEFAULT_CONFIG: Dict[str, Any] = {
    "sitemap_url": None,
    "indexnow_host": None,
    "indexnow_endpoint": "https://api.indexnow.org/indexnow",
    "indexnow_key_location": None,
    "state_file": ".last_sent.json",
    "max_urls_per_run": 10,
    "first_run_limit": 5,
    "ping_endpoint": "https://www.google.com/ping",
    "user_agent": "SitemapIndexNotifier/1.0",
    "timeout": None,
    "log_file": "indexing_run.log",
}


@dataclass(frozen=True)
class Settings:
    """Everything a run needs, built once at startup and passed to each component."""

    sitemap_url: str
    google_client_email: str
    google_private_key: str = field(repr=False)
    indexnow_key: Optional[str] = field(default=None, repr=False)
    indexnow_host: Optional[str] = None
    indexnow_endpoint: str = DEFAULT_CONFIG["indexnow_endpoint"]
    indexnow_key_location: Optional[str] = None
    state_file: str = DEFAULT_CONFIG["state_file"]
    max_urls_per_run: int = DEFAULT_CONFIG["max_urls_per_run"]
    first_run_limit: int = DEFAULT_CONFIG["first_run_limit"]
    ping_endpoint: Optional[str] = DEFAULT_CONFIG["ping_endpoint"]
    user_agent: str = DEFAULT_CONFIG["user_agent"]
    timeout: Optional[float] = None
    log_file: Optional[str] = DEFAULT_CONFIG["log_file"]

    @property
    def resolved_indexnow_host(self) -> str:
        """The configured IndexNow host, falling back to the sitemap's host."""
        return self.indexnow_host or urlparse(self.sitemap_url).netloc


def load_config(path: str = CONFIG_FILE_PATH) -> Dict[str, Any]:
    """Loads config.json merged over the defaults. A missing file means all defaults."""
    config = dict(DEFAULT_CONFIG)
    if not os.path.exists(path):
        logger.warning(f"Configuration file not found: {path}. Using defaults.")
        return config
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error decoding JSON from {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read configuration file {path}: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigError(f"Configuration in {path} must be a JSON object.")

    unknown = sorted(set(config_data) - set(DEFAULT_CONFIG))
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {unknown}")
    config.update({k: v for k, v in config_data.items() if k in DEFAULT_CONFIG})
    logger.info(f"Successfully loaded configuration from {path}")
    return config


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> bool:
    """Validates the structure and content of the configuration."""
    valid = True

    if not _is_non_empty_str(config.get("sitemap_url")):
        logger.error(
            f"'sitemap_url' is missing. Set it in {CONFIG_FILE_PATH} "
            f"or the {ENV_SITEMAP_URL} environment variable."
        )
        valid = False
    elif not config["sitemap_url"].startswith(("http://", "https://")):
        logger.error(f"'sitemap_url' must be an http(s) URL: {config['sitemap_url']}")
        valid = False

    for key in ("max_urls_per_run", "first_run_limit"):
        if not _is_positive_int(config.get(key)):
            logger.error(f"'{key}' must be a positive integer, got {config.get(key)!r}.")
            valid = False

    timeout = config.get("timeout")
    if timeout is not None and (
        not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0
    ):
        logger.error(f"'timeout' must be a positive number or null, got {timeout!r}.")
        valid = False

    for key in ("indexnow_endpoint", "user_agent", "state_file"):
        if not _is_non_empty_str(config.get(key)):
            logger.error(f"'{key}' must be a non-empty string.")
            valid = False

    for key in ("indexnow_host", "indexnow_key_location", "ping_endpoint", "log_file"):
        value = config.get(key)
        if value is not None and not _is_non_empty_str(value):
            logger.error(f"'{key}' must be a non-empty string or null.")
            valid = False

    if valid:
        logger.info("Configuration validation successful.")
    return valid


def load_settings(
    path: str = CONFIG_FILE_PATH, environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Build the run Settings from config.json and the environment.

    Raises:
        ConfigError: invalid config file, or missing sitemap URL / Google credentials.
    """
    environ = os.environ if environ is None else environ
    config = load_config(path)

    if not config.get("sitemap_url") and environ.get(ENV_SITEMAP_URL):
        config["sitemap_url"] = environ[ENV_SITEMAP_URL]

    if not validate_config(config):
        raise ConfigError(f"Invalid configuration (see log for details): {path}")

    client_email = environ.get(ENV_GSA_CLIENT_EMAIL, "").strip()
    private_key = environ.get(ENV_GSA_PRIVATE_KEY, "")
    missing = [
        name
        for name, value in ((ENV_GSA_CLIENT_EMAIL, client_email), (ENV_GSA_PRIVATE_KEY, private_key.strip()))
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing Google service account credentials: {', '.join(missing)}")

    indexnow_key = environ.get(ENV_INDEXNOW_KEY, "").strip() or None
    if indexnow_key is None:
        logger.warning(f"{ENV_INDEXNOW_KEY} is not set. IndexNow submissions will be skipped.")

    return Settings(
        sitemap_url=config["sitemap_url"],
        google_client_email=client_email,
        # CI secrets usually carry the PEM with escaped newlines
        google_private_key=private_key.replace("\\n", "\n"),
        indexnow_key=indexnow_key,
        indexnow_host=config["indexnow_host"],
        indexnow_endpoint=config["indexnow_endpoint"],
        indexnow_key_location=config["indexnow_key_location"],
        state_file=config["state_file"],
        max_urls_per_run=config["max_urls_per_run"],
        first_run_limit=config["first_run_limit"],
        ping_endpoint=config["ping_endpoint"],
        user_agent=config["user_agent"],
        timeout=config["timeout"],
        log_file=config["log_file"],
    )
