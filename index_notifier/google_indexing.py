"""
1.0 Google Indexing API Backend
Publishes URL_UPDATED notifications one URL at a time.

The service account token is obtained once per run by authorize() and the
same authorized session is reused for every URL.
"""

import logging
from typing import Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2 import service_account

from index_notifier.config import Settings
from index_notifier.exceptions import CredentialError
from index_notifier.outcomes import SubmitOutcome

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/indexing"]
ENDPOINT = "https://indexing.googleapis.com/v3/urlNotifications:publish"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleIndexingClient:
    """
    2.0 GoogleIndexingClient Class
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        """
        2.1 Args:
            settings: Run settings carrying the service account email and key
            session: An already authorized session (tests); skips authorize()
        """
        self.settings = settings
        self._session = session

    def authorize(self) -> None:
        """
        2.2 Exchange the service account credentials for an access token.

        Raises:
            CredentialError: the key is invalid or the token exchange failed
        """
        if self._session is not None:
            return

        info = {
            "type": "service_account",
            "client_email": self.settings.google_client_email,
            "private_key": self.settings.google_private_key,
            "token_uri": TOKEN_URI,
        }
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            credentials.refresh(Request())
        except (ValueError, GoogleAuthError) as e:
            raise CredentialError(
                f"Could not authorize {self.settings.google_client_email} with Google: {e}"
            ) from e

        self._session = AuthorizedSession(credentials)
        logger.info(f"Authorized with Google Indexing API as {self.settings.google_client_email}")

    def submit_one(self, url: str) -> SubmitOutcome:
        """
        2.3 Publish a single URL_UPDATED notification.

        Returns:
            DELIVERED on 2xx, RATE_LIMITED on 429, OTHER_ERROR otherwise
        """
        if self._session is None:
            raise RuntimeError("authorize() must be called before submit_one()")

        payload = {"url": url, "type": "URL_UPDATED"}
        try:
            response = self._session.post(ENDPOINT, json=payload, timeout=self.settings.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Google: request error for {url}: {e}")
            return SubmitOutcome.OTHER_ERROR

        if 200 <= response.status_code < 300:
            logger.info(f"Google: submitted for indexing: {url}")
            return SubmitOutcome.DELIVERED
        if response.status_code == 429:
            logger.warning("Google: rate limit reached (429). Stopping Google submissions for this run.")
            return SubmitOutcome.RATE_LIMITED

        logger.error(f"Google: failed to submit {url} (status={response.status_code}): {response.text}")
        return SubmitOutcome.OTHER_ERROR
