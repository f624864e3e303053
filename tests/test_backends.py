import pytest
import requests
from google.auth.exceptions import RefreshError

from conftest import FakeResponse, FakeSession, make_settings
from index_notifier import google_indexing
from index_notifier.exceptions import CredentialError
from index_notifier.google_indexing import ENDPOINT, SCOPES, GoogleIndexingClient
from index_notifier.indexnow import IndexNowClient
from index_notifier.outcomes import SubmitOutcome
from index_notifier.pinger import SitemapPinger


# =============================================================================
# 1. GOOGLE INDEXING
# =============================================================================

class FakeCredentials:
    def __init__(self, error=None):
        self.error = error
        self.refresh_calls = 0

    def refresh(self, request):
        self.refresh_calls += 1
        if self.error:
            raise self.error


@pytest.fixture
def fake_google_auth(monkeypatch):
    """Replaces the service account token exchange; yields what it captured."""
    captured = {"credentials": FakeCredentials(), "session": FakeSession()}

    def from_service_account_info(info, scopes=None):
        captured["info"] = info
        captured["scopes"] = scopes
        return captured["credentials"]

    monkeypatch.setattr(
        google_indexing.service_account.Credentials,
        "from_service_account_info",
        staticmethod(from_service_account_info),
    )
    monkeypatch.setattr(google_indexing, "AuthorizedSession", lambda credentials: captured["session"])
    return captured


def test_authorize_exchanges_credentials_once(fake_google_auth):
    settings = make_settings()
    client = GoogleIndexingClient(settings)

    client.authorize()
    client.submit_one("https://example.com/a")
    client.submit_one("https://example.com/b")

    assert fake_google_auth["credentials"].refresh_calls == 1
    assert fake_google_auth["scopes"] == SCOPES
    assert fake_google_auth["info"]["client_email"] == settings.google_client_email
    assert fake_google_auth["info"]["private_key"] == settings.google_private_key
    assert len(fake_google_auth["session"].calls) == 2


def test_authorize_refresh_failure_is_credential_error(fake_google_auth):
    fake_google_auth["credentials"] = FakeCredentials(error=RefreshError("invalid_grant"))
    with pytest.raises(CredentialError):
        GoogleIndexingClient(make_settings()).authorize()


def test_authorize_with_unusable_private_key():
    client = GoogleIndexingClient(make_settings(google_private_key="garbage"))
    with pytest.raises(CredentialError):
        client.authorize()


def test_submit_before_authorize_is_a_bug():
    with pytest.raises(RuntimeError):
        GoogleIndexingClient(make_settings()).submit_one("https://example.com/a")


def test_google_payload():
    session = FakeSession([FakeResponse(200, {"urlNotificationMetadata": {}})])
    client = GoogleIndexingClient(make_settings(), session=session)

    assert client.submit_one("https://example.com/a") is SubmitOutcome.DELIVERED
    assert session.calls[0]["url"] == ENDPOINT
    assert session.calls[0]["json"] == {"url": "https://example.com/a", "type": "URL_UPDATED"}


@pytest.mark.parametrize("response, expected", [
    (FakeResponse(200), SubmitOutcome.DELIVERED),
    (FakeResponse(429, {"error": {"code": 429}}), SubmitOutcome.RATE_LIMITED),
    (FakeResponse(403, {"error": {"code": 403}}), SubmitOutcome.OTHER_ERROR),
    (FakeResponse(500, "oops"), SubmitOutcome.OTHER_ERROR),
    (requests.exceptions.ConnectionError("reset"), SubmitOutcome.OTHER_ERROR),
    (requests.exceptions.Timeout("slow"), SubmitOutcome.OTHER_ERROR),
])
def test_google_outcomes(response, expected):
    client = GoogleIndexingClient(make_settings(), session=FakeSession([response]))
    assert client.submit_one("https://example.com/a") is expected


# =============================================================================
# 2. INDEXNOW
# =============================================================================

def test_indexnow_payload_sends_whole_batch():
    session = FakeSession([FakeResponse(200)])
    settings = make_settings(indexnow_endpoint="https://api.indexnow.org/indexnow")
    client = IndexNowClient(settings, session=session)
    batch = ["https://example.com/a", "https://example.com/b", "https://example.com/c"]

    assert client.submit_batch(batch) is SubmitOutcome.DELIVERED
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"] == "https://api.indexnow.org/indexnow"
    assert call["json"] == {"host": "example.com", "key": "0123456789abcdef", "urlList": batch}


def test_indexnow_key_location_is_optional():
    settings = make_settings(indexnow_key_location="https://example.com/0123456789abcdef.txt")
    payload = IndexNowClient(settings, session=FakeSession()).build_payload(["https://example.com/a"])
    assert payload["keyLocation"] == "https://example.com/0123456789abcdef.txt"


def test_indexnow_requires_key():
    with pytest.raises(ValueError):
        IndexNowClient(make_settings(indexnow_key=None))


@pytest.mark.parametrize("response, expected", [
    (FakeResponse(200), SubmitOutcome.DELIVERED),
    (FakeResponse(202), SubmitOutcome.DELIVERED),
    (FakeResponse(429), SubmitOutcome.RATE_LIMITED),
    (FakeResponse(400, "Invalid format"), SubmitOutcome.MALFORMED_REQUEST),
    (FakeResponse(422, "URLs don't belong to the host"), SubmitOutcome.MALFORMED_REQUEST),
    (FakeResponse(403, "Key not valid"), SubmitOutcome.OTHER_ERROR),
    (FakeResponse(500), SubmitOutcome.OTHER_ERROR),
    (requests.exceptions.ConnectionError("reset"), SubmitOutcome.OTHER_ERROR),
])
def test_indexnow_outcomes(response, expected):
    client = IndexNowClient(make_settings(), session=FakeSession([response]))
    assert client.submit_batch(["https://example.com/a"]) is expected


def test_malformed_request_logs_response_body(caplog):
    client = IndexNowClient(make_settings(), session=FakeSession([FakeResponse(400, "key mismatch")]))
    client.submit_batch(["https://example.com/a"])
    assert "key mismatch" in caplog.text


# =============================================================================
# 3. SITEMAP PING
# =============================================================================

def test_ping_sends_sitemap_url():
    session = FakeSession([FakeResponse(200)])
    settings = make_settings()

    assert SitemapPinger(settings, session=session).ping() is True
    assert session.calls[0]["url"] == "https://www.google.com/ping"
    assert session.calls[0]["params"] == {"sitemap": settings.sitemap_url}


@pytest.mark.parametrize("response", [
    FakeResponse(404),
    requests.exceptions.ConnectionError("down"),
])
def test_ping_failure_is_swallowed(response):
    assert SitemapPinger(make_settings(), session=FakeSession([response])).ping() is False


def test_pinger_requires_endpoint():
    with pytest.raises(ValueError):
        SitemapPinger(make_settings(ping_endpoint=None))
