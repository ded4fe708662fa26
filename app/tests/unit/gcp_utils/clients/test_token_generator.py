"""Unit tests for gcp_utils.clients.google_auth.token_generator."""

import json
import threading
from datetime import datetime, timedelta
from json import JSONDecodeError
from unittest.mock import MagicMock, patch

import pytest
from cachetools import Cache, LRUCache, TTLCache
from google.auth.exceptions import RefreshError

from gcp_utils.clients.google_auth.token_generator import (
    AccessToken,
    AccessTokenGenerator,
    build_token_cache,
)
from gcp_utils.configuration.google import GoogleAuthSettings

SCOPE_DRIVE = "https://www.googleapis.com/auth/drive"
SCOPE_SHEETS = "https://www.googleapis.com/auth/spreadsheets"


def make_credentials(token="ya29.token"):
    """Credentials double: with_subject/with_scopes return refreshable copies."""
    credentials = MagicMock(name="credentials")
    refreshed = []

    def scoped(scopes):
        scoped_creds = MagicMock(name="scoped")
        scoped_creds.expiry = datetime(2030, 1, 1, 12, 0)

        def refresh(request):
            refreshed.append(scopes)
            scoped_creds.token = f"{token}-{len(refreshed)}"

        scoped_creds.refresh.side_effect = refresh
        return scoped_creds

    credentials.with_scopes.side_effect = scoped
    credentials.with_subject.return_value.with_scopes.side_effect = scoped
    credentials.refreshed = refreshed
    return credentials


@pytest.fixture(autouse=True)
def mock_request():
    with patch("gcp_utils.clients.google_auth.token_generator.Request") as request:
        yield request


@pytest.mark.unit
class TestAccessTokenGenerator:
    """Tests for token generation and caching."""

    def test_fresh_token(self):
        credentials = make_credentials()
        generator = AccessTokenGenerator(credentials)

        token = generator.get_access_token(SCOPE_DRIVE)

        assert token == AccessToken(
            token="ya29.token-1", expiry=datetime(2030, 1, 1, 12, 0)
        )
        credentials.with_scopes.assert_called_once_with([SCOPE_DRIVE])
        credentials.with_subject.assert_not_called()

    def test_cache_hit(self):
        credentials = make_credentials()
        generator = AccessTokenGenerator(credentials)

        first = generator.get_access_token(SCOPE_DRIVE, SCOPE_SHEETS)
        second = generator.get_access_token(SCOPE_SHEETS, SCOPE_DRIVE)

        assert first is second
        assert len(credentials.refreshed) == 1

    def test_different_scopes_miss(self):
        credentials = make_credentials()
        generator = AccessTokenGenerator(credentials)

        generator.get_access_token(SCOPE_DRIVE)
        generator.get_access_token(SCOPE_SHEETS)

        assert len(credentials.refreshed) == 2

    def test_delegated_tokens_are_cached_per_user(self):
        credentials = make_credentials()
        generator = AccessTokenGenerator(credentials)

        own = generator.get_access_token(SCOPE_DRIVE)
        alice = generator.get_delegated_access_token("alice@example.com", SCOPE_DRIVE)
        alice_again = generator.get_delegated_access_token(
            "alice@example.com", SCOPE_DRIVE
        )
        bob = generator.get_delegated_access_token("bob@example.com", SCOPE_DRIVE)

        assert len({own.token, alice.token, bob.token}) == 3
        assert alice_again is alice
        assert [c.args[0] for c in credentials.with_subject.call_args_list] == [
            "alice@example.com",
            "bob@example.com",
        ]

    def test_delegate_is_required(self):
        generator = AccessTokenGenerator(make_credentials())

        with pytest.raises(ValueError):
            generator.get_delegated_access_token("", SCOPE_DRIVE)

    def test_refresh_error_propagates_and_is_not_cached(self):
        credentials = MagicMock()
        credentials.with_scopes.return_value.refresh.side_effect = RefreshError(
            "invalid_grant"
        )
        generator = AccessTokenGenerator(credentials)

        with pytest.raises(RefreshError):
            generator.get_access_token(SCOPE_DRIVE)
        with pytest.raises(RefreshError):
            generator.get_access_token(SCOPE_DRIVE)

        assert credentials.with_scopes.return_value.refresh.call_count == 2

    def test_size_bounded_cache_evicts(self):
        credentials = make_credentials()
        generator = AccessTokenGenerator(credentials, cache_size=1)

        generator.get_access_token(SCOPE_DRIVE)
        generator.get_access_token(SCOPE_SHEETS)
        generator.get_access_token(SCOPE_DRIVE)

        assert len(credentials.refreshed) == 3

    def test_slow_refresh_does_not_block_other_keys(self):
        drive_refreshing = threading.Event()
        release_drive = threading.Event()

        def scoped(scopes):
            scoped_creds = MagicMock(name="scoped")
            scoped_creds.expiry = None
            scoped_creds.token = f"token-{scopes[0]}"
            if scopes == [SCOPE_DRIVE]:

                def slow_refresh(request):
                    drive_refreshing.set()
                    release_drive.wait(5)

                scoped_creds.refresh.side_effect = slow_refresh
            return scoped_creds

        credentials = MagicMock()
        credentials.with_scopes.side_effect = scoped
        generator = AccessTokenGenerator(credentials)
        sheets_tokens = []

        drive = threading.Thread(target=generator.get_access_token, args=(SCOPE_DRIVE,))
        drive.start()
        try:
            assert drive_refreshing.wait(5)
            sheets = threading.Thread(
                target=lambda: sheets_tokens.append(
                    generator.get_access_token(SCOPE_SHEETS)
                )
            )
            sheets.start()
            sheets.join(2)

            assert not release_drive.is_set()
            assert [t.token for t in sheets_tokens] == [f"token-{SCOPE_SHEETS}"]
        finally:
            release_drive.set()
            drive.join(5)

    def test_concurrent_misses_of_one_key_refresh_once(self):
        refreshing = threading.Event()
        release = threading.Event()
        scoped_creds = MagicMock(name="scoped")
        scoped_creds.expiry = None
        scoped_creds.token = "ya29.shared"

        def slow_refresh(request):
            refreshing.set()
            release.wait(5)

        scoped_creds.refresh.side_effect = slow_refresh
        credentials = MagicMock()
        credentials.with_scopes.return_value = scoped_creds
        generator = AccessTokenGenerator(credentials)
        tokens = []

        def fetch():
            tokens.append(generator.get_access_token(SCOPE_DRIVE))

        threads = [threading.Thread(target=fetch) for _ in range(3)]
        for thread in threads:
            thread.start()
        assert refreshing.wait(5)
        release.set()
        for thread in threads:
            thread.join(5)

        assert scoped_creds.refresh.call_count == 1
        assert len(tokens) == 3
        assert len({id(t) for t in tokens}) == 1

    def test_credentials_required(self):
        with pytest.raises(ValueError):
            AccessTokenGenerator(None)


@pytest.mark.unit
class TestBuildTokenCache:
    """Tests for cache selection."""

    def test_unbounded_by_default(self):
        cache = build_token_cache()

        assert type(cache) is Cache

    def test_size_only_is_lru(self):
        cache = build_token_cache(cache_size=10)

        assert isinstance(cache, LRUCache)
        assert cache.maxsize == 10

    def test_duration_is_ttl(self):
        cache = build_token_cache(cache_size=5, cache_duration=timedelta(minutes=30))

        assert isinstance(cache, TTLCache)
        assert cache.ttl == 1800
        assert cache.maxsize == 5

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            build_token_cache(cache_size=-1)
        with pytest.raises(ValueError):
            build_token_cache(cache_duration=0)


@pytest.mark.unit
class TestFromServiceAccountInfo:
    """Tests for building generators from a JSON key."""

    def test_missing_key(self):
        with pytest.raises(ValueError):
            AccessTokenGenerator.from_service_account_info("")

    def test_invalid_json(self):
        with pytest.raises(JSONDecodeError):
            AccessTokenGenerator.from_service_account_info("{not json")

    @patch(
        "gcp_utils.clients.google_auth.token_generator.service_account.Credentials"
        ".from_service_account_info"
    )
    def test_valid_key(self, mock_from_info):
        info = {"type": "service_account", "client_email": "bot@example.iam"}

        generator = AccessTokenGenerator.from_service_account_info(
            json.dumps(info), cache_size=3
        )

        mock_from_info.assert_called_once_with(info)
        assert generator.credentials is mock_from_info.return_value

    @patch(
        "gcp_utils.clients.google_auth.token_generator.service_account.Credentials"
        ".from_service_account_info"
    )
    def test_from_settings(self, mock_from_info):
        settings = GoogleAuthSettings(
            GCP_SERVICE_ACCOUNT_KEY='{"type": "service_account"}',
            access_token_cache_size=2,
            access_token_cache_seconds=60,
        )

        generator = AccessTokenGenerator.from_settings(settings)

        assert isinstance(generator._cache, TTLCache)
        assert generator._cache.ttl == 60
