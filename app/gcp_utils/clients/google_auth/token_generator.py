"""Cached OAuth2 access tokens for Google service accounts.

Tokens are cached per (delegate, scopes) so that a service account acting on
behalf of several users never hands out another user's token.

Usage:
    from gcp_utils.clients.google_auth import AccessTokenGenerator

    generator = AccessTokenGenerator.from_settings()
    token = generator.get_delegated_access_token(
        "admin@example.com", "https://www.googleapis.com/auth/admin.directory.user"
    )
    headers = {"Authorization": f"Bearer {token.token}"}
"""

import json
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from json import JSONDecodeError
from typing import Any, Dict, FrozenSet, Optional, Union

import structlog
from cachetools import Cache, LRUCache, TTLCache
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from gcp_utils.configuration import get_settings
from gcp_utils.configuration.google import GoogleAuthSettings

logger = structlog.get_logger()


@dataclass(frozen=True)
class AccessToken:
    """An OAuth2 access token and its expiry (naive UTC, None if unknown)."""

    token: str
    expiry: Optional[datetime] = None


@dataclass(frozen=True)
class TokenCacheKey:
    """Cache key of a token: the delegated user, if any, and the scope set."""

    delegate: Optional[str]
    scopes: FrozenSet[str]


def build_token_cache(
    cache_size: int = 0, cache_duration: Optional[Union[timedelta, float]] = None
) -> Cache:
    """Build the token cache.

    A positive cache_size bounds the number of entries; a cache_duration expires
    entries after write. With neither the cache is unbounded.
    """
    if cache_size < 0:
        raise ValueError("cache_size must be >= 0")
    maxsize = cache_size if cache_size > 0 else math.inf
    if cache_duration is not None:
        if isinstance(cache_duration, timedelta):
            cache_duration = cache_duration.total_seconds()
        if cache_duration <= 0:
            raise ValueError("cache_duration must be positive")
        return TTLCache(maxsize=maxsize, ttl=cache_duration)
    if cache_size > 0:
        return LRUCache(maxsize=cache_size)
    return Cache(maxsize=maxsize)


class AccessTokenGenerator:
    """Generates and caches access tokens from service account credentials.

    Args:
        credentials: google.oauth2.service_account.Credentials (or any scoped
            credentials; delegation needs ``with_subject``)
        cache_size: Maximum cached tokens, 0 for unbounded
        cache_duration: Time-to-live of cached tokens, None for no expiry
    """

    def __init__(
        self,
        credentials: Any,
        cache_size: int = 0,
        cache_duration: Optional[Union[timedelta, float]] = None,
    ) -> None:
        if credentials is None:
            raise ValueError("credentials are required")
        self.credentials = credentials
        self._cache = build_token_cache(cache_size, cache_duration)
        self._lock = threading.Lock()
        self._key_locks: Dict[TokenCacheKey, threading.Lock] = {}

    @classmethod
    def from_service_account_info(
        cls,
        creds_json: str,
        cache_size: int = 0,
        cache_duration: Optional[Union[timedelta, float]] = None,
    ) -> "AccessTokenGenerator":
        """Build a generator from a service account JSON key.

        Raises:
            ValueError: If the key is empty
            JSONDecodeError: If the key is not valid JSON
        """
        if not creds_json:
            logger.error("credentials_json_missing")
            raise ValueError("Credentials JSON not set")
        try:
            creds_info = json.loads(creds_json)
        except JSONDecodeError as json_decode_exception:
            logger.error("invalid_credentials_json", error=str(json_decode_exception))
            raise JSONDecodeError(
                msg="Invalid credentials JSON", doc="Credentials JSON", pos=0
            ) from json_decode_exception
        credentials = service_account.Credentials.from_service_account_info(creds_info)
        return cls(credentials, cache_size=cache_size, cache_duration=cache_duration)

    @classmethod
    def from_settings(
        cls, settings: Optional[GoogleAuthSettings] = None
    ) -> "AccessTokenGenerator":
        if settings is None:
            settings = get_settings().google_auth
        return cls.from_service_account_info(
            settings.GCP_SERVICE_ACCOUNT_KEY,
            cache_size=settings.access_token_cache_size,
            cache_duration=settings.access_token_cache_seconds,
        )

    def get_access_token(self, *scopes: str) -> AccessToken:
        """Get a token for the service account itself."""
        return self._get(TokenCacheKey(None, frozenset(scopes)))

    def get_delegated_access_token(self, delegate_email: str, *scopes: str) -> AccessToken:
        """Get a token for a user impersonated through domain-wide delegation."""
        if not delegate_email:
            raise ValueError("delegate_email is required")
        return self._get(TokenCacheKey(delegate_email, frozenset(scopes)))

    def _get(self, key: TokenCacheKey) -> AccessToken:
        with self._lock:
            token = self._cache.get(key)
            if token is not None:
                return token
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        # Refresh under the per-key lock only
        with key_lock:
            with self._lock:
                token = self._cache.get(key)
            if token is None:
                token = self._fresh_token(key)
                with self._lock:
                    self._cache[key] = token
            return token

    def _fresh_token(self, key: TokenCacheKey) -> AccessToken:
        credentials = self.credentials
        if key.delegate is not None:
            credentials = credentials.with_subject(key.delegate)
        credentials = credentials.with_scopes(sorted(key.scopes))
        # RefreshError propagates unchanged
        credentials.refresh(Request())
        logger.debug(
            "access_token_refreshed",
            delegate=key.delegate,
            scopes=sorted(key.scopes),
            expiry=credentials.expiry.isoformat() if credentials.expiry else None,
        )
        return AccessToken(token=credentials.token, expiry=credentials.expiry)
