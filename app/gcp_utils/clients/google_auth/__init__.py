"""Google OAuth2 access token generation."""

from gcp_utils.clients.google_auth.token_generator import (
    AccessToken,
    AccessTokenGenerator,
    TokenCacheKey,
    build_token_cache,
)

__all__ = [
    "AccessToken",
    "AccessTokenGenerator",
    "TokenCacheKey",
    "build_token_cache",
]
