"""Opaque token generation shared by every token type.

Temporary-registration, session-access and auth tokens all come from
``issue_token``. The issuer does not know what a token is for; callers store
the purpose, subject and expiry next to it.
"""

import os
import secrets

# 32 random bytes = 256 bits of entropy, 43 URL-safe characters
TOKEN_BYTES = 32


def issue_token() -> str:
    """Generate an unguessable, URL-safe token"""
    return secrets.token_urlsafe(TOKEN_BYTES)


def ensure_secure_random() -> None:
    """
    Fail fast when the platform has no cryptographically secure RNG.

    Raises:
        RuntimeError: If os.urandom is unavailable
    """
    try:
        os.urandom(TOKEN_BYTES)
    except NotImplementedError as e:
        raise RuntimeError(
            "No cryptographically secure random source available; refusing to start"
        ) from e
