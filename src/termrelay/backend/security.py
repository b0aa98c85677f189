"""Security utilities for relay credential checks"""

import hashlib
import hmac
import logging
from typing import Optional

from .exception import AuthenticationError

logger = logging.getLogger(__name__)

# Fixed key: the HMAC only equalises digest length, it does not protect a secret
_COMPARE_KEY = b"termrelay-token-compare"

# Credential used for naming when auth is disabled
ANONYMOUS_CREDENTIAL = "default"


def _digest(value: str) -> bytes:
    return hmac.new(_COMPARE_KEY, value.encode("utf-8"), hashlib.sha256).digest()


def safe_token_compare(candidate: str, expected: str) -> bool:
    """Constant-time token comparison

    Both sides are reduced to 32-byte HMAC digests before compare_digest,
    so the comparison time depends on neither the length nor the content
    of the candidate.

    Args:
        candidate: Token presented by the client
        expected: Configured secret

    Returns:
        True if the tokens match, False otherwise
    """
    return hmac.compare_digest(_digest(candidate), _digest(expected))


def authenticate(token: Optional[str], auth_token: str) -> str:
    """Validate a presented token and return the credential to name sessions by.

    With no configured auth_token the relay runs in development mode and
    every caller shares ANONYMOUS_CREDENTIAL (or its own token, if sent).

    Args:
        token: Token presented by the client (may be None)
        auth_token: Configured secret, empty to disable auth

    Returns:
        The credential

    Raises:
        AuthenticationError: If auth is enabled and the token is missing or wrong
    """
    if not auth_token:
        return token or ANONYMOUS_CREDENTIAL

    if not token:
        logger.warning("Missing auth token")
        raise AuthenticationError("Missing token")

    if not safe_token_compare(token, auth_token):
        logger.warning("Invalid auth token")
        raise AuthenticationError("Invalid token")

    return token

