"""Session naming: credential + session id -> tmux session name.

A session name never embeds the raw credential. The credential is reduced
to a truncated SHA-256 digest, so names can be listed, logged and passed
to tmux without leaking the secret.

    termrelay-<16 hex>             (no session id, legacy single session)
    termrelay-<16 hex>-<sessionId> (one tmux session per session id)
"""

import hashlib
import re
from typing import Optional

# Namespace shared by every session this relay creates; the reaper only
# touches names under it.
SESSION_NAMESPACE = "termrelay"

PREFIX_DIGEST_LENGTH = 16

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,32}")


def credential_to_prefix(credential: str) -> str:
    """Map a credential to its fixed-length session name prefix"""
    digest = hashlib.sha256(credential.encode("utf-8")).hexdigest()
    return f"{SESSION_NAMESPACE}-{digest[:PREFIX_DIGEST_LENGTH]}"


def is_valid_session_id(session_id: Optional[str]) -> bool:
    """Only alphanumeric, underscore and hyphen, 1 to 32 characters.

    This is the only check between a client-supplied id and the tmux
    command line, so it must run before the id is used anywhere.
    """
    if not isinstance(session_id, str):
        return False
    return _SESSION_ID_PATTERN.fullmatch(session_id) is not None


def build_session_name(credential: str, session_id: Optional[str] = None) -> str:
    """Build the tmux session name for a credential and optional session id.

    Without a session id the bare prefix is returned, matching sessions
    created before session ids existed.

    Raises:
        ValueError: If session_id is given but fails is_valid_session_id()
    """
    prefix = credential_to_prefix(credential)
    if not session_id:
        return prefix
    if not is_valid_session_id(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return f"{prefix}-{session_id}"


def split_session_name(session_name: str, prefix: str) -> Optional[str]:
    """Return the session id of session_name under prefix, or None.

    A match requires the separator right after the prefix and a suffix
    that is itself a valid session id, so one credential's prefix can never
    claim sessions that merely share leading characters with it.
    """
    head = f"{prefix}-"
    if not session_name.startswith(head):
        return None
    session_id = session_name[len(head):]
    if not is_valid_session_id(session_id):
        return None
    return session_id
