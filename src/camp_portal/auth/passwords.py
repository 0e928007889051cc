"""
camp_portal.auth.passwords

One-way password hashing.

Responsibilities:
- Hash secrets with bcrypt using a fresh salt per call.
- Verify secrets with bcrypt's constant-time comparison.
- Offer thread-offloaded variants so hashing never blocks the event loop.
"""

from __future__ import annotations

import bcrypt
from starlette.concurrency import run_in_threadpool

from camp_portal.errors import PasswordHashError

DEFAULT_ROUNDS = 12

# Stored for accounts whose secret lives with the external identity provider.
# It is not a bcrypt hash, so it never verifies.
EXTERNAL_MANAGED_HASH = "!external"


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise PasswordHashError(str(e)) from e


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        # Malformed stored hash or oversized input: fail closed.
        return False


async def hash_password_async(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    return await run_in_threadpool(hash_password, password, rounds=rounds)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


# --- Module Notes -----------------------------------------------------------
# bcrypt only considers the first 72 bytes of input; request models cap password
# length so users never get a silently truncated secret.
