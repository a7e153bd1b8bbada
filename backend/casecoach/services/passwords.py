"""Password Hashing — bcrypt, cost factor 12 by default.

Invariants:
    - Hashing and checking run in a worker thread; the event loop never blocks on bcrypt
    - hash_password rejects input over MAX_PASSWORD_BYTES (UTF-8) with ValidationError
    - verify_password never raises on a malformed stored hash or oversized input; it returns False
"""

import asyncio

import bcrypt

from casecoach.core.errors import ValidationError

DEFAULT_ROUNDS = 12
# bcrypt's input limit, counted in encoded bytes
MAX_PASSWORD_BYTES = 72


def password_byte_length(password: str) -> int:
    return len(password.encode("utf-8"))


def _hash(password: str, rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _check(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


async def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    if password_byte_length(password) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes", "password",
        )
    return await asyncio.to_thread(_hash, password, rounds)


async def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    if password_byte_length(password) > MAX_PASSWORD_BYTES:
        return False
    return await asyncio.to_thread(_check, password, password_hash)
