"""Capability Tokens — unguessable per-interview access tokens.

Invariants:
    - Tokens are 32 random bytes rendered as 64 lowercase hex characters
    - Format is checked before any store lookup; anything else is rejected
"""

import re
import secrets

from casecoach.core.domain_types import CapabilityToken

CAPABILITY_TOKEN_BYTES = 32
CAPABILITY_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{64}$")


def generate_capability_token() -> CapabilityToken:
    return CapabilityToken(secrets.token_hex(CAPABILITY_TOKEN_BYTES))


def is_valid_capability_token(token: object) -> bool:
    """True iff token is a str of exactly 64 lowercase hex characters."""
    return isinstance(token, str) and CAPABILITY_TOKEN_PATTERN.fullmatch(token) is not None
