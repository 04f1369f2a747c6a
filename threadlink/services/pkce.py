"""PKCE verifier/challenge and CSRF state generation (RFC 7636, S256)."""

from __future__ import annotations

from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

# 64 characters drawn from a 62-symbol alphabet: ~381 bits, well over the
# 256-bit floor, and inside the 43..128 length range PKCE allows.
VERIFIER_LENGTH = 64
STATE_LENGTH = 32


def new_verifier() -> str:
    return generate_token(VERIFIER_LENGTH)


def challenge(verifier: str) -> str:
    """SHA-256 of the verifier, URL-safe base64 without padding."""
    return create_s256_code_challenge(verifier)


def new_state() -> str:
    """Anti-forgery nonce. Independent of any verifier."""
    return generate_token(STATE_LENGTH)


__all__ = ["challenge", "new_state", "new_verifier"]
