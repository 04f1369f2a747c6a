import base64
import hashlib
import re

from threadlink.services import pkce

UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")


def test_verifier_is_long_random_and_url_safe() -> None:
    verifiers = {pkce.new_verifier() for _ in range(50)}
    assert len(verifiers) == 50
    for verifier in verifiers:
        assert 43 <= len(verifier) <= 128
        assert UNRESERVED.match(verifier)


def test_verifiers_share_no_fixed_prefix_or_suffix() -> None:
    verifiers = [pkce.new_verifier() for _ in range(20)]
    assert len({v[:4] for v in verifiers}) > 1
    assert len({v[-4:] for v in verifiers}) > 1


def test_challenge_matches_rfc7636_example() -> None:
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert pkce.challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_challenge_is_deterministic_and_differs_from_verifier() -> None:
    verifier = pkce.new_verifier()
    first = pkce.challenge(verifier)
    assert first == pkce.challenge(verifier)
    assert first != verifier
    assert "=" not in first
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=").decode()
    assert first == expected


def test_state_is_independent_of_verifier() -> None:
    verifier = pkce.new_verifier()
    state = pkce.new_state()
    assert state != verifier
    assert state != pkce.challenge(verifier)
    assert pkce.new_state() != state
