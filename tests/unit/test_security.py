"""Unit tests for bearer tokens and password hashing"""

import pytest

from budget_gateway.domain.exceptions import AuthError
from budget_gateway.infrastructure.security.passwords import hash_password, verify_password
from budget_gateway.infrastructure.security.tokens import TokenService


def test_issued_token_verifies_to_account_id():
    tokens = TokenService(secret="test-secret", issuer="budget-gateway")
    assert tokens.verify(tokens.issue("user-42")) == "user-42"


def test_tampered_token_is_rejected():
    tokens = TokenService(secret="test-secret")
    header, payload, signature = tokens.issue("user-42").split(".")
    forged_payload = TokenService(secret="test-secret").issue("user-99").split(".")[1]

    with pytest.raises(AuthError):
        tokens.verify(f"{header}.{forged_payload}.{signature}")


def test_token_from_other_secret_is_rejected():
    token = TokenService(secret="other-secret").issue("user-42")
    with pytest.raises(AuthError):
        TokenService(secret="test-secret").verify(token)


def test_expired_token_is_rejected():
    tokens = TokenService(secret="test-secret", ttl_seconds=-10)
    with pytest.raises(AuthError, match="expired"):
        tokens.verify(tokens.issue("user-42"))


def test_wrong_issuer_is_rejected():
    token = TokenService(secret="test-secret", issuer="someone-else").issue("user-42")
    with pytest.raises(AuthError):
        TokenService(secret="test-secret", issuer="budget-gateway").verify(token)


@pytest.mark.parametrize("token", ["", "abc", "a.b", "!!.@@.##"])
def test_malformed_token_is_rejected(token: str):
    with pytest.raises(AuthError):
        TokenService(secret="test-secret").verify(token)


def test_unsigned_algorithm_is_rejected():
    tokens = TokenService(secret="test-secret")
    header, payload, signature = tokens.issue("user-42").split(".")
    # {"alg":"none"}
    with pytest.raises(AuthError):
        tokens.verify(f"eyJhbGciOiJub25lIn0.{payload}.{signature}")


def test_password_hash_round_trip():
    hashed = hash_password("hunter22", rounds=4)

    assert hashed.startswith("$2b$04$")
    assert "hunter22" not in hashed
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_same_password_gets_different_salts():
    assert hash_password("hunter22", rounds=4) != hash_password("hunter22", rounds=4)


@pytest.mark.parametrize("hashed", ["", "plaintext", "md5$1$aa$bb", "$2b$04$tooshort"])
def test_malformed_hash_never_verifies(hashed: str):
    assert verify_password("anything", hashed) is False
