from datetime import datetime, timedelta, timezone

import jwt
import pytest

from dishboard.auth.security import (
    InvalidToken,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


SECRET = "unit-secret"


def test_password_hash_is_salted_and_verifies():
    h1 = hash_password("s3cret")
    h2 = hash_password("s3cret")

    assert h1 != h2
    assert "s3cret" not in h1
    assert verify_password("s3cret", h1)
    assert not verify_password("wrong", h1)


def test_verify_password_rejects_blank_and_garbage_hashes():
    assert not verify_password("", hash_password("x"))
    assert not verify_password("x", "")
    assert not verify_password("x", "not-a-hash")


def test_hash_password_rejects_blank():
    with pytest.raises(ValueError):
        hash_password("")


def test_token_round_trip_carries_id_and_username():
    token = create_access_token(secret=SECRET, user_id=7, username="alice")

    claims = decode_access_token(token=token, secret=SECRET)

    assert claims == {"id": 7, "username": "alice"}


def test_token_carries_optional_role():
    token = create_access_token(secret=SECRET, user_id=1, username="igor", role="admin")

    assert decode_access_token(token=token, secret=SECRET)["role"] == "admin"


def test_token_without_expiry_is_deterministic():
    a = create_access_token(secret=SECRET, user_id=3, username="bob")
    b = create_access_token(secret=SECRET, user_id=3, username="bob")

    assert a == b
    assert "exp" not in jwt.decode(a, SECRET, algorithms=["HS256"])


def test_token_with_expiry_sets_exp_claim():
    token = create_access_token(secret=SECRET, user_id=3, username="bob", expires_minutes=5)

    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["exp"] > datetime.now(timezone.utc).timestamp()


def test_wrong_secret_is_invalid():
    token = create_access_token(secret=SECRET, user_id=1, username="alice")

    with pytest.raises(InvalidToken) as ei:
        decode_access_token(token=token, secret="other-secret")
    assert ei.value.reason == "token_invalid"


def test_tampered_token_is_invalid():
    token = create_access_token(secret=SECRET, user_id=1, username="alice")
    header, payload, sig = token.split(".")
    forged = jwt.encode({"id": 1, "username": "igor"}, "attacker", algorithm="HS256").split(".")[1]

    with pytest.raises(InvalidToken):
        decode_access_token(token=f"{header}.{forged}.{sig}", secret=SECRET)


def test_garbage_token_is_invalid():
    with pytest.raises(InvalidToken):
        decode_access_token(token="not.a.jwt", secret=SECRET)


def test_expired_token_is_invalid():
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt.encode(
        {"id": 1, "username": "alice", "exp": int(past.timestamp())},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken) as ei:
        decode_access_token(token=token, secret=SECRET)
    assert ei.value.reason == "token_expired"


@pytest.mark.parametrize(
    "payload, reason",
    [
        ({"username": "alice"}, "token_missing_id"),
        ({"id": "1", "username": "alice"}, "token_missing_id"),
        ({"id": 1}, "token_missing_username"),
    ],
)
def test_malformed_claims_are_invalid(payload, reason):
    token = jwt.encode(payload, SECRET, algorithm="HS256")

    with pytest.raises(InvalidToken) as ei:
        decode_access_token(token=token, secret=SECRET)
    assert ei.value.reason == reason
