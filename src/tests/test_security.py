"""Unit tests for password hashing and the token lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from todolist.errors import ExpiredToken, InvalidToken, NoTokenProvided, UserNotFound
from todolist.models import User
from todolist.services.security import ALGORITHM, PasswordHasher, TokenService, extract_bearer_token

SECRET = "unit-test-secret"


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens():
    return TokenService(SECRET, expires_minutes=60)


@pytest.fixture
def user():
    return User(id=42, username="alice", email="alice@example.com", password_hash="x")


class TestPasswordHasher:
    def test_hash_is_salted_and_verifies(self, hasher):
        first = hasher.hash("Secret123")
        second = hasher.hash("Secret123")

        assert first != "Secret123"
        assert first != second
        assert hasher.verify("Secret123", first)
        assert hasher.verify("Secret123", second)

    def test_wrong_password_rejected(self, hasher):
        assert not hasher.verify("Wrong123", hasher.hash("Secret123"))

    def test_corrupt_digest_rejected(self, hasher):
        assert not hasher.verify("Secret123", "not-a-bcrypt-hash")

    def test_dummy_verify_does_not_raise(self, hasher):
        hasher.dummy_verify("anything")


class TestExtractBearerToken:
    def test_bearer_prefix(self):
        assert extract_bearer_token("Bearer abc.def") == "abc.def"

    def test_bare_token(self):
        assert extract_bearer_token("abc.def") == "abc.def"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   "])
    def test_missing_token(self, header):
        with pytest.raises(NoTokenProvided):
            extract_bearer_token(header)


class TestTokenService:
    def test_issue_and_verify(self, tokens, user):
        payload = tokens.verify(tokens.issue(user))

        assert payload["id"] == 42
        assert payload["email"] == "alice@example.com"
        assert payload["sub"] == "42"
        assert payload["exp"] - payload["iat"] == 3600

    def test_expired_token(self, tokens, user):
        token = tokens.issue(user, expires_delta=timedelta(seconds=-1))
        with pytest.raises(ExpiredToken):
            tokens.verify(token)

    def test_wrong_secret(self, user):
        token = TokenService("another-secret").issue(user)
        with pytest.raises(InvalidToken):
            TokenService(SECRET).verify(token)

    def test_garbage_token(self, tokens):
        with pytest.raises(InvalidToken):
            tokens.verify("not.a.jwt")

    def test_token_without_user_id(self, tokens):
        token = jwt.encode({"email": "alice@example.com"}, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken):
            tokens.verify(token)


class TestRefresh:
    def test_refresh_valid_token(self, tokens, user):
        new_token = tokens.refresh(tokens.issue(user), lambda user_id: user)
        assert tokens.verify(new_token)["id"] == 42

    def test_refresh_recently_expired_token(self, tokens, user):
        """Test that a token expired by one second can still be exchanged."""
        expired = tokens.issue(user, expires_delta=timedelta(seconds=-1))
        looked_up = []

        def load_user(user_id):
            looked_up.append(user_id)
            return user

        new_token = tokens.refresh(expired, load_user)

        assert looked_up == [42]
        assert tokens.verify(new_token)["id"] == 42

    def test_expired_token_with_bad_signature_is_rejected(self, tokens, user):
        expired = TokenService("another-secret").issue(user, expires_delta=timedelta(seconds=-1))
        with pytest.raises(InvalidToken):
            tokens.refresh(expired, lambda user_id: user)

    def test_expired_token_without_identity_is_rejected(self, tokens, user):
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        token = jwt.encode({"email": "alice@example.com", "exp": past}, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken):
            tokens.refresh(token, lambda user_id: user)

    def test_deleted_user(self, tokens, user):
        with pytest.raises(UserNotFound):
            tokens.refresh(tokens.issue(user), lambda user_id: None)

    def test_malformed_token(self, tokens, user):
        with pytest.raises(InvalidToken):
            tokens.refresh("garbage", lambda user_id: user)
