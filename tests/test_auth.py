"""
Tests for the account system.

Tests cover:
- Session token generation and validation
- Password hashing
- Signup / login rules in AuthService
- Auth request schemas
"""

from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import settings
from app.core.errors import AuthenticationFailure, Conflict, CredentialMismatch
from app.services.auth_service import AuthService
from app.services.jwt_service import JWTService

# =============================================================================
# JWT Service Tests
# =============================================================================


class TestJWTService:
    """Tests for session token service."""

    def test_issue_session_token(self):
        token = JWTService.issue_session_token(user_id="user-123", email="test@example.com")

        assert isinstance(token, str)
        assert len(token) > 0

    def test_verify_session_token(self):
        token = JWTService.issue_session_token(user_id="user-123", email="test@example.com")

        payload = JWTService.verify_session_token(token)

        assert payload is not None
        assert payload.get("sub") == "user-123"
        assert payload.get("email") == "test@example.com"
        assert payload.get("type") == "session"

    def test_default_ttl_is_seven_days(self):
        token = JWTService.issue_session_token(user_id="user-123", email="test@example.com")

        payload = JWTService.verify_session_token(token)

        assert payload["exp"] - payload["iat"] == settings.SESSION_TTL_DAYS * 24 * 60 * 60

    def test_expired_token_rejected(self):
        token = JWTService.issue_session_token(
            user_id="user-123",
            email="test@example.com",
            ttl=timedelta(seconds=-10),
        )

        assert JWTService.verify_session_token(token) is None

    def test_verify_invalid_token(self):
        assert JWTService.verify_token("invalid-token") is None

    def test_token_signed_with_other_key_rejected(self):
        forged = jwt.encode(
            {"sub": "user-123", "type": "session"},
            "some-other-secret-key-that-is-long-enough",
            algorithm=settings.JWT_ALGORITHM,
        )

        assert JWTService.verify_session_token(forged) is None

    def test_other_token_type_rejected(self):
        token = jwt.encode(
            {"sub": "user-123", "type": "refresh"},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )

        assert JWTService.verify_session_token(token) is None


# =============================================================================
# Password Hashing Tests
# =============================================================================


class TestPasswordHashing:
    """Tests for password hashing functionality."""

    def test_hash_password(self):
        hashed = AuthService.hash_password("TestPassword123")

        assert hashed != "TestPassword123"
        assert hashed.startswith("$2")

    def test_verify_correct_password(self):
        hashed = AuthService.hash_password("TestPassword123")

        assert AuthService.verify_password("TestPassword123", hashed) is True

    def test_verify_incorrect_password(self):
        hashed = AuthService.hash_password("TestPassword123")

        assert AuthService.verify_password("WrongPassword456", hashed) is False

    def test_different_hashes_for_same_password(self):
        hash1 = AuthService.hash_password("TestPassword123")
        hash2 = AuthService.hash_password("TestPassword123")

        assert hash1 != hash2  # Different salts

    def test_malformed_hash_does_not_verify(self):
        assert AuthService.verify_password("anything", "not-a-bcrypt-hash") is False


# =============================================================================
# AuthService Tests
# =============================================================================


class TestAuthService:
    @pytest.mark.asyncio
    async def test_signup_creates_user_and_token(self, fake_store):
        service = AuthService(fake_store)

        user, token = await service.signup(name="A", email="A@X.com", password="p")

        assert user.email == "a@x.com"
        assert fake_store.row(user.id)["name"] == "A"
        assert fake_store.row(user.id)["password_hash"] != "p"
        assert JWTService.verify_session_token(token)["sub"] == user.id

    @pytest.mark.asyncio
    async def test_duplicate_signup_is_conflict_and_leaves_record(self, fake_store):
        service = AuthService(fake_store)
        user, _ = await service.signup(name="A", email="a@x.com", password="p")
        before = dict(fake_store.row(user.id))

        with pytest.raises(Conflict) as exc:
            await service.signup(name="B", email="a@x.com", password="other")

        assert exc.value.status_code == 409
        assert exc.value.cause == "User with same email already exists"
        assert fake_store.row(user.id) == before
        assert len(fake_store.rows) == 1

    @pytest.mark.asyncio
    async def test_login_unknown_email_is_conflict(self, fake_store):
        service = AuthService(fake_store)

        with pytest.raises(Conflict) as exc:
            await service.login(email="nobody@x.com", password="p")

        assert exc.value.cause == "No account with given emailID found"

    @pytest.mark.asyncio
    async def test_login_wrong_password_is_credential_mismatch(self, fake_store):
        service = AuthService(fake_store)
        await service.signup(name="A", email="a@x.com", password="p")

        with pytest.raises(CredentialMismatch) as exc:
            await service.login(email="a@x.com", password="wrong")

        assert exc.value.status_code == 403
        assert exc.value.cause == "Incorrect Password"

    @pytest.mark.asyncio
    async def test_login_success_returns_token(self, fake_store):
        service = AuthService(fake_store)
        created, _ = await service.signup(name="A", email="a@x.com", password="p")

        user, token = await service.login(email="a@x.com", password="p")

        assert user.id == created.id
        assert JWTService.verify_session_token(token)["sub"] == created.id

    @pytest.mark.asyncio
    async def test_get_verified_user_missing(self, fake_store):
        service = AuthService(fake_store)

        with pytest.raises(AuthenticationFailure):
            await service.get_verified_user("missing-id")

    @pytest.mark.asyncio
    async def test_list_users_hides_password_hash(self, fake_store):
        fake_store.add_user(name="A", email="a@x.com")
        fake_store.add_user(name="B", email="b@x.com")
        service = AuthService(fake_store)

        users = await service.list_users()

        assert {u["email"] for u in users} == {"a@x.com", "b@x.com"}
        assert all(set(u) == {"id", "name", "email"} for u in users)


# =============================================================================
# Auth Schemas Tests
# =============================================================================


class TestAuthSchemas:
    """Tests for account request schemas."""

    def test_signup_request_valid(self):
        from app.schemas.user import SignupRequest

        request = SignupRequest(name="A", email="a@x.com", password="p")

        assert request.email == "a@x.com"

    def test_signup_request_invalid_email(self):
        from pydantic import ValidationError

        from app.schemas.user import SignupRequest

        with pytest.raises(ValidationError):
            SignupRequest(name="A", email="not-an-email", password="p")

    def test_signup_request_empty_password(self):
        from pydantic import ValidationError

        from app.schemas.user import SignupRequest

        with pytest.raises(ValidationError):
            SignupRequest(name="A", email="a@x.com", password="")

    def test_password_limit_counts_utf8_bytes(self):
        from pydantic import ValidationError

        from app.schemas.user import LoginRequest, SignupRequest

        assert SignupRequest(name="A", email="a@x.com", password="é" * 36).password == "é" * 36

        with pytest.raises(ValidationError):
            SignupRequest(name="A", email="a@x.com", password="é" * 37)
        with pytest.raises(ValidationError):
            LoginRequest(email="a@x.com", password="a" * 73)
