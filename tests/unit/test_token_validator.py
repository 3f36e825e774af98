"""Unit tests for TokenValidator."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from food_delivery_service.auth.token_validator import TokenValidator
from food_delivery_service.errors import AuthError
from food_delivery_service.models.auth_models import Role

SECRET = "test-secret"


@pytest.mark.unit
class TestTokenValidator:
    """Test suite for TokenValidator."""

    @pytest.fixture
    def validator(self) -> TokenValidator:
        return TokenValidator(secret_key=SECRET)

    def test_requires_secret(self) -> None:
        with pytest.raises(ValueError, match="secret"):
            TokenValidator(secret_key="")

    def test_round_trip_admin(self, validator: TokenValidator) -> None:
        token = validator.create_access_token("admin_1", role=Role.ADMIN)

        principal = validator.validate(token)

        assert principal.user_id == "admin_1"
        assert principal.is_admin

    def test_missing_role_defaults_to_customer(self, validator: TokenValidator) -> None:
        token = jwt.encode({"sub": "user_123"}, SECRET, algorithm="HS256")

        principal = validator.validate(token)

        assert principal.role == Role.CUSTOMER

    def test_expired_token(self, validator: TokenValidator) -> None:
        token = jwt.encode(
            {"sub": "user_123", "exp": datetime.now(UTC) - timedelta(minutes=1)},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(AuthError):
            validator.validate(token)

    def test_wrong_signature(self, validator: TokenValidator) -> None:
        token = jwt.encode({"sub": "user_123"}, "another-secret", algorithm="HS256")

        with pytest.raises(AuthError):
            validator.validate(token)

    def test_malformed_token(self, validator: TokenValidator) -> None:
        with pytest.raises(AuthError):
            validator.validate("not-a-jwt")

    def test_missing_subject(self, validator: TokenValidator) -> None:
        token = jwt.encode({"role": "admin"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthError, match="subject"):
            validator.validate(token)

    def test_unknown_role(self, validator: TokenValidator) -> None:
        token = jwt.encode({"sub": "user_123", "role": "courier"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthError, match="role"):
            validator.validate(token)
