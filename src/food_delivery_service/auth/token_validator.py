"""JWT validation for API and real-time authentication.

Tokens carry the user id in ``sub`` and the caller's role in ``role``. A token
without a role claim belongs to a customer.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from food_delivery_service.errors import AuthError
from food_delivery_service.models.auth_models import Principal, Role


class TokenValidator:
    """Validates bearer tokens and resolves them to a Principal."""

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        """Initialize validator with the signing configuration.

        Args:
            secret_key: Shared secret used to sign tokens
            algorithm: JWT signing algorithm

        Raises:
            ValueError: If secret_key is empty
        """
        if not secret_key:
            raise ValueError("A JWT secret key must be provided")

        self.secret_key = secret_key
        self.algorithm = algorithm

    def validate(self, token: str) -> Principal:
        """Decode a token and return the authenticated principal.

        Args:
            token: Encoded JWT

        Returns:
            Principal: Caller identity and role

        Raises:
            AuthError: If the token is malformed, expired, badly signed or
                lacks a subject or known role
        """
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthError("Invalid or expired token") from e

        user_id = claims.get("sub")
        if not user_id:
            raise AuthError("Token has no subject")

        try:
            role = Role(claims.get("role", Role.CUSTOMER.value))
        except ValueError as e:
            raise AuthError("Token has an unknown role") from e

        return Principal(user_id=str(user_id), role=role)

    def create_access_token(
        self, user_id: str, role: Role = Role.CUSTOMER, expires_minutes: int = 60
    ) -> str:
        """Issue a signed token for a user."""
        expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
        claims = {"sub": user_id, "role": role.value, "exp": expire}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
