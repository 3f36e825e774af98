"""FastAPI dependencies for bearer token authentication.

Provides dependency functions that resolve the caller of an endpoint to a
Principal and enforce the admin role.
"""

from typing import Annotated

from fastapi import Header

from food_delivery_service.auth.token_validator import TokenValidator
from food_delivery_service.errors import AuthError, ConfigurationError, ForbiddenError
from food_delivery_service.models.auth_models import Principal


def get_principal_from_header(
    authorization: Annotated[str | None, Header()] = None,
    validator: TokenValidator | None = None,
) -> Principal:
    """FastAPI dependency to authenticate the Authorization bearer token.

    Args:
        authorization: Value of the Authorization header (injected by FastAPI)
        validator: TokenValidator instance (injected as dependency)

    Returns:
        Principal: The authenticated caller

    Raises:
        AuthError: If the header is missing, not a bearer token, or invalid
    """
    if not authorization:
        raise AuthError("Missing bearer token")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Authorization header must be 'Bearer <token>'")

    if validator is None:
        raise ConfigurationError("Token validator is not configured")

    return validator.validate(token)


def require_admin(principal: Principal) -> Principal:
    """Return the principal if it has the admin role.

    Raises:
        ForbiddenError: If the principal is not an admin
    """
    if not principal.is_admin:
        raise ForbiddenError("Admin role required")
    return principal
