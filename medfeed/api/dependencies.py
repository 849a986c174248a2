"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Header, Request

from medfeed.api.exceptions import AuthError, ValidationError
from medfeed.personalization.catalog import is_valid_id
from medfeed.personalization.engine import PersonalizationServices


def get_services(request: Request) -> PersonalizationServices:
    return request.app.state.services


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Authenticated user forwarded by the gateway.

    Raises:
        AuthError: If the ``x-user-id`` header is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthError()
    return x_user_id.strip()


def optional_user(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    if not x_user_id or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_object_id(value: Optional[str], label: str = "item ID") -> str:
    """Return ``value`` if it is a well-formed ObjectId.

    Raises:
        ValidationError: If the value is missing or malformed.
    """
    if not value or not is_valid_id(value):
        raise ValidationError(f"Invalid {label}", details={"value": value})
    return value
