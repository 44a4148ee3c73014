"""CSRF state generation and validation for the authorization redirect."""

from __future__ import annotations

import secrets
import uuid

from lfsapi.auth.models.errors import StateValidationError


def generate_csrf_token() -> str:
    """Generate a CSRF token to send as the OAuth state parameter.

    Returns:
        A random version 4 UUID string
    """
    return str(uuid.uuid4())


def validate_state(expected: str, actual: str | None) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter from callback URL

    Raises:
        StateValidationError: If state is missing or doesn't match
    """
    if actual is None:
        raise StateValidationError(
            "Authorization server callback missing required state parameter"
        )
    if not secrets.compare_digest(expected, actual):
        raise StateValidationError("State parameter mismatch - possible CSRF attack")
