"""Login and logout against the backend's auth endpoint."""

from __future__ import annotations

import logging
from typing import Any

from taller_client.credentials import TokenSource
from taller_client.errors import AuthError
from taller_client.executor import RequestExecutor
from taller_client.forms import LoginForm, validate_form
from taller_client.query_cache import QueryCache

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"


async def login(
    executor: RequestExecutor, tokens: TokenSource, username: str, password: str
) -> dict[str, Any]:
    """Exchange credentials for a bearer token and store it."""
    payload = validate_form(LoginForm, {"username": username, "password": password})
    response = await executor.execute("POST", LOGIN_PATH, payload)
    if not isinstance(response, dict):
        raise AuthError("login response is not an object")
    token = response.get("token")
    if not isinstance(token, str) or not token.strip():
        raise AuthError("login response missing token")
    tokens.write(token)
    user = response.get("user")
    logger.info("logged in as %s", username)
    return user if isinstance(user, dict) else {}


def logout(tokens: TokenSource, cache: QueryCache | None = None) -> None:
    """Forget the stored token and, when given, every cached read."""
    tokens.clear()
    if cache is not None:
        cache.clear()
