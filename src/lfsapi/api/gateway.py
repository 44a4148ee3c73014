"""Resource endpoint gateway for the LFS JSON API."""

from __future__ import annotations

from typing import Any

import httpx

from lfsapi import logs
from lfsapi.auth.manager import AuthorizationManager
from lfsapi.auth.models.errors import ResourceRequestError, TransportError
from lfsapi.auth.models.identity import FlowKind

logger = logs.get_logger(__name__)


class APIRequestGateway:
    """Issues authorized GET requests against the API host.

    Tokens come from the authorization manager; responses are never cached.
    """

    def __init__(
        self,
        manager: AuthorizationManager,
        api_url: str,
        timeout: float = 30.0,
    ):
        self.manager = manager
        self.api_url = api_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def call(
        self,
        endpoint: str,
        token_override: str | None = None,
        flow_kind: FlowKind | None = None,
    ) -> Any:
        """GET an endpoint path and return its parsed JSON body.

        The bearer token is resolved before any request is sent, so a failed
        token exchange never results in a request with an empty token.

        Args:
            endpoint: Path below the API host, e.g. "host/123"
            token_override: Bearer token to use instead of the managed one
            flow_kind: Token space to draw from, defaults to the manager's flow

        Returns:
            Parsed JSON payload

        Raises:
            ResourceRequestError: If the API answers with a non-2xx status
            TransportError: If the API host cannot be reached
            TokenExchangeError: If no token could be obtained
        """
        token = await self.manager.ensure_token(
            flow_kind=flow_kind, token_override=token_override
        )
        url = f"{self.api_url}/{endpoint.lstrip('/')}"

        logger.debug(f"Make request to {endpoint}")

        try:
            response = await self._http_client.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request to {endpoint} timed out")
            raise TransportError(f"Timed out requesting {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Request to {endpoint} failed: {e}")
            raise TransportError(f"HTTP error requesting {endpoint}: {e}") from e

        return self._parse_response(endpoint, response)

    def _parse_response(self, endpoint: str, response: httpx.Response) -> Any:
        is_json = True
        try:
            body = response.json()
        except ValueError:
            is_json = False
            body = response.text

        if 200 <= response.status_code < 300:
            if not is_json:
                raise ResourceRequestError(
                    f"{endpoint} returned a non-JSON body",
                    status_code=response.status_code,
                    body=body,
                )
            return body

        logger.warning(f"Request to {endpoint} failed with {response.status_code}")
        raise ResourceRequestError(
            f"{endpoint} returned {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    async def close(self) -> None:
        await self._http_client.aclose()
