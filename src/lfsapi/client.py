"""High-level client for the Live for Speed JSON API.

Wraps the authorization manager and request gateway behind one object with
a method per endpoint and helpers for the API's numeric codes.
"""

from __future__ import annotations

from typing import Any

from lfsapi import logs
from lfsapi.api import lookups
from lfsapi.api.gateway import APIRequestGateway
from lfsapi.auth.manager import AuthorizationManager
from lfsapi.auth.models.flow import AuthorizationFlow, AuthorizationResponse
from lfsapi.auth.models.identity import FlowKind
from lfsapi.auth.models.tokens import TokenRecord
from lfsapi.config import DEFAULT_API_URL, DEFAULT_ID_URL, ClientConfig


VERSION = "0.1.0"


class LFSAPI:
    """Client for the LFS API.

    Which OAuth flow is used follows from the arguments:
    - client_id + client_secret: client credentials
    - plus redirect_uri: authorization code with client secret
    - client_id + redirect_uri + spa=True: authorization code with PKCE

    Example:
        async with LFSAPI("my-id", "my-secret") as api:
            hosts = await api.get_hosts()
    """

    version = VERSION

    def __init__(
        self,
        client_id: str,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        *,
        spa: bool = False,
        id_url: str = DEFAULT_ID_URL,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
    ):
        """Initialize the client.

        Raises:
            ConfigurationError: If the arguments are invalid or contradictory
        """
        config = ClientConfig.create(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            spa=spa,
            id_url=id_url,
            api_url=api_url,
            timeout=timeout,
        )
        self._setup(config, AuthorizationManager(config))

    @classmethod
    def from_config(
        cls, config: ClientConfig, manager: AuthorizationManager | None = None
    ) -> LFSAPI:
        """Build a client from an existing configuration and optional manager."""
        api = cls.__new__(cls)
        api._setup(config, manager or AuthorizationManager(config))
        return api

    def _setup(self, config: ClientConfig, manager: AuthorizationManager) -> None:
        self.config = config
        self.manager = manager
        self.gateway = APIRequestGateway(manager, config.api_url, timeout=config.timeout)

    @property
    def flow_kind(self) -> FlowKind:
        return self.manager.flow_kind

    def set_verbose(self, verbose: bool) -> LFSAPI:
        """Log debug messages."""
        logs.set_verbose(verbose)
        return self

    # Authorization

    def generate_auth_flow_url(
        self, scope: str, state: str | None = None
    ) -> AuthorizationFlow:
        """URL for the user to authorize at, plus the CSRF token to expect back."""
        return self.manager.build_authorization_url(scope, state)

    def handle_auth_flow_callback(
        self, callback_url: str, expected_state: str
    ) -> AuthorizationResponse:
        return self.manager.handle_authorization_callback(callback_url, expected_state)

    def use_auth_flow_code(self, code: str) -> LFSAPI:
        self.manager.use_authorization_code(code)
        return self

    async def get_auth_flow_tokens(self, code: str) -> TokenRecord:
        """Exchange the code from the authorization redirect for tokens."""
        return await self.manager.exchange_authorization_code(code)

    async def refresh_access_token(self, refresh_token: str | None = None) -> TokenRecord:
        return await self.manager.refresh_access_token(refresh_token)

    def get_pkce_verifier(self) -> str | None:
        return self.manager.get_pkce_verifier()

    def set_pkce_verifier(self, code_verifier: str) -> LFSAPI:
        self.manager.set_pkce_verifier(code_verifier)
        return self

    # Requests

    def _public_flow(self) -> FlowKind | None:
        # Public endpoints use the client credentials token whenever a secret is set
        if self.manager.identity.is_confidential:
            return FlowKind.CLIENT_CREDENTIALS
        return None

    async def make_request(
        self,
        endpoint: str,
        token: str | None = None,
        flow_kind: FlowKind | None = None,
    ) -> Any:
        """GET a full endpoint path and return the JSON response.

        Args:
            endpoint: Endpoint path, e.g. "vehiclemod/1A2B3C"
            token: Access token override
            flow_kind: Token space to use, defaults to the client's flow
        """
        return await self.gateway.call(
            endpoint, token_override=token, flow_kind=flow_kind
        )

    async def get_vehicle_mods(self, token: str | None = None) -> Any:
        """List all vehicle mods."""
        return await self.make_request("vehiclemod", token, self._public_flow())

    async def get_vehicle_mod(self, id: int | str, token: str | None = None) -> Any:
        return await self.make_request(f"vehiclemod/{id}", token, self._public_flow())

    async def get_hosts(self, token: str | None = None) -> Any:
        """List all hosts."""
        return await self.make_request("host", token, self._public_flow())

    async def get_host(self, id: int | str, token: str | None = None) -> Any:
        return await self.make_request(f"host/{id}", token, self._public_flow())

    async def get_user_info(self, token: str | None = None) -> Any:
        """Information about the authorized user (authorization code flows)."""
        return await self.make_request("userinfo", token)

    # Lookups

    @staticmethod
    def lookup_vehicle_class_type(id: int | str) -> str | None:
        return lookups.lookup(lookups.VEHICLE_CLASS_TYPES, id)

    @staticmethod
    def lookup_vehicle_ice_layout_type(id: int | str) -> str | None:
        return lookups.lookup(lookups.VEHICLE_ICE_LAYOUT_TYPES, id)

    @staticmethod
    def lookup_vehicle_drive_type(id: int | str) -> str | None:
        return lookups.lookup(lookups.VEHICLE_DRIVE_TYPES, id)

    @staticmethod
    def lookup_vehicle_shift_type(id: int | str) -> str | None:
        return lookups.lookup(lookups.VEHICLE_SHIFT_TYPES, id)

    @staticmethod
    def lookup_host_status(status: int | str) -> str | None:
        return lookups.lookup(lookups.HOST_STATUSES, status)

    @staticmethod
    def lookup_host_location(location: int | str) -> str | None:
        return lookups.lookup(lookups.HOST_LOCATIONS, location)

    # Lifecycle

    async def close(self) -> None:
        """Close all HTTP clients."""
        await self.gateway.close()
        await self.manager.close()

    async def __aenter__(self) -> LFSAPI:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
