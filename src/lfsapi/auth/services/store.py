"""In-memory token store, one record per flow kind."""

from __future__ import annotations

import asyncio

from lfsapi.auth.models.identity import FlowKind
from lfsapi.auth.models.tokens import TokenRecord


class TokenStore:
    """Holds the current token record for each flow kind.

    Owned by a single AuthorizationManager; nothing is shared across
    instances or persisted across restarts. Client credentials and
    authorization code tokens live in separate slots.
    """

    def __init__(self):
        self._records: dict[FlowKind, TokenRecord] = {
            kind: TokenRecord.empty() for kind in FlowKind
        }
        self._locks: dict[FlowKind, asyncio.Lock] = {}

    def get(self, flow_kind: FlowKind) -> TokenRecord:
        """Current record for a flow kind, possibly empty or expired."""
        return self._records[flow_kind]

    def put(self, flow_kind: FlowKind, record: TokenRecord) -> None:
        """Replace the record for a flow kind."""
        self._records[flow_kind] = record

    def clear(self, flow_kind: FlowKind) -> None:
        self._records[flow_kind] = TokenRecord.empty()

    def is_expired(self, flow_kind: FlowKind, now: float, leeway: float = 0.0) -> bool:
        return self._records[flow_kind].is_expired(now, leeway)

    def lock(self, flow_kind: FlowKind) -> asyncio.Lock:
        """Lock serializing renewals of one flow kind's record.

        Created lazily so the store can be built outside a running loop.
        """
        if flow_kind not in self._locks:
            self._locks[flow_kind] = asyncio.Lock()
        return self._locks[flow_kind]
