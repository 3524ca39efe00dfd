"""Tenant (organisation) discovery through the connections endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from xerogate.auth.credential_store import TenantStore
from xerogate.auth.token_client import bearer_headers
from xerogate.exceptions import (
    MalformedConnections,
    NoTenantLinked,
    ProviderUnreachable,
    StorageUnavailable,
    TenantLookupFailed,
    excerpt,
)
from xerogate.models import Connection, Settings, TenantSelection

logger = logging.getLogger(__name__)


class TenantResolver:
    """Picks the organisation API calls run against.

    The policy is fixed: the first connection returned by the provider wins.
    There is no disambiguation prompt.
    """

    def __init__(self, settings: Settings, store: TenantStore) -> None:
        self._settings = settings
        self._store = store

    def list_connections(self, access_token: str) -> list[Connection]:
        """Fetch and validate every connection visible to *access_token*.

        Raises:
            TenantLookupFailed: On a non-2xx reply.
            MalformedConnections: If the body is not a JSON array of
                objects carrying a ``tenantId``.
            ProviderUnreachable: On a network failure.
        """
        url = self._settings.connections_url
        try:
            response = httpx.get(
                url,
                headers=bearer_headers(access_token),
                timeout=self._settings.http_timeout,
            )
        except httpx.HTTPError as exc:
            raise ProviderUnreachable(f"Connections lookup failed: {exc}") from exc

        if not response.is_success:
            raise TenantLookupFailed(response.status_code, excerpt(response.text))

        try:
            body: Any = response.json()
        except ValueError:
            raise MalformedConnections(excerpt(response.text)) from None
        if not isinstance(body, list):
            raise MalformedConnections(excerpt(response.text))

        try:
            return [Connection.model_validate(entry) for entry in body]
        except ValidationError:
            raise MalformedConnections(excerpt(response.text)) from None

    def resolve(self, access_token: str) -> str:
        """Select the first linked organisation and persist the choice.

        Returns:
            The selected tenant id.

        Raises:
            NoTenantLinked: If the user has no connected organisation.
            MalformedConnections: If the response is not a JSON array.
        """
        connections = self.list_connections(access_token)
        if not connections:
            raise NoTenantLinked()

        tenant_id = connections[0].tenant_id
        if not tenant_id.strip():
            raise MalformedConnections("first connection has an empty tenantId")
        if len(connections) > 1:
            logger.info(
                "%d organisations linked; using the first (%s)",
                len(connections),
                connections[0].tenant_name or tenant_id,
            )

        try:
            self._store.save(TenantSelection(tenant_id=tenant_id))
        except StorageUnavailable as exc:
            logger.warning("Tenant selected but not saved: %s", exc)
        return tenant_id
