"""Minimal accounting API client built on the session gate.

This module provides :class:`XeroClient`, a thin wrapper around
:class:`httpx.Client` that calls
:meth:`~xerogate.auth.session.SessionGate.authenticate` before every request
and injects the bearer token and ``xero-tenant-id`` headers. It carries a
single endpoint wrapper, :meth:`XeroClient.organisations`, used by the
``xerogate smoke`` command to prove that a login works end to end. Quote,
contact and PDF calls live with the collaborators that need them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from xerogate.auth.session import SessionGate
from xerogate.exceptions import ApiError, ProviderUnreachable, excerpt

logger = logging.getLogger(__name__)

ACCOUNTING_PREFIX = "/api.xro/2.0"


class XeroClient:
    """Synchronous accounting API client.

    Must be used as a context manager so the underlying transport is closed.

    Args:
        gate: Supplies a fresh token and tenant before each request.
        timeout: Per-request timeout in seconds.

    Example::

        with XeroClient(create_gate()) as client:
            orgs = client.organisations()
    """

    def __init__(self, gate: SessionGate, timeout: Optional[float] = None) -> None:
        self._gate = gate
        self._timeout = timeout
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> XeroClient:
        settings = self._gate.settings
        self._client = httpx.Client(
            base_url=settings.api_base,
            timeout=self._timeout or settings.http_timeout,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET *path* (relative to the API base) and return the decoded JSON.

        Raises:
            AuthError: Propagated unchanged from the gate; no request is sent.
            ApiError: On a non-2xx response or a non-JSON body.
            ProviderUnreachable: On network failures.
        """
        if self._client is None:
            raise RuntimeError("XeroClient must be used as a context manager")

        auth = self._gate.authenticate()
        headers = dict(auth.headers)
        headers["Accept"] = "application/json"

        logger.debug("GET %s", path)
        try:
            response = self._client.get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderUnreachable(f"GET {path} failed: {exc}") from exc

        if not response.is_success:
            raise ApiError(
                f"GET {path} failed with HTTP {response.status_code}: {excerpt(response.text)}",
                http_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            raise ApiError(
                f"GET {path} returned a non-JSON body: {excerpt(response.text)}",
                http_status=response.status_code,
            ) from None

    def organisations(self) -> list[dict[str, Any]]:
        """Return the ``Organisations`` list of the selected tenant."""
        body = self.get(f"{ACCOUNTING_PREFIX}/Organisations")
        if not isinstance(body, dict):
            raise ApiError("Organisations response is not a JSON object")
        return list(body.get("Organisations", []))
