"""Durable storage for the token pair and the selected tenant.

Two small JSON documents live under the configured data directory:

* ``xero_tokens.json`` -- ``{"access_token", "refresh_token", "expires_at"}``
* ``xero_tenant.json`` -- ``{"tenantId"}``

They are kept apart because the tenant selection survives token rotation.
Files are written atomically via :func:`xerogate.config.atomic_write` with
``0o600`` permissions, so a concurrent reader sees either the previous
record or the new one. A missing, unreadable or corrupt file loads as
``None``; it is never an error.

See Also:
    :class:`~xerogate.auth.session.SessionGate` -- the only writer.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from xerogate.config import atomic_write
from xerogate.exceptions import StorageUnavailable
from xerogate.models import Credential, TenantSelection

logger = logging.getLogger(__name__)

TOKEN_FILENAME = "xero_tokens.json"
TENANT_FILENAME = "xero_tenant.json"

RecordT = TypeVar("RecordT", bound=BaseModel)


class _JsonRecordStore(Generic[RecordT]):
    """Load/save one pydantic record as a JSON file."""

    model: type[RecordT]
    filename: str

    def __init__(self, data_dir: Path) -> None:
        self._path = Path(data_dir) / self.filename

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[RecordT]:
        """Return the stored record, or ``None`` if absent or unparsable."""
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return self.model.model_validate(data)
        except (json.JSONDecodeError, ValidationError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable %s: %s", self._path, exc)
            return None

    def save(self, record: RecordT) -> None:
        """Replace the stored record atomically.

        Raises:
            StorageUnavailable: If the data directory cannot be written.
        """
        text = json.dumps(self._dump(record), indent=2) + "\n"
        try:
            atomic_write(self._path, text, mode=0o600)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write {self._path}: {exc}") from exc
        logger.debug("Saved %s", self._path)

    def clear(self) -> None:
        """Delete the stored record. No-op when there is none."""
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot remove {self._path}: {exc}") from exc

    def _dump(self, record: RecordT) -> dict:
        return record.model_dump(mode="json", by_alias=True)


class TokenStore(_JsonRecordStore[Credential]):
    """Persists the :class:`~xerogate.models.Credential`.

    ``expires_at`` is written as an ISO-8601 UTC timestamp. Integer epoch
    milliseconds from older token files are also accepted on load.

    Example::

        store = TokenStore(Path("data"))
        store.save(credential)
        assert store.load().access_token == credential.access_token
    """

    model = Credential
    filename = TOKEN_FILENAME


class TenantStore(_JsonRecordStore[TenantSelection]):
    """Persists the :class:`~xerogate.models.TenantSelection`."""

    model = TenantSelection
    filename = TENANT_FILENAME

    def load(self) -> Optional[TenantSelection]:
        selection = super().load()
        if selection is not None and not selection.tenant_id.strip():
            return None
        return selection
