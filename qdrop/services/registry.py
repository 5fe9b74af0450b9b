"""
Build Registry - Single Responsibility: persist build metadata to the document store.

Implements Repository Pattern for data access. Records live under
``{builds_root}/{organization_id}/{key}``; keys are assigned by the store and
sort in insertion order.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..errors import APIError, PersistenceError, RecordNotFoundError, RegistryError
from ..models import BuildRecord, parse_timestamp
from ..protocols import IAPIClient, IBuildRegistry

logger = logging.getLogger(__name__)


class BuildRegistry(IBuildRegistry):
    """
    Repository for build records in the document store.

    Implements Repository Pattern - abstracts data persistence.
    """

    def __init__(self, api_client: IAPIClient, builds_root: str = "builds"):
        """
        Initialize registry.

        Args:
            api_client: HTTP client for the document store
            builds_root: Top-level collection for build records
        """
        self._api = api_client
        self._root = builds_root.strip("/")

    def _collection(self, organization_id: str) -> str:
        return f"/{self._root}/{quote(organization_id, safe='')}"

    def _document(self, organization_id: str, key: str) -> str:
        return f"{self._collection(organization_id)}/{quote(key, safe='')}.json"

    async def create(self, record: BuildRecord) -> str:
        """
        Append a new record under the organization.

        Returns:
            Registry-assigned key
        """
        endpoint = f"{self._collection(record.organization_id)}.json"
        try:
            response = await self._api.post(endpoint, json=record.to_wire())
            key = response.json().get("name")
        except (APIError, httpx.HTTPError, ValueError, AttributeError) as exc:
            raise PersistenceError(f"Could not create build record: {exc}") from exc

        if not key:
            raise PersistenceError("Could not create build record: registry returned no key")

        logger.info("Created build record %s for %s", key, record.organization_id)
        return key

    async def find_most_recent_by_label(self, organization_id: str, label: str) -> Optional[str]:
        """
        Find the newest record carrying exactly this label.

        Compares parsed uploadedAt timestamps. On a tie the later key wins.

        Returns:
            Record key, or None when nothing matches
        """
        endpoint = f"{self._collection(organization_id)}.json"
        params = {"orderBy": json.dumps("label"), "equalTo": json.dumps(label)}
        try:
            response = await self._api.get(endpoint, params=params)
            documents = response.json()
        except (APIError, httpx.HTTPError, ValueError) as exc:
            raise RegistryError(f"Could not query builds for label {label!r}: {exc}") from exc

        return self.pick_most_recent(documents, label)

    @staticmethod
    def pick_most_recent(documents: Optional[Dict[str, Any]], label: str) -> Optional[str]:
        """Select the key with the maximum uploadedAt among exact label matches."""
        if not isinstance(documents, dict):
            return None

        latest_key: Optional[str] = None
        latest_time: Optional[datetime] = None
        for key in sorted(documents):
            doc = documents[key]
            if not isinstance(doc, dict) or doc.get("label") != label:
                continue
            uploaded_at = parse_timestamp(doc.get("uploadedAt"))
            if uploaded_at is None:
                logger.debug("Skipping build %s with unreadable uploadedAt", key)
                continue
            if latest_time is None or uploaded_at >= latest_time:
                latest_key, latest_time = key, uploaded_at
        return latest_key

    async def _read(self, organization_id: str, key: str) -> Optional[Dict[str, Any]]:
        """Raw document, or None when absent."""
        try:
            response = await self._api.get(self._document(organization_id, key))
            data = response.json()
        except (APIError, httpx.HTTPError, ValueError) as exc:
            raise RegistryError(f"Could not read build record {key}: {exc}") from exc
        return data if isinstance(data, dict) else None

    async def get(self, organization_id: str, key: str) -> Optional[BuildRecord]:
        """Point read of one record."""
        data = await self._read(organization_id, key)
        if data is None:
            return None
        try:
            return BuildRecord.from_wire(data)
        except (TypeError, ValueError) as exc:
            raise RegistryError(f"Build record {key} is malformed: {exc}") from exc

    async def update(self, key: str, record: BuildRecord) -> None:
        """
        Overwrite fields on an existing record.

        Only existence is checked; the stored fields are not parsed since
        they are about to be replaced.

        Raises:
            RecordNotFoundError: the key no longer exists
            PersistenceError: the read or the write failed
        """
        try:
            existing = await self._read(record.organization_id, key)
        except RegistryError as exc:
            raise PersistenceError(str(exc)) from exc
        if existing is None:
            raise RecordNotFoundError(key)

        try:
            await self._api.patch(self._document(record.organization_id, key), json=record.to_wire())
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Could not update build record {key}: {exc}") from exc

        logger.info("Updated build record %s for %s", key, record.organization_id)
