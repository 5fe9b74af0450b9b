"""
Identity Store - Single Responsibility: confirm an organization exists.

Nothing is cached. Identifiers can be revoked at any time, so every caller
gets a fresh lookup.
"""
import logging
from urllib.parse import quote

import httpx

from ..errors import APIError, DirectoryUnavailableError
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

# Characters the document store rejects in a path segment
_FORBIDDEN_KEY_CHARS = frozenset("/.#$[]")


def is_valid_key(value: str) -> bool:
    """True if the value can be used as a single document store key."""
    return bool(value) and not any(ch in _FORBIDDEN_KEY_CHARS for ch in value)


class IdentityStore:
    """
    Organization directory client.

    Implements IIdentityStore protocol.
    """

    def __init__(self, api_client: IAPIClient, root: str = "organizations"):
        """
        Initialize identity store.

        Args:
            api_client: HTTP client for the document store
            root: Collection holding one document per organization
        """
        self._api = api_client
        self._root = root

    async def exists(self, organization_id: str) -> bool:
        """
        Check whether the organization exists.

        Returns:
            False when the id is unknown (or cannot be a key at all)

        Raises:
            DirectoryUnavailableError: the lookup itself failed
        """
        organization_id = (organization_id or "").strip()
        if not is_valid_key(organization_id):
            logger.debug("Organization id %r is not a valid key", organization_id)
            return False

        endpoint = f"/{self._root}/{quote(organization_id, safe='')}.json"
        try:
            response = await self._api.get(endpoint)
            found = response.json() is not None
        except (APIError, httpx.HTTPError, ValueError) as exc:
            logger.error("Directory lookup failed for %s: %s", organization_id, exc)
            raise DirectoryUnavailableError(str(exc)) from exc

        logger.debug("Organization %s exists=%s", organization_id, found)
        return found
