"""Organization service - remembers a validated organization id."""
import logging
from dataclasses import dataclass
from typing import Optional

from ..protocols import IIdentityStore, IPreferenceStore
from .preferences import LABEL_KEY, ORG_ID_KEY, SUBMITTER_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormDefaults:
    """Remembered values used to prefill the submit form."""
    organization_id: Optional[str] = None
    label: str = ""
    submitter_name: str = ""


class OrganizationService:
    """
    Validates and remembers the user's organization id.

    An id is only stored after the directory confirms it. Directory errors
    propagate as DirectoryUnavailableError so callers can tell them apart
    from "not found".
    """

    def __init__(self, identity: IIdentityStore, preferences: IPreferenceStore):
        self._identity = identity
        self._preferences = preferences

    def current(self) -> Optional[str]:
        return self._preferences.get(ORG_ID_KEY) or None

    async def save(self, organization_id: str) -> bool:
        """Validate and remember an id. Returns False if it does not exist."""
        organization_id = (organization_id or "").strip()
        if not organization_id:
            return False

        if not await self._identity.exists(organization_id):
            logger.info("Organization %s not found", organization_id)
            return False

        self._preferences.set(ORG_ID_KEY, organization_id)
        await self._preferences.save()
        logger.info("Organization set to %s", organization_id)
        return True

    async def update(self, new_organization_id: str) -> bool:
        """Re-validate only when the id actually changes."""
        new_organization_id = (new_organization_id or "").strip()
        if not new_organization_id or new_organization_id == self.current():
            return self.current() is not None
        return await self.save(new_organization_id)

    def form_defaults(self) -> FormDefaults:
        return FormDefaults(
            organization_id=self.current(),
            label=self._preferences.get(LABEL_KEY) or "",
            submitter_name=self._preferences.get(SUBMITTER_KEY) or "",
        )
