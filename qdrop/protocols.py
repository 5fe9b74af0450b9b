"""
Protocols (Interfaces) for Dependency Inversion.

Following Interface Segregation Principle - small, focused interfaces.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Callable, Protocol, runtime_checkable

from .models import ArtifactFile, AuthorizationGrant, BuildRecord

ByteProgressCallback = Callable[[int, int], Any]


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for API operations."""

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        """GET request to API."""
        ...

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API."""
        ...

    async def patch(self, endpoint: str, json: Dict) -> Any:
        """PATCH request to API."""
        ...


@runtime_checkable
class IIdentityStore(Protocol):
    """Interface for organization directory lookups."""

    async def exists(self, organization_id: str) -> bool:
        """Return True if the organization exists."""
        ...


@runtime_checkable
class IArtifactTransfer(Protocol):
    """Interface for the two-phase artifact transfer."""

    async def request_authorization(self, proposed_name: str, content_type: str) -> AuthorizationGrant:
        """Obtain a write credential for the proposed object name."""
        ...

    async def transfer(
        self,
        artifact: ArtifactFile,
        grant: AuthorizationGrant,
        on_progress: Optional[ByteProgressCallback] = None,
    ) -> str:
        """Send the bytes and return the public retrieval URL."""
        ...


class IBuildRegistry(ABC):
    """Interface for build metadata storage (Repository Pattern)."""

    @abstractmethod
    async def create(self, record: BuildRecord) -> str:
        """Append a record, return the registry-assigned key."""
        pass

    @abstractmethod
    async def find_most_recent_by_label(self, organization_id: str, label: str) -> Optional[str]:
        """Key of the newest record carrying the label, or None."""
        pass

    @abstractmethod
    async def update(self, key: str, record: BuildRecord) -> None:
        """Overwrite an existing record in place."""
        pass


class IPreferenceStore(ABC):
    """Interface for client-side form prefill values."""

    @abstractmethod
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def save(self) -> None:
        pass
