"""Services for qdrop module."""
from .api_client import HTTPAPIClient
from .identity import IdentityStore
from .organization import FormDefaults, OrganizationService
from .preferences import PreferenceStore
from .registry import BuildRegistry
from .transfer import PresignedUrlTransfer, build_object_name, public_url_for
from .validator import validate_artifact, validate_form, validate_session

__all__ = [
    "HTTPAPIClient",
    "IdentityStore",
    "FormDefaults",
    "OrganizationService",
    "PreferenceStore",
    "BuildRegistry",
    "PresignedUrlTransfer",
    "build_object_name",
    "public_url_for",
    "validate_artifact",
    "validate_form",
    "validate_session",
]
