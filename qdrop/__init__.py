"""
QDrop - Build upload orchestration for organization build registries.

Follows SOLID principles:
- Single Responsibility: Each service handles one concern
- Liskov Substitution: Services implement protocols
- Interface Segregation: Small focused interfaces
- Dependency Injection: Services injected into orchestrator

Usage:
    from qdrop import UploadOrchestrator, UploadConfig, Session, FormFields, ArtifactFile

    config = UploadConfig(
        broker_url="https://dashboard.example.com",
        database_url="https://example-db.firebaseio.com",
    )
    session = Session(
        organization_id="acme",
        fields=FormFields(version="1.0", label="beta", submitter_name="Sam"),
        artifact=ArtifactFile.from_path("app-1.0.apk"),
    )

    async with UploadOrchestrator(config) as orchestrator:
        result = await orchestrator.submit(session, on_progress=print)

        # Replace the most recent "beta" build instead of adding one
        result = await orchestrator.submit(session, replace_previous=True)
"""
from .errors import ErrorKind, UploadError
from .models import (
    ArtifactFile,
    BuildRecord,
    FormFields,
    Session,
    SubmitResult,
    SubmitStatus,
    UploadConfig,
    Violation,
)
from .orchestrator import ProgressUpdate, UploadOrchestrator, UploadPhase
from .services import (
    BuildRegistry,
    IdentityStore,
    OrganizationService,
    PreferenceStore,
    PresignedUrlTransfer,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadPhase",
    "ProgressUpdate",
    # Models
    "ArtifactFile",
    "BuildRecord",
    "FormFields",
    "Session",
    "SubmitResult",
    "SubmitStatus",
    "UploadConfig",
    "Violation",
    # Errors
    "ErrorKind",
    "UploadError",
    # Services
    "BuildRegistry",
    "IdentityStore",
    "OrganizationService",
    "PreferenceStore",
    "PresignedUrlTransfer",
]
