"""Submit workflow - validate, verify, transfer, persist."""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from ..errors import (
    AuthorizationDeniedError,
    DirectoryUnavailableError,
    ErrorKind,
    OrganizationNotFoundError,
    PersistenceError,
    RecordNotFoundError,
    RegistryError,
    TransferFailedError,
    UploadError,
    ValidationError,
)
from ..models import ArtifactFile, BuildRecord, FormFields, SubmitResult, UploadConfig
from ..protocols import IArtifactTransfer, IBuildRegistry, IIdentityStore, IPreferenceStore
from ..services.preferences import LABEL_KEY, SUBMITTER_KEY
from ..services.transfer import build_object_name
from ..services.validator import validate_session
from ..utils.events import EventEmitter
from .models import (
    AUTHORIZED,
    IDENTITY_CHECKED,
    PERSISTED,
    TRANSFER_DONE,
    UploadPhase,
    UploadSession,
)
from .progress import ProgressCallback, ProgressReporter

logger = logging.getLogger(__name__)

MB = 1024 * 1024

MESSAGES = {
    ErrorKind.ORGANIZATION_NOT_FOUND: (
        "Invalid organization ID. Upload not allowed. Please contact your administrator."
    ),
    ErrorKind.DIRECTORY_UNAVAILABLE: "Error validating organization. Please try again.",
    ErrorKind.SESSION_IN_PROGRESS: "An upload is already in progress. Wait for it to finish.",
    ErrorKind.CANCELLED: "Upload cancelled. Nothing was recorded.",
}


def _describe_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


def _unexpected(error_cls, step: str, exc: Exception) -> UploadError:
    logger.error("Unexpected %s error: %s", step, _describe_exception(exc), exc_info=True)
    return error_cls(_describe_exception(exc))


def transfer_percent(sent: int, total: int) -> int:
    """Map bytes sent onto the transfer band of the progress bar."""
    if total <= 0:
        return TRANSFER_DONE
    fraction = min(1.0, sent / total)
    return AUTHORIZED + round(fraction * (TRANSFER_DONE - AUTHORIZED))


class SubmitHandler:
    """
    Runs one submit through the state machine. Never raises for domain failures.

    Each step raises an UploadError subclass; run() reports its ``kind``.
    Unexpected exceptions are wrapped in the error class of the step they
    happened in.
    """

    def __init__(
        self,
        identity: IIdentityStore,
        registry: IBuildRegistry,
        transfer: IArtifactTransfer,
        config: UploadConfig,
        preferences: Optional[IPreferenceStore] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._identity = identity
        self._registry = registry
        self._transfer = transfer
        self._config = config
        self._preferences = preferences
        self._events = events or EventEmitter()

    async def _fail(self, reporter: ProgressReporter, error: UploadError) -> SubmitResult:
        kind = error.kind
        message = MESSAGES.get(kind) or _describe_exception(error)
        await reporter.report(UploadPhase.FAILED, message=message)
        result = SubmitResult.fail(kind, message, getattr(error, "violations", ()))
        logger.error("Submit failed (%s): %s", kind.value, message)
        await self._events.emit("fail", result)
        return result

    async def run(
        self,
        upload: UploadSession,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SubmitResult:
        reporter = ProgressReporter(upload, on_progress, self._events)
        fields = upload.session.fields.stripped()
        try:
            record, record_key = await self._submit(upload, fields, reporter)
        except UploadError as exc:
            return await self._fail(reporter, exc)

        await reporter.report(UploadPhase.COMPLETE, PERSISTED, "Upload complete!")
        await self._remember(fields)

        message = f"Build {fields.version} uploaded successfully! Build ID: {record_key}"
        result = SubmitResult.ok(record, record_key, message)
        logger.info(message)
        await self._events.emit("complete", result)
        return result

    async def _submit(
        self,
        upload: UploadSession,
        fields: FormFields,
        reporter: ProgressReporter,
    ) -> Tuple[BuildRecord, str]:
        session = upload.session

        # 1. Validate input, no network yet
        await reporter.report(UploadPhase.VALIDATING, 0, "Validating input...")
        violations = validate_session(session, self._config)
        if violations:
            raise ValidationError(violations)

        organization_id = session.organization_id.strip()
        artifact = session.artifact

        # 2. Re-check the organization every time
        await self._check_identity(organization_id, reporter)

        # 3. Replacement target; absence (or a failed lookup) means create
        target_key = None
        if upload.replace_previous:
            target_key = await self._resolve_target(organization_id, fields.label, reporter)

        # 4. Authorization + bytes
        artifact_url = await self._send(organization_id, fields, artifact, reporter)

        # 5. Metadata
        await reporter.report(UploadPhase.PERSISTING, TRANSFER_DONE, "Saving metadata...")
        record = BuildRecord(
            organization_id=organization_id,
            version=fields.version,
            label=fields.label,
            changelog=fields.changelog,
            submitter_name=fields.submitter_name,
            artifact_url=artifact_url,
            file_name=artifact.name,
            file_size_bytes=artifact.size,
            uploaded_at=datetime.now(timezone.utc),
            is_replacement=target_key is not None,
        )
        record_key = await self._persist(record, target_key)
        return record, record_key

    async def _check_identity(self, organization_id: str, reporter: ProgressReporter) -> None:
        await reporter.report(UploadPhase.CHECKING_IDENTITY, message="Verifying organization...")
        try:
            exists = await self._identity.exists(organization_id)
        except UploadError:
            raise
        except Exception as exc:
            raise _unexpected(DirectoryUnavailableError, "directory", exc) from exc
        if not exists:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")
        await reporter.report(UploadPhase.CHECKING_IDENTITY, IDENTITY_CHECKED, "Organization verified")

    async def _resolve_target(self, organization_id: str, label: str, reporter: ProgressReporter) -> Optional[str]:
        await reporter.report(
            UploadPhase.RESOLVING_TARGET,
            message=f"Looking up latest '{label}' build...",
        )
        try:
            target_key = await self._registry.find_most_recent_by_label(organization_id, label)
        except Exception as exc:
            logger.warning(
                "Could not resolve latest build for label %s, creating a new record: %s",
                label,
                _describe_exception(exc),
            )
            return None
        if target_key is None:
            logger.info("No previous build labelled %s, creating a new record", label)
        return target_key

    async def _send(
        self,
        organization_id: str,
        fields: FormFields,
        artifact: ArtifactFile,
        reporter: ProgressReporter,
    ) -> str:
        object_name = build_object_name(organization_id, fields.version, artifact.extension)
        await reporter.report(UploadPhase.TRANSFERRING, message="Getting upload URL...")
        try:
            grant = await self._transfer.request_authorization(object_name, artifact.content_type)
        except UploadError:
            raise
        except Exception as exc:
            raise _unexpected(AuthorizationDeniedError, "authorization", exc) from exc
        await reporter.report(UploadPhase.TRANSFERRING, AUTHORIZED, "Starting upload...")

        async def on_bytes(sent: int, total: int) -> None:
            await reporter.report(
                UploadPhase.TRANSFERRING,
                transfer_percent(sent, total),
                f"Uploading... {sent / MB:.1f}MB / {total / MB:.1f}MB",
                bytes_sent=sent,
                bytes_total=total,
            )

        try:
            return await self._transfer.transfer(artifact, grant, on_bytes)
        except UploadError:
            raise
        except Exception as exc:
            raise _unexpected(TransferFailedError, "transfer", exc) from exc

    async def _persist(self, record: BuildRecord, target_key: Optional[str]) -> str:
        url = record.artifact_url
        try:
            if target_key is not None:
                await self._registry.update(target_key, record)
                return target_key
            return await self._registry.create(record)
        except RecordNotFoundError as exc:
            message = (
                f"Build file was uploaded to {url} but not recorded: "
                f"the build it replaces ({exc.key}) no longer exists. "
                "Resubmit or record it manually."
            )
            raise RecordNotFoundError(exc.key, message) from exc
        except Exception as exc:
            if not isinstance(exc, RegistryError):
                logger.error("Unexpected registry error: %s", _describe_exception(exc), exc_info=True)
            message = (
                f"Build file was uploaded to {url} but its metadata could not be saved "
                f"({_describe_exception(exc)}). The build is not recorded; reconcile it manually."
            )
            raise PersistenceError(message) from exc

    async def _remember(self, fields: FormFields) -> None:
        """Keep label and submitter for the next form. Failures only log."""
        if self._preferences is None:
            return
        self._preferences.set(LABEL_KEY, fields.label)
        if fields.submitter_name:
            self._preferences.set(SUBMITTER_KEY, fields.submitter_name)
        try:
            await self._preferences.save()
        except OSError as exc:
            logger.warning("Could not save preferences: %s", exc)
