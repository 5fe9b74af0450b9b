"""
Models for qdrop module.

Immutable dataclasses following Single Responsibility Principle.
"""
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple

from .errors import ErrorKind

mimetypes.add_type("application/vnd.android.package-archive", ".apk")

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class SubmitStatus(Enum):
    """Submit operation status."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ArtifactFile:
    """The binary package selected for upload."""
    path: Path
    name: str
    size: int

    @classmethod
    def from_path(cls, path) -> "ArtifactFile":
        """Describe a local file. A missing file has size 0."""
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        return cls(path=path, name=path.name, size=size)

    @property
    def extension(self) -> str:
        """Lowercase extension without the dot ("apk")."""
        return Path(self.name).suffix.lower().lstrip(".")

    @property
    def content_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class FormFields:
    """Raw form values as typed by the user."""
    version: str = ""
    label: str = ""
    changelog: str = ""
    submitter_name: str = ""

    def get(self, name: str) -> str:
        return (getattr(self, name, "") or "").strip()

    def stripped(self) -> "FormFields":
        return FormFields(
            version=self.get("version"),
            label=self.get("label"),
            changelog=self.get("changelog"),
            submitter_name=self.get("submitter_name"),
        )


@dataclass(frozen=True)
class Session:
    """
    Everything one submit needs.

    Replaces the page-global "current organization" with an explicit value.
    """
    organization_id: str
    fields: FormFields
    artifact: Optional[ArtifactFile] = None


@dataclass(frozen=True)
class AuthorizationGrant:
    """Time-limited write credential issued by the upload broker."""
    url: str
    object_name: str
    content_type: str


@dataclass(frozen=True)
class BuildRecord:
    """Immutable metadata record for one uploaded artifact."""
    organization_id: str
    version: str
    label: str
    artifact_url: str
    file_name: str
    file_size_bytes: int
    uploaded_at: datetime
    changelog: str = ""
    submitter_name: str = ""
    is_replacement: bool = False

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the registry document format."""
        return {
            "organizationId": self.organization_id,
            "version": self.version,
            "label": self.label,
            "changelog": self.changelog,
            "submitterName": self.submitter_name,
            "artifactUrl": self.artifact_url,
            "fileName": self.file_name,
            "fileSizeBytes": self.file_size_bytes,
            "uploadedAt": self.uploaded_at.isoformat(),
            "isReplacement": self.is_replacement,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "BuildRecord":
        return cls(
            organization_id=data.get("organizationId", ""),
            version=data.get("version", ""),
            label=data.get("label", ""),
            changelog=data.get("changelog") or "",
            submitter_name=data.get("submitterName") or "",
            artifact_url=data.get("artifactUrl", ""),
            file_name=data.get("fileName", ""),
            file_size_bytes=int(data.get("fileSizeBytes") or 0),
            uploaded_at=parse_timestamp(data.get("uploadedAt")) or datetime.fromtimestamp(0, timezone.utc),
            is_replacement=bool(data.get("isReplacement", False)),
        )


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp (trailing "Z" allowed) or epoch milliseconds.

    Naive values are UTC. Returns None for anything unreadable.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Violation:
    """One validation problem."""
    kind: str  # invalid_file_type, file_too_large, missing_field, missing_file
    message: str
    field: Optional[str] = None


@dataclass(frozen=True)
class SubmitResult:
    """Immutable result of a submit operation."""
    status: SubmitStatus
    message: str
    record: Optional[BuildRecord] = None
    record_key: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    violations: Tuple[Violation, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.status == SubmitStatus.SUCCESS

    @classmethod
    def ok(cls, record: BuildRecord, record_key: str, message: str):
        return cls(
            status=SubmitStatus.SUCCESS,
            message=message,
            record=record,
            record_key=record_key,
        )

    @classmethod
    def fail(cls, error_kind: ErrorKind, message: str, violations=()):
        return cls(
            status=SubmitStatus.FAILED,
            message=message,
            error_kind=error_kind,
            violations=tuple(violations),
        )


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration, loaded once at startup."""
    broker_url: str = "http://127.0.0.1:3000"
    database_url: str = ""
    database_auth: Optional[str] = None
    builds_root: str = "builds"
    public_base_url: Optional[str] = None
    allowed_extensions: Tuple[str, ...] = (".apk",)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    required_fields: Tuple[str, ...] = ("version", "label", "submitter_name")
    chunk_size: int = 256 * 1024
    timeout: float = 60.0
    preferences_path: Optional[Path] = None

    def is_allowed_name(self, name: str) -> bool:
        """Check the file name against the allowed extensions (case-insensitive)."""
        lowered = name.lower()
        return any(lowered.endswith(ext.lower()) for ext in self.allowed_extensions)
