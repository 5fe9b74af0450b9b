"""
Validator - Single Responsibility: check artifact and form input.

Pure functions over the input, no network calls. Every problem found is
returned so the caller can show them all at once.
"""
from typing import List, Optional

from ..models import ArtifactFile, FormFields, UploadConfig, Violation

INVALID_FILE_TYPE = "invalid_file_type"
FILE_TOO_LARGE = "file_too_large"
MISSING_FIELD = "missing_field"
MISSING_FILE = "missing_file"

FIELD_LABELS = {
    "organization_id": "Organization ID",
    "version": "Version",
    "label": "Label",
    "changelog": "Changelog",
    "submitter_name": "User",
}


def _human_mib(size: int) -> str:
    return f"{size / 1024 / 1024:.0f}MB"


def validate_artifact(artifact: ArtifactFile, config: UploadConfig) -> List[Violation]:
    """Check file type and size."""
    violations = []
    if not config.is_allowed_name(artifact.name):
        allowed = ", ".join(config.allowed_extensions)
        violations.append(Violation(INVALID_FILE_TYPE, f"Only {allowed} files are allowed"))
    if artifact.size > config.max_file_size:
        violations.append(
            Violation(FILE_TOO_LARGE, f"File size must be less than {_human_mib(config.max_file_size)}")
        )
    return violations


def validate_form(
    fields: FormFields,
    artifact: Optional[ArtifactFile],
    config: UploadConfig,
) -> List[Violation]:
    """Check that every required field is filled in and a file was selected."""
    violations = []
    for name in config.required_fields:
        if not fields.get(name):
            label = FIELD_LABELS.get(name, name)
            violations.append(Violation(MISSING_FIELD, f"{label} is required", field=name))

    if artifact is None or artifact.size == 0:
        allowed = "/".join(ext.lstrip(".").upper() for ext in config.allowed_extensions)
        violations.append(Violation(MISSING_FILE, f"{allowed} file is required"))
    return violations


def validate_session(session, config: UploadConfig) -> List[Violation]:
    """All checks a submit runs before touching the network."""
    violations = []
    if not (session.organization_id or "").strip():
        violations.append(
            Violation(MISSING_FIELD, "Organization ID is required", field="organization_id")
        )
    violations.extend(validate_form(session.fields, session.artifact, config))
    if session.artifact is not None:
        violations.extend(validate_artifact(session.artifact, config))
    return violations
