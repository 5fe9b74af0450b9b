"""Tests for input validation."""
from pathlib import Path

import pytest

from qdrop.models import ArtifactFile, FormFields, Session, UploadConfig
from qdrop.services.validator import (
    FILE_TOO_LARGE,
    INVALID_FILE_TYPE,
    MISSING_FIELD,
    MISSING_FILE,
    validate_artifact,
    validate_form,
    validate_session,
)

MB = 1024 * 1024


def _artifact(name="app-1.0.apk", size=5 * MB):
    return ArtifactFile(path=Path(name), name=name, size=size)


class TestValidateArtifact:
    @pytest.mark.parametrize("name", ["app.zip", "app.apk.bak", "apk", "app.ipa"])
    @pytest.mark.parametrize("size", [1, 200 * MB])
    def test_wrong_extension_is_invalid_regardless_of_size(self, name, size):
        kinds = [v.kind for v in validate_artifact(_artifact(name, size), UploadConfig())]
        assert INVALID_FILE_TYPE in kinds

    def test_extension_is_case_insensitive(self):
        assert validate_artifact(_artifact("APP-1.0.APK"), UploadConfig()) == []

    def test_too_large_even_with_correct_extension(self):
        violations = validate_artifact(_artifact(size=100 * MB + 1), UploadConfig())
        assert [v.kind for v in violations] == [FILE_TOO_LARGE]
        assert "100MB" in violations[0].message

    def test_exactly_max_size_is_allowed(self):
        assert validate_artifact(_artifact(size=100 * MB), UploadConfig()) == []

    def test_configured_extensions_and_limit(self):
        config = UploadConfig(allowed_extensions=(".aab", ".apk"), max_file_size=MB)
        assert validate_artifact(_artifact("bundle.aab", MB), config) == []
        assert [v.kind for v in validate_artifact(_artifact("bundle.aab", MB + 1), config)] == [FILE_TOO_LARGE]


class TestValidateForm:
    def test_reports_every_missing_field(self):
        fields = FormFields(version="  ", label="", submitter_name="\t")
        violations = validate_form(fields, _artifact(), UploadConfig())
        assert [v.field for v in violations] == ["version", "label", "submitter_name"]
        assert all(v.kind == MISSING_FIELD for v in violations)

    def test_missing_file_reported_with_fields(self):
        violations = validate_form(FormFields(label="beta"), None, UploadConfig())
        kinds = [v.kind for v in violations]
        assert kinds.count(MISSING_FIELD) == 2
        assert MISSING_FILE in kinds

    def test_empty_file_is_missing(self):
        fields = FormFields(version="1.0", label="beta", submitter_name="Sam")
        violations = validate_form(fields, _artifact(size=0), UploadConfig())
        assert [v.kind for v in violations] == [MISSING_FILE]

    def test_changelog_policy(self):
        config = UploadConfig(required_fields=("version", "label", "changelog"))
        fields = FormFields(version="1.0", label="beta")
        violations = validate_form(fields, _artifact(), config)
        assert [v.field for v in violations] == ["changelog"]

    def test_complete_form_passes(self):
        fields = FormFields(version="1.0", label="beta", submitter_name="Sam")
        assert validate_form(fields, _artifact(), UploadConfig()) == []


class TestValidateSession:
    def test_missing_organization_is_a_field_violation(self):
        session = Session(" ", FormFields(version="1.0", label="beta", submitter_name="Sam"), _artifact())
        violations = validate_session(session, UploadConfig())
        assert [(v.kind, v.field) for v in violations] == [(MISSING_FIELD, "organization_id")]

    def test_aggregates_form_and_file_problems(self):
        session = Session("acme", FormFields(label="beta", submitter_name="Sam"), _artifact("app.zip", 200 * MB))
        kinds = [v.kind for v in validate_session(session, UploadConfig())]
        assert kinds == [MISSING_FIELD, INVALID_FILE_TYPE, FILE_TOO_LARGE]

    def test_empty_file_still_type_checked(self):
        session = Session("acme", FormFields(version="1.0", label="beta", submitter_name="Sam"), _artifact("app.zip", 0))
        kinds = [v.kind for v in validate_session(session, UploadConfig())]
        assert kinds == [MISSING_FILE, INVALID_FILE_TYPE]
