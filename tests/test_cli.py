"""Tests for qdrop CLI helpers."""
import json
import logging
import os

import pytest

from qdrop.cli import (
    CLIError,
    _build_config,
    _build_parser,
    _load_env_file,
    _parse_env,
    _setup_logging,
    run_cli,
)


def _reset_logging():
    logging.disable(logging.NOTSET)
    logging.getLogger().setLevel(logging.WARNING)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# registry",
                "QDROP_DATABASE_URL=https://qdrop-db.example.com",
                "QDROP_BROKER_URL='https://dashboard.example.com'",
                "export QDROP_BUILDS_ROOT=qa_builds",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("QDROP_DATABASE_URL", raising=False)
    monkeypatch.delenv("QDROP_BROKER_URL", raising=False)
    monkeypatch.delenv("QDROP_BUILDS_ROOT", raising=False)

    _load_env_file(env_path)

    assert os.environ["QDROP_DATABASE_URL"] == "https://qdrop-db.example.com"
    assert os.environ["QDROP_BROKER_URL"] == "https://dashboard.example.com"
    assert os.environ["QDROP_BUILDS_ROOT"] == "qa_builds"


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("QDROP_BUILDS_ROOT=from_file\n", encoding="utf-8")
    monkeypatch.setenv("QDROP_BUILDS_ROOT", "from_shell")

    _load_env_file(env_path)

    assert os.environ["QDROP_BUILDS_ROOT"] == "from_shell"


def test_parse_env_skips_noise():
    assert _parse_env('# comment\n\nA=1\nB="two words"\n=orphan\nnoise\n') == {
        "A": "1",
        "B": "two words",
    }


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="not found"):
        _load_env_file(tmp_path / "missing.env")


def test_build_config_defaults():
    config = _build_config({})
    assert config.database_url == ""
    assert config.builds_root == "builds"
    assert config.allowed_extensions == (".apk",)


def test_build_config_from_env():
    config = _build_config(
        {
            "QDROP_DATABASE_URL": "https://qdrop-db.example.com",
            "QDROP_DATABASE_AUTH": "token",
            "QDROP_PUBLIC_BASE_URL": "https://pub-123.r2.dev",
            "QDROP_MAX_FILE_SIZE": "1048576",
            "QDROP_ALLOWED_EXTENSIONS": "apk, .aab",
            "QDROP_REQUIRED_FIELDS": "version,label,changelog",
        }
    )
    assert config.database_auth == "token"
    assert config.public_base_url == "https://pub-123.r2.dev"
    assert config.max_file_size == 1048576
    assert config.allowed_extensions == (".apk", ".aab")
    assert config.required_fields == ("version", "label", "changelog")


def test_build_config_rejects_bad_values():
    with pytest.raises(CLIError, match="QDROP_MAX_FILE_SIZE"):
        _build_config({"QDROP_MAX_FILE_SIZE": "100MB"})
    with pytest.raises(CLIError, match="unknown required field"):
        _build_config({"QDROP_REQUIRED_FIELDS": "version,email"})


def test_parser_submit_arguments():
    args = _build_parser().parse_args(
        ["submit", "app-1.0.apk", "-v", "1.0", "-l", "beta", "-u", "Sam", "--replace"]
    )
    assert args.command == "submit"
    assert str(args.file) == "app-1.0.apk"
    assert args.build_version == "1.0"
    assert args.label == "beta"
    assert args.submitter == "Sam"
    assert args.replace is True
    assert args.org is None


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False
    _reset_logging()


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    _reset_logging()


def test_run_cli_without_command(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli([]) == 0
    assert "submit" in capsys.readouterr().out
    _reset_logging()


def test_org_show(tmp_path, monkeypatch, capsys):
    prefs = tmp_path / "prefs.json"
    prefs.write_text(json.dumps({"org_id": "acme"}), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("QDROP_PREFERENCES_FILE", str(prefs))

    assert run_cli(["org", "show"]) == 0
    assert capsys.readouterr().out.strip() == "acme"
    _reset_logging()


def test_submit_requires_database(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("QDROP_DATABASE_URL", raising=False)

    assert run_cli(["--silent", "submit", "app.apk", "-v", "1.0"]) == 1
    assert "QDROP_DATABASE_URL" in capsys.readouterr().err
    _reset_logging()
