"""Command line interface for qdrop package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .cli_progress import SubmitProgressDisplay, render_configuration_summary
from .errors import DirectoryUnavailableError
from .models import ArtifactFile, FormFields, Session, UploadConfig
from .orchestrator import UploadOrchestrator
from .services import HTTPAPIClient, IdentityStore, OrganizationService, PreferenceStore

KNOWN_FIELDS = ("version", "label", "changelog", "submitter_name")


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route qdrop logs through a RichHandler on stderr.

    Nothing is logged unless --debug or --log-level asks for it; the
    progress display is the normal output. Returns the effective mode.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.disable(logging.NOTSET)

    quiet = silent or not (debug or log_level)
    if quiet:
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _unquote(value: str) -> str:
    for quote in ("'", '"'):
        if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
            return value[1:-1]
    return value


def _parse_env(content: str) -> Dict[str, str]:
    """Parse KEY=VALUE lines; comments, blanks and lines without '=' are skipped."""
    values: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        if key.strip():
            values[key.strip()] = _unquote(value.strip())
    return values


def _load_env_file(path: Path, override: bool = False) -> None:
    """Export an env file into os.environ. Shell values win unless override is set."""
    if not path.is_file():
        reason = "not found" if not path.exists() else "is not a file"
        raise CLIError(f"env file {reason}: {path}")
    try:
        values = _parse_env(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for key, value in values.items():
        if override or key not in os.environ:
            os.environ[key] = value


def _default_env_file() -> Optional[Path]:
    candidate = Path.cwd() / ".env"
    return candidate if candidate.is_file() else None


def _split_list(value: str) -> tuple:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _build_config(env: Optional[Mapping[str, str]] = None) -> UploadConfig:
    """Build the frozen configuration from QDROP_* environment variables."""
    env = os.environ if env is None else env
    kwargs: Dict[str, object] = {}

    if env.get("QDROP_BROKER_URL"):
        kwargs["broker_url"] = env["QDROP_BROKER_URL"]
    if env.get("QDROP_DATABASE_URL"):
        kwargs["database_url"] = env["QDROP_DATABASE_URL"]
    if env.get("QDROP_DATABASE_AUTH"):
        kwargs["database_auth"] = env["QDROP_DATABASE_AUTH"]
    if env.get("QDROP_BUILDS_ROOT"):
        kwargs["builds_root"] = env["QDROP_BUILDS_ROOT"]
    if env.get("QDROP_PUBLIC_BASE_URL"):
        kwargs["public_base_url"] = env["QDROP_PUBLIC_BASE_URL"]
    if env.get("QDROP_PREFERENCES_FILE"):
        kwargs["preferences_path"] = Path(env["QDROP_PREFERENCES_FILE"]).expanduser()

    if env.get("QDROP_MAX_FILE_SIZE"):
        try:
            kwargs["max_file_size"] = int(env["QDROP_MAX_FILE_SIZE"])
        except ValueError as exc:
            raise CLIError(f"QDROP_MAX_FILE_SIZE must be a number of bytes: {exc}") from exc

    if env.get("QDROP_ALLOWED_EXTENSIONS"):
        kwargs["allowed_extensions"] = tuple(
            ext if ext.startswith(".") else f".{ext}" for ext in _split_list(env["QDROP_ALLOWED_EXTENSIONS"])
        )

    if env.get("QDROP_REQUIRED_FIELDS"):
        required = _split_list(env["QDROP_REQUIRED_FIELDS"])
        unknown = [name for name in required if name not in KNOWN_FIELDS]
        if unknown:
            raise CLIError(f"unknown required field(s): {', '.join(unknown)}")
        kwargs["required_fields"] = required

    return UploadConfig(**kwargs)


def _require_database(config: UploadConfig) -> None:
    if not config.database_url:
        raise CLIError("QDROP_DATABASE_URL environment variable is not set")


async def _run_submit(args: argparse.Namespace, config: UploadConfig) -> int:
    _require_database(config)

    async with UploadOrchestrator(config) as orchestrator:
        organizations = OrganizationService(orchestrator.identity, orchestrator.preferences)
        defaults = organizations.form_defaults()

        organization_id = (args.org or defaults.organization_id or "").strip()
        if not organization_id:
            raise CLIError("no organization id: pass --org or run 'qdrop org set ID'")

        if args.org and organization_id != defaults.organization_id:
            try:
                saved = await organizations.update(organization_id)
            except DirectoryUnavailableError as exc:
                raise CLIError(f"error validating organization id, try again: {exc}") from exc
            if not saved:
                raise CLIError(
                    "organization id not found, contact your administrator for a valid one"
                )

        fields = FormFields(
            version=args.build_version or "",
            label=args.label or defaults.label,
            changelog=args.changelog or "",
            submitter_name=args.submitter or defaults.submitter_name,
        )
        artifact = ArtifactFile.from_path(Path(args.file).expanduser())
        session = Session(organization_id=organization_id, fields=fields, artifact=artifact)

        display = SubmitProgressDisplay(artifact.name, artifact.size)
        orchestrator.on("phase", display.on_phase)
        display.start()
        result = await orchestrator.submit(session, display.on_progress, replace_previous=args.replace)
        display.complete(result)
        return 0 if result.success else 1


async def _run_org(args: argparse.Namespace, config: UploadConfig) -> int:
    preferences = await PreferenceStore(config.preferences_path).load()

    if args.org_command == "show":
        current = preferences.get("org_id")
        print(current or "(not set)")
        return 0

    _require_database(config)
    params = {"auth": config.database_auth} if config.database_auth else None
    async with HTTPAPIClient(config.database_url, timeout=config.timeout, params=params) as database:
        organizations = OrganizationService(IdentityStore(database), preferences)
        try:
            saved = await organizations.save(args.organization_id)
        except DirectoryUnavailableError as exc:
            raise CLIError(f"error validating organization id, try again: {exc}") from exc

    if not saved:
        raise CLIError("organization id not found, contact your administrator for a valid one")
    print(f"Organization set to {args.organization_id.strip()}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qdrop",
        description="Submit application builds to the organization build registry.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"qdrop {__version__}")

    commands = parser.add_subparsers(dest="command")

    submit = commands.add_parser("submit", help="Upload a build and record it")
    submit.add_argument("file", type=Path, help="Artifact to upload (e.g. app-1.0.apk)")
    submit.add_argument("-v", "--build-version", default=None, help="Version label, e.g. 1.0.3")
    submit.add_argument("-l", "--label", default=None, help="Build lineage label (default: last used)")
    submit.add_argument("-c", "--changelog", default=None, help="Changelog text")
    submit.add_argument("-u", "--submitter", default=None, help="Your name (default: last used)")
    submit.add_argument("-o", "--org", default=None, help="Organization id (default: remembered)")
    submit.add_argument(
        "-r",
        "--replace",
        action="store_true",
        help="Replace the most recent build with the same label",
    )

    org = commands.add_parser("org", help="Show or change the remembered organization id")
    org_commands = org.add_subparsers(dest="org_command", required=True)
    org_commands.add_parser("show", help="Print the remembered organization id")
    org_set = org_commands.add_parser("set", help="Validate and remember an organization id")
    org_set.add_argument("organization_id")

    return parser


def _fail(message: object) -> int:
    print(f"ERROR: {message}", file=sys.stderr)
    return 1


def _submit_summary(args: argparse.Namespace, config: UploadConfig, env_file, log_mode: str) -> Dict[str, str]:
    return {
        "File": str(args.file),
        "Version": args.build_version or "(missing)",
        "Replace": "yes" if args.replace else "no",
        "Broker": config.broker_url,
        "Registry": config.database_url or "(missing)",
        "Max Size": f"{config.max_file_size // (1024 * 1024)} MB",
        "Required": ", ".join(config.required_fields),
        "Env File": str(env_file) if env_file else "-",
        "Logging": log_mode,
    }


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file = args.env_file or _default_env_file()
    try:
        if env_file is not None:
            _load_env_file(Path(env_file))
        log_mode = _setup_logging(debug=args.debug, silent=args.silent, log_level=args.log_level)
        if args.command is None:
            parser.print_help()
            return 0
        config = _build_config()
    except CLIError as exc:
        return _fail(exc)

    if args.command == "submit" and not args.silent:
        render_configuration_summary(_submit_summary(args, config, env_file, log_mode))

    runner = _run_submit if args.command == "submit" else _run_org
    try:
        return asyncio.run(runner(args, config))
    except CLIError as exc:
        return _fail(exc)
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
