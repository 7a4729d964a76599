"""Command line interface for the ghrelay package."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    SingleFileUploadProgress,
    render_configuration_summary,
    render_outcome,
)
from .errors import RelayError
from .models import RelaySettings
from .utils.cleanup import remove_quietly


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # request/response lines from httpx are noise below DEBUG
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_config_payload(
    config_file: Optional[Path],
    token: Optional[str] = None,
    username: Optional[str] = None,
    repo: Optional[str] = None,
    branch: Optional[str] = None,
    folder: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Assemble the request config: JSON file, then flags, then GITHUB_* env.

    Missing required fields are left out; the orchestrator rejects them.
    """
    payload: Dict[str, Any] = {}
    if config_file is not None:
        try:
            loaded = json.loads(Path(config_file).read_text(encoding="utf-8"))
        except OSError as exc:
            raise CLIError(f"could not read config file {config_file}: {exc}") from exc
        except ValueError as exc:
            raise CLIError(f"config file {config_file} is not valid JSON: {exc}") from exc
        if not isinstance(loaded, dict):
            raise CLIError(f"config file {config_file} must contain a JSON object")
        payload.update(loaded)

    overrides = {
        "token": token or os.getenv("GITHUB_TOKEN"),
        "username": username or os.getenv("GITHUB_USERNAME"),
        "repo": repo or os.getenv("GITHUB_REPO"),
        "branch": branch or os.getenv("GITHUB_BRANCH"),
        "folder": folder or os.getenv("GITHUB_FOLDER"),
    }
    for key, value in overrides.items():
        if value and not payload.get(key):
            payload[key] = value
    return payload


def _mask_token(token: Optional[str]) -> str:
    if not token:
        return "(missing)"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


async def _run_upload(
    source: Path,
    payload: Dict[str, Any],
    settings: RelaySettings,
    as_json: bool,
) -> int:
    from .orchestrator import UploadOrchestrator
    from .services.staging import stage_upload

    try:
        staged_path, request_id = stage_upload(source, settings.staging_dir)
    except RelayError as exc:
        raise CLIError(str(exc)) from exc

    progress = SingleFileUploadProgress(staged_path, display_name=source.name)
    try:
        async with UploadOrchestrator(settings=settings) as relay:
            progress.start()
            outcome = await relay.upload(staged_path, source.name, payload, request_id=request_id)
    except RelayError as exc:
        remove_quietly(staged_path, "local file")
        raise CLIError(str(exc)) from exc
    finally:
        progress.stop()
    progress.complete(outcome)

    if as_json:
        print(json.dumps(outcome.as_dict(), indent=2))
    else:
        render_outcome(outcome)
    return 0 if outcome.success else 1


async def _run_verify(payload: Dict[str, Any], settings: RelaySettings) -> int:
    from .orchestrator import UploadOrchestrator

    try:
        async with UploadOrchestrator(settings=settings) as relay:
            response = await relay.verify_access(payload)
    except RelayError as exc:
        raise CLIError(f"Failed to verify GitHub credentials: {exc}") from exc
    print(response["message"])
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-relay",
        description="Upload a file to a GitHub repository with its embedded metadata.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="File to upload")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with token, username, repo, branch and folder",
    )
    parser.add_argument("--token", default=None, help="GitHub token (default GITHUB_TOKEN)")
    parser.add_argument(
        "-u",
        "--username",
        default=None,
        help="Repository owner (default GITHUB_USERNAME)",
    )
    parser.add_argument("-r", "--repo", default=None, help="Repository name (default GITHUB_REPO)")
    parser.add_argument("-b", "--branch", default=None, help="Branch (default main)")
    parser.add_argument("-f", "--folder", default=None, help="Folder in the repository (default images)")
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Only check that the token can access the repository",
    )
    parser.add_argument("--json", action="store_true", help="Print the response as JSON")
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
    parser.add_argument(
        "--version",
        action="version",
        version="gh-relay (from ghrelay)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None and not args.verify:
        parser.print_help()
        return 0

    try:
        settings = RelaySettings.from_env()
        payload = _build_config_payload(
            args.config,
            token=args.token,
            username=args.username,
            repo=args.repo,
            branch=args.branch,
            folder=args.folder,
        )
    except (CLIError, RelayError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    source = Path(args.source).expanduser() if args.source is not None else None
    if source is not None and not source.is_file():
        print(f"ERROR: source is not a file: {source}", file=sys.stderr)
        return 1

    if not args.json:
        render_configuration_summary(
            {
                "Source": str(source) if source else "-",
                "Repository": f"{payload.get('username') or '?'}/{payload.get('repo') or '?'}",
                "Branch": payload.get("branch") or "main",
                "Folder": payload.get("folder") or "images",
                "Token": _mask_token(payload.get("token")),
                "Metadata": settings.metadata_provider or "auto",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        if args.verify:
            return asyncio.run(_run_verify(payload, settings))
        return asyncio.run(_run_upload(source, payload, settings, args.json))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
