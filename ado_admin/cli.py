"""CLI entry points for the Azure DevOps administration tools."""

import argparse
import asyncio
import ctypes
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from ado_admin.attachments.fetcher import AttachmentFetcher, RunDownload
from ado_admin.azure_devops.client import AzureDevOpsClient
from ado_admin.azure_devops.config import DEFAULT_API_VERSION, AzureDevOpsConfig
from ado_admin.request_filtering.application_host import (
    DEFAULT_CONFIG_PATH,
    ApplicationHostConfigStore,
)
from ado_admin.request_filtering.store import RequestFilteringStore
from ado_admin.request_filtering.synchronizer import (
    ConfirmFn,
    FieldFilterSynchronizer,
    FieldListingError,
    SafetySettingDeclinedError,
    SyncResult,
)

TOKEN_ENV_VAR = "AZURE_DEVOPS_PAT"

EXIT_OK = 0
EXIT_FIELD_LISTING_FAILED = 2
EXIT_SAFETY_SETTING_DECLINED = 3
EXIT_NOT_ELEVATED = 4

log = logging.getLogger("ado_admin")


def configure_logging(log_file: Path | None = None) -> None:
    """Log to stderr and, when given, to a transcript file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def prompt_yes_no(question: str) -> bool:
    """Ask an interactive yes/no question on the terminal."""
    answer = input(f"{question} [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def is_elevated() -> bool:
    """Check whether the process runs with administrative rights."""
    if sys.platform == "win32":
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    return os.geteuid() == 0


def format_fetch_output(downloads: Sequence[RunDownload]) -> dict[str, Any]:
    """Format fetched runs for JSON output."""
    runs = [
        {
            "run_id": download.run.id,
            "name": download.run.name,
            "directory": str(download.directory),
            "files": [a.local_name for a in download.attachments],
        }
        for download in downloads
    ]
    return {
        "runs": len(runs),
        "attachments": sum(len(run["files"]) for run in runs),
        "results": runs,
    }


def format_sync_output(result: SyncResult) -> dict[str, Any]:
    """Format a synchronization result for JSON output."""
    return {
        "fields": len(result.fields),
        "added": list(result.added),
        "skipped": len(result.skipped),
        "failed": dict(result.failed),
        "allowed": [entry.extension for entry in result.allow_list],
    }


async def run_fetch(
    config: AzureDevOpsConfig,
    project: str,
    output_dir: Path,
    run_id: int | None = None,
) -> int:
    """Download test run attachments and return exit code.

    API errors are not handled here; they abort the whole invocation.
    """
    log.info("Fetching attachments of project %s into %s", project, output_dir)
    async with AzureDevOpsClient.from_config(config) as client:
        fetcher = AttachmentFetcher(
            client=client, project=project, output_dir=output_dir
        )
        downloads = await fetcher.fetch(run_id)

    output = format_fetch_output(downloads)
    log.info(
        "Downloaded %d attachment(s) from %d run(s)",
        output["attachments"],
        output["runs"],
    )
    print(json.dumps(output, indent=2))
    return EXIT_OK


async def run_sync(
    config: AzureDevOpsConfig,
    store: RequestFilteringStore,
    confirm: ConfirmFn,
    project: str | None = None,
    allowed: bool = True,
    report_path: Path | None = None,
) -> int:
    """Synchronize field extensions into request filtering and return exit code."""
    async with AzureDevOpsClient.from_config(config) as client:
        synchronizer = FieldFilterSynchronizer(
            client=client,
            store=store,
            confirm=confirm,
            project=project,
            allowed=allowed,
            report_path=report_path,
        )
        try:
            result = await synchronizer.run()
        except FieldListingError as e:
            log.error("%s", e)
            return EXIT_FIELD_LISTING_FAILED
        except SafetySettingDeclinedError as e:
            log.error("%s", e)
            return EXIT_SAFETY_SETTING_DECLINED

    for extension, message in result.failed.items():
        log.warning("Extension %s was not added: %s", extension, message)

    print(json.dumps(format_sync_output(result), indent=2))
    return EXIT_OK


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--token",
        default=os.environ.get(TOKEN_ENV_VAR),
        help=f"Personal access token (default: ${TOKEN_ENV_VAR})",
    )
    parser.add_argument(
        "--api-version",
        default=DEFAULT_API_VERSION,
        help=f"REST API version (default: {DEFAULT_API_VERSION})",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write the log to this file",
    )


def fetch_attachments_main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for downloading test run attachments."""
    parser = argparse.ArgumentParser(
        description="Download Azure DevOps test run attachments"
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--organization", help="Azure DevOps Services organization")
    target.add_argument(
        "--collection-url",
        help="Organization or Azure DevOps Server collection URL",
    )
    parser.add_argument("--project", required=True, help="Project name or ID")
    parser.add_argument(
        "--run-id",
        type=int,
        help="Only fetch this test run (default: all runs)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("attachments"),
        help="Directory receiving one subdirectory per run",
    )
    _add_common_arguments(parser)

    args = parser.parse_args(argv)
    if not args.token:
        parser.error(f"--token or ${TOKEN_ENV_VAR} is required")

    configure_logging(args.log_file)

    if args.organization:
        config = AzureDevOpsConfig.for_organization(
            args.organization, args.token, api_version=args.api_version
        )
    else:
        config = AzureDevOpsConfig(
            token=SecretStr(args.token),
            collection_url=args.collection_url,
            api_version=args.api_version,
        )

    exit_code = asyncio.run(
        run_fetch(
            config=config,
            project=args.project,
            output_dir=args.output_dir,
            run_id=args.run_id,
        )
    )
    sys.exit(exit_code)


def sync_request_filtering_main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for synchronizing field extensions into IIS."""
    parser = argparse.ArgumentParser(
        description="Add work item field extensions to IIS request filtering"
    )
    parser.add_argument(
        "--collection-url",
        required=True,
        help="Azure DevOps Server collection URL",
    )
    scope = parser.add_mutually_exclusive_group(required=True)
    scope.add_argument("--project", help="Only list fields of this project")
    scope.add_argument(
        "--all-projects",
        action="store_true",
        help="List the fields of the whole collection",
    )
    allowed = parser.add_mutually_exclusive_group()
    allowed.add_argument(
        "--allowed",
        dest="allowed",
        action="store_true",
        default=True,
        help="Add extensions as allowed (default)",
    )
    allowed.add_argument(
        "--denied",
        dest="allowed",
        action="store_false",
        help="Add extensions as denied",
    )
    parser.add_argument("--site-name", required=True, help="IIS site name")
    parser.add_argument(
        "--config-path",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path of applicationHost.config",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=Path("fields.csv"),
        help="CSV report of the listed fields",
    )
    parser.add_argument(
        "--restart-command",
        default="iisreset",
        help="Command restarting the web server",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Answer yes to every confirmation prompt",
    )
    parser.add_argument(
        "--skip-elevation-check",
        action="store_true",
        help="Do not require administrative rights",
    )
    _add_common_arguments(parser)

    args = parser.parse_args(argv)
    if not args.token:
        parser.error(f"--token or ${TOKEN_ENV_VAR} is required")

    configure_logging(args.log_file)

    if not args.skip_elevation_check and not is_elevated():
        log.error("Administrative rights are required to edit %s", args.config_path)
        sys.exit(EXIT_NOT_ELEVATED)

    config = AzureDevOpsConfig(
        token=SecretStr(args.token),
        collection_url=args.collection_url,
        api_version=args.api_version,
    )
    store = ApplicationHostConfigStore(
        site_name=args.site_name,
        config_path=args.config_path,
        restart_command=tuple(args.restart_command.split()),
    )
    confirm: ConfirmFn = (lambda _question: True) if args.yes else prompt_yes_no

    exit_code = asyncio.run(
        run_sync(
            config=config,
            store=store,
            confirm=confirm,
            project=None if args.all_projects else args.project,
            allowed=args.allowed,
            report_path=args.report,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    fetch_attachments_main()
