"""Synchronize work item field names into a site's request filtering list."""

import logging
from collections.abc import AsyncGenerator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeAlias

import aiohttp

from ado_admin.azure_devops.client import (
    AzureDevOpsApiError,
    AzureDevOpsClient,
    AzureDevOpsResponseError,
)
from ado_admin.azure_devops.models import FieldDefinition
from ado_admin.request_filtering.extensions import candidate_extensions
from ado_admin.request_filtering.report import write_field_report
from ado_admin.request_filtering.store import (
    ExtensionFilterEntry,
    RequestFilteringStore,
)

log = logging.getLogger(__name__)

ConfirmFn: TypeAlias = Callable[[str], bool]

# ValueError covers undecodable JSON and pydantic validation errors.
FIELD_LISTING_ERRORS = (
    AzureDevOpsApiError,
    AzureDevOpsResponseError,
    aiohttp.ClientError,
    TimeoutError,
    ValueError,
)


class FieldListingError(RuntimeError):
    """Raised when the work item fields cannot be listed."""


class SafetySettingDeclinedError(Exception):
    """Raised when the operator declines restoring allowUnlisted."""


@dataclass(frozen=True, kw_only=True)
class SyncResult:
    """Outcome of a synchronization run."""

    fields: Sequence[FieldDefinition]
    added: Sequence[str]
    skipped: Sequence[str]
    failed: Mapping[str, str]
    allow_list: Sequence[ExtensionFilterEntry] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class FieldFilterSynchronizer:
    """Adds one extension entry per work item field to a site.

    Azure DevOps Server routes such as ``.../fields/System.Title`` look like
    file names with extension ``.Title`` to IIS request filtering, so each
    field needs an entry when unlisted extensions are denied.
    """

    client: AzureDevOpsClient
    store: RequestFilteringStore
    confirm: ConfirmFn
    project: str | None = None
    allowed: bool = True
    report_path: Path | None = None

    @asynccontextmanager
    async def unlisted_extensions_allowed(self) -> AsyncGenerator[None, None]:
        """Keep allowUnlisted enabled while the block runs, if the operator agrees.

        The field listing call may itself be blocked by the filter being
        configured. When allowUnlisted is disabled the operator is offered to
        enable it for the duration of the block and to disable it afterwards.

        Raises:
            SafetySettingDeclinedError: If the block succeeded and the operator
                declined to disable allowUnlisted again

        """
        enabled_here = False
        if not await self.store.get_allow_unlisted():
            log.warning(
                "Unlisted extensions are denied; Azure DevOps API calls may be "
                "blocked until the missing extensions are added"
            )
            if self.confirm("Temporarily allow unlisted extensions?"):
                await self.store.set_allow_unlisted(True)
                enabled_here = True
            else:
                log.warning("Continuing with unlisted extensions denied")

        try:
            yield
        except Exception:
            if enabled_here:
                await self._offer_restore()
            raise

        if enabled_here and not await self._offer_restore():
            raise SafetySettingDeclinedError(
                "Unlisted extensions are still allowed; disable them manually"
            )

    async def _offer_restore(self) -> bool:
        if not self.confirm("Deny unlisted extensions again?"):
            log.warning("Unlisted extensions remain allowed")
            return False
        await self.store.set_allow_unlisted(False)
        return True

    async def apply_extensions(
        self, extensions: Sequence[str]
    ) -> tuple[Sequence[str], Sequence[str], Mapping[str, str]]:
        """Add the extensions missing from the store.

        Existing entries are left untouched, whatever their allowed flag.
        Failures are logged per extension and do not stop the loop.

        Returns:
            Added extensions, skipped extensions and errors by extension

        """
        existing = {entry.extension for entry in await self.store.list_extensions()}
        added: list[str] = []
        skipped: list[str] = []
        failed: dict[str, str] = {}

        async with self.store.commit_delay():
            for extension in extensions:
                if extension in existing:
                    log.debug("Extension %s already present, skipping", extension)
                    skipped.append(extension)
                    continue
                try:
                    await self.store.add_extension(extension, self.allowed)
                except Exception as e:
                    log.error(
                        "Failed to add extension %s: %s", extension, e, exc_info=e
                    )
                    failed[extension] = str(e)
                    continue
                log.info("Added extension %s (allowed=%s)", extension, self.allowed)
                added.append(extension)

        return added, skipped, failed

    async def allow_list(self) -> Sequence[ExtensionFilterEntry]:
        """Return the allowed entries of the site sorted by extension."""
        entries = await self.store.list_extensions()
        return sorted(
            (entry for entry in entries if entry.allowed),
            key=lambda entry: entry.extension.casefold(),
        )

    async def run(self) -> SyncResult:
        """Run the full synchronization.

        Raises:
            FieldListingError: If the fields cannot be listed; nothing has
                been added to the store at that point

        """
        async with self.unlisted_extensions_allowed():
            scope = self.project or "all projects"
            log.info("Listing work item fields for %s", scope)
            try:
                fields = await self.client.list_fields(self.project)
            except FIELD_LISTING_ERRORS as e:
                raise FieldListingError(
                    f"Could not list work item fields for {scope}: {e}"
                ) from e
            log.info("Found %d field(s)", len(fields))

            if self.report_path is not None:
                write_field_report(self.report_path, fields)
                log.info("Wrote field report to %s", self.report_path)

            extensions = candidate_extensions(fields)
            log.info("Ensuring %d extension(s) are listed", len(extensions))
            added, skipped, failed = await self.apply_extensions(extensions)

            await self.store.restart()

            allow_list = await self.allow_list()
            log.info("Allowed extensions:")
            for entry in allow_list:
                log.info("  %s", entry.extension)

        return SyncResult(
            fields=fields,
            added=added,
            skipped=skipped,
            failed=failed,
            allow_list=allow_list,
        )
