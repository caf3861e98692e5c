"""Azure DevOps REST client."""

import base64
import logging
import os
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiohttp

from ado_admin.azure_devops.config import AzureDevOpsConfig
from ado_admin.azure_devops.models import (
    AttachmentReference,
    FieldDefinition,
    TestCaseResult,
    TestRun,
)

log = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class AzureDevOpsApiError(RuntimeError):
    """Raised when the Azure DevOps API answers with a non-success status."""

    def __init__(self, operation: str, status: int, body: str) -> None:
        super().__init__(f"Failed to {operation}: {status} {body}")
        self.status = status


class AzureDevOpsResponseError(RuntimeError):
    """Raised when a successful response does not have the expected shape."""


@dataclass(frozen=True, kw_only=True)
class AzureDevOpsClient:
    """Thin async client over the Azure DevOps REST endpoints used by the tools."""

    config: AzureDevOpsConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: AzureDevOpsConfig
    ) -> AsyncGenerator["AzureDevOpsClient", None]:
        """Create client with managed session lifecycle."""
        # Azure DevOps uses Basic Auth with empty username and PAT as password
        auth_string = f":{config.token.get_secret_value()}"
        auth_bytes = base64.b64encode(auth_string.encode("ascii")).decode("ascii")
        headers = {
            "Authorization": f"Basic {auth_bytes}",
            "Accept": "application/json",
        }
        async with aiohttp.ClientSession(headers=headers) as session:
            yield cls(config=config, session=session)

    def project_url(self, project: str | None, path: str) -> str:
        """Build an API URL, scoped to a project when one is given."""
        base = self.config.collection_url
        if project is not None:
            base = f"{base}/{quote(project, safe='')}"
        return f"{base}/_apis/{path}"

    async def _get_json(
        self, url: str, operation: str, params: dict[str, str] | None = None
    ) -> Any:
        query = {**(params or {}), "api-version": self.config.api_version}
        async with self.session.get(url, params=query) as response:
            if response.status != 200:
                text = await response.text()
                raise AzureDevOpsApiError(operation, response.status, text)
            return await response.json(content_type=None)

    async def _get_list(
        self, url: str, operation: str, params: dict[str, str] | None = None
    ) -> Sequence[Any]:
        data = await self._get_json(url, operation, params)
        value = data.get("value") if isinstance(data, dict) else None
        if not isinstance(value, list):
            raise AzureDevOpsResponseError(
                f"Failed to {operation}: response has no value list"
            )
        return value

    async def list_test_runs(self, project: str) -> Sequence[TestRun]:
        """List all test runs of a project."""
        items = await self._get_list(
            self.project_url(project, "test/runs"), "list test runs"
        )
        return [TestRun.model_validate(item) for item in items]

    async def get_test_run(self, project: str, run_id: int) -> TestRun:
        """Get a single test run by ID."""
        data = await self._get_json(
            self.project_url(project, f"test/runs/{run_id}"), "get test run"
        )
        return TestRun.model_validate(data)

    async def list_test_results(
        self, project: str, run_id: int
    ) -> Sequence[TestCaseResult]:
        """List the test case results of a run, including iteration details."""
        items = await self._get_list(
            self.project_url(project, f"test/Runs/{run_id}/results"),
            "list test results",
            params={"detailsToInclude": "Iterations"},
        )
        return [TestCaseResult.model_validate(item) for item in items]

    async def list_result_attachments(
        self, project: str, run_id: int, result_id: int
    ) -> Sequence[AttachmentReference]:
        """List the attachments attached directly to a test case result."""
        items = await self._get_list(
            self.project_url(
                project, f"test/Runs/{run_id}/Results/{result_id}/attachments"
            ),
            "list result attachments",
        )
        return [AttachmentReference.model_validate(item) for item in items]

    def attachment_url(
        self, project: str, run_id: int, result_id: int, attachment_id: int
    ) -> str:
        """Build the download URL of a result attachment."""
        url = self.project_url(
            project,
            f"test/Runs/{run_id}/Results/{result_id}/attachments/{attachment_id}",
        )
        return f"{url}?api-version={self.config.api_version}"

    async def download(self, url: str, destination: Path) -> int:
        """Stream the body of ``url`` into ``destination``.

        The body is written to a ``.part`` file next to ``destination`` and only
        renamed once complete, so a failed download leaves no file behind.

        Returns:
            Number of bytes written

        """
        written = 0
        async with self.session.get(
            url, headers={"Accept": "application/octet-stream"}
        ) as response:
            if response.status != 200:
                text = await response.text()
                raise AzureDevOpsApiError("download attachment", response.status, text)
            part_path = destination.with_name(destination.name + ".part")
            try:
                with part_path.open("wb") as fh:
                    async for chunk in response.content.iter_chunked(
                        DOWNLOAD_CHUNK_SIZE
                    ):
                        fh.write(chunk)
                        written += len(chunk)
            except BaseException:
                part_path.unlink(missing_ok=True)
                raise
            os.replace(part_path, destination)
        return written

    async def list_fields(
        self, project: str | None = None
    ) -> Sequence[FieldDefinition]:
        """List work item fields of the collection, or of one project."""
        items = await self._get_list(
            self.project_url(project, "wit/fields"), "list work item fields"
        )
        return [FieldDefinition.model_validate(item) for item in items]
