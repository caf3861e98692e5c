"""Download test run attachments to per-run directories."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from ado_admin.azure_devops.client import AzureDevOpsClient
from ado_admin.azure_devops.models import AttachmentReference, TestRun

log = logging.getLogger(__name__)

# Characters Windows rejects in file names, plus ASCII control characters.
ILLEGAL_FILE_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@dataclass(frozen=True, kw_only=True)
class Attachment:
    """An attachment harvested from a test case result."""

    id: int
    run_id: int
    result_id: int
    file_name: str
    size: int
    download_url: str
    local_name: str | None = None


@dataclass(frozen=True, kw_only=True)
class RunDownload:
    """Outcome of downloading the attachments of one run."""

    run: TestRun
    directory: Path
    attachments: Sequence[Attachment]


def sanitize_file_name(name: str) -> str:
    """Strip characters that are not allowed in file names."""
    return ILLEGAL_FILE_NAME_CHARS.sub("", name)


def attachment_file_name(attachment: Attachment) -> str:
    """Return the sanitized declared name, or ``attachment-<id>`` if unusable.

    Names that are empty or consist only of dots and spaces after sanitizing
    would resolve to the run directory or its parent.
    """
    name = sanitize_file_name(attachment.file_name)
    if not name.strip(". "):
        return f"attachment-{attachment.id}"
    return name


def run_directory_name(run: TestRun) -> str:
    """Return the ``<runId>-<sanitizedName>`` directory name of a run."""
    return f"{run.id}-{sanitize_file_name(run.name)}"


def unique_path(directory: Path, file_name: str) -> Path:
    """Return a path in ``directory`` that does not exist yet.

    ``report.txt`` becomes ``report_1.txt``, ``report_2.txt``, ... when the
    plain name is already taken.
    """
    candidate = directory / file_name
    if not candidate.exists():
        return candidate

    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while True:
        candidate = directory / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


@dataclass(frozen=True, kw_only=True)
class AttachmentFetcher:
    """Fetches every attachment of a project's test runs."""

    client: AzureDevOpsClient
    project: str
    output_dir: Path

    async def resolve_runs(self, run_id: int | None = None) -> Sequence[TestRun]:
        """Return the requested run as a one-element list, or all runs."""
        if run_id is not None:
            return [await self.client.get_test_run(self.project, run_id)]
        return await self.client.list_test_runs(self.project)

    async def collect_attachments(self, run: TestRun) -> Sequence[Attachment]:
        """Collect attachment metadata of a run.

        Attachments come from each iteration of each result and from the
        result-level attachments endpoint. Both sources are appended as-is, so
        an attachment listed by both is downloaded twice.
        """
        attachments: list[Attachment] = []
        results = await self.client.list_test_results(self.project, run.id)
        log.info("Run %s has %d test result(s)", run.id, len(results))

        for result in results:
            for iteration in result.iteration_details:
                attachments.extend(
                    self._to_attachment(run.id, result.id, reference)
                    for reference in iteration.attachments
                )

            result_attachments = await self.client.list_result_attachments(
                self.project, run.id, result.id
            )
            attachments.extend(
                self._to_attachment(run.id, result.id, reference)
                for reference in result_attachments
            )

        return attachments

    def _to_attachment(
        self, run_id: int, result_id: int, reference: AttachmentReference
    ) -> Attachment:
        return Attachment(
            id=reference.id,
            run_id=run_id,
            result_id=result_id,
            file_name=reference.file_name,
            size=reference.size,
            download_url=self.client.attachment_url(
                self.project, run_id, result_id, reference.id
            ),
        )

    async def download_run(self, run: TestRun) -> RunDownload:
        """Download all attachments of a run into its own directory."""
        directory = self.output_dir / run_directory_name(run)
        directory.mkdir(parents=True, exist_ok=True)

        attachments = await self.collect_attachments(run)
        log.info(
            "Downloading %d attachment(s) of run %s to %s",
            len(attachments),
            run.id,
            directory,
        )

        downloaded: list[Attachment] = []
        for index, attachment in enumerate(attachments, start=1):
            target = unique_path(directory, attachment_file_name(attachment))
            size = await self.client.download(attachment.download_url, target)
            downloaded.append(replace(attachment, local_name=target.name))
            log.info(
                "[%d/%d] Saved %s (%d bytes)", index, len(attachments), target, size
            )

        return RunDownload(run=run, directory=directory, attachments=downloaded)

    async def fetch(self, run_id: int | None = None) -> Sequence[RunDownload]:
        """Download the attachments of one run, or of every run."""
        runs = await self.resolve_runs(run_id)
        log.info("Processing %d test run(s)", len(runs))

        downloads: list[RunDownload] = []
        total = 0
        for run in runs:
            download = await self.download_run(run)
            total += len(download.attachments)
            log.info(
                "Run %s done, %d attachment(s) downloaded so far", run.id, total
            )
            downloads.append(download)

        return downloads
