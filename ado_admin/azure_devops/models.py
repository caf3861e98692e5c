"""Pydantic models for Azure DevOps API responses."""

from collections.abc import Sequence

from pydantic import AliasChoices, Field

from ado_admin.models.base import ApiModel


class ShallowReference(ApiModel):
    """Reference to another resource, e.g. the run owning a result."""

    id: int
    name: str | None = None


class TestRun(ApiModel):
    """A test run from the Azure DevOps test API."""

    __test__ = False

    id: int
    name: str = ""


class AttachmentReference(ApiModel):
    """Attachment metadata.

    Iteration-level attachments carry their file name as ``name`` while the
    result attachments endpoint returns ``fileName``; both map to
    ``file_name``.
    """

    id: int
    file_name: str = Field(
        validation_alias=AliasChoices("fileName", "name", "file_name")
    )
    size: int = 0
    url: str | None = None


class IterationDetail(ApiModel):
    """A single execution attempt within a test case result."""

    id: int
    attachments: Sequence[AttachmentReference] = Field(default_factory=list)


class TestCaseResult(ApiModel):
    """A test case result, optionally including iteration details."""

    __test__ = False

    id: int
    test_run: ShallowReference | None = Field(default=None, alias="testRun")
    test_case_title: str | None = Field(default=None, alias="testCaseTitle")
    iteration_details: Sequence[IterationDetail] = Field(
        default_factory=list, alias="iterationDetails"
    )


class FieldDefinition(ApiModel):
    """A work item field definition."""

    name: str
    reference_name: str = Field(alias="referenceName")
    type: str = ""
