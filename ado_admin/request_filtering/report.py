"""CSV audit report of the work item fields seen by the synchronizer."""

import csv
from collections.abc import Iterable
from pathlib import Path

from ado_admin.azure_devops.models import FieldDefinition
from ado_admin.request_filtering.extensions import field_extension

REPORT_COLUMNS = ("Name", "ReferenceName", "Extension", "Type")


def write_field_report(path: Path, fields: Iterable[FieldDefinition]) -> int:
    """Write one CSV row per field and return the number of rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(REPORT_COLUMNS)
        for definition in fields:
            writer.writerow(
                [
                    definition.name,
                    definition.reference_name,
                    field_extension(definition.reference_name),
                    definition.type,
                ]
            )
            count += 1
    return count
