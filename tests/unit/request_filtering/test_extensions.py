"""Tests for extension token derivation."""

import pytest

from ado_admin.request_filtering.extensions import (
    BUILTIN_EXTENSIONS,
    ROOT_SENTINEL,
    candidate_extensions,
    field_extension,
)
from ado_admin.testing.factories import make_field


@pytest.mark.parametrize(
    ("reference_name", "expected"),
    [
        ("System.Title", ".Title"),
        ("Microsoft.VSTS.Common.Priority", ".Priority"),
        ("Custom.lower_case", ".lower_case"),
        ("NoNamespace", ".NoNamespace"),
    ],
)
def test_field_extension_uses_last_segment(reference_name: str, expected: str) -> None:
    """Derives the extension from the final dot-delimited segment."""
    assert field_extension(reference_name) == expected


def test_candidates_include_root_sentinel_without_fields() -> None:
    """The bare period is a candidate even when no field is returned."""
    assert ROOT_SENTINEL in candidate_extensions([])


def test_candidates_include_builtins_and_fields() -> None:
    """Merges built-in extensions with field extensions."""
    fields = [
        make_field("System.Title"),
        make_field("Microsoft.VSTS.Common.Priority"),
    ]

    candidates = candidate_extensions(fields)

    assert ".Title" in candidates
    assert ".Priority" in candidates
    assert set(BUILTIN_EXTENSIONS) <= set(candidates)


def test_candidates_are_unique_and_sorted() -> None:
    """Removes duplicates ignoring case and sorts ignoring case."""
    fields = [
        make_field("System.Title"),
        make_field("Custom.Title"),
        make_field("Custom.title"),
        make_field("Custom.JS"),
    ]

    candidates = candidate_extensions(fields)

    assert [c.casefold() for c in candidates] == sorted(
        {c.casefold() for c in candidates}
    )
    assert ".Title" in candidates
    assert ".title" not in candidates
    # Built-in spelling wins over the field's
    assert ".js" in candidates
    assert ".JS" not in candidates


def test_candidates_are_deterministic() -> None:
    """Returns the same order regardless of field order."""
    fields = [
        make_field("System.State"),
        make_field("System.AreaPath"),
    ]

    assert candidate_extensions(fields) == candidate_extensions(list(reversed(fields)))
