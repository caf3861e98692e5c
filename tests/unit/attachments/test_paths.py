"""Tests for run directory and attachment file naming."""

from pathlib import Path

import pytest

from ado_admin.attachments.fetcher import (
    Attachment,
    attachment_file_name,
    run_directory_name,
    sanitize_file_name,
    unique_path,
)
from ado_admin.testing.factories import TestRunFactory


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Nightly regression", "Nightly regression"),
        ('Build 1.2: "smoke" <win/x64>', "Build 1.2 smoke winx64"),
        ("a|b?c*d\\e", "abcde"),
        ("tab\there", "tabhere"),
        ("", ""),
    ],
)
def test_sanitize_file_name(name: str, expected: str) -> None:
    """Strips characters that file systems reject."""
    assert sanitize_file_name(name) == expected


def test_run_directory_name() -> None:
    """Builds <runId>-<sanitizedName>."""
    run = TestRunFactory.build(id=42, name="Release: 2099/01")

    assert run_directory_name(run) == "42-Release 209901"


def test_unique_path_returns_plain_name_when_free(tmp_path: Path) -> None:
    """Uses the declared name when nothing exists yet."""
    assert unique_path(tmp_path, "report.txt") == tmp_path / "report.txt"


def test_unique_path_appends_increasing_suffix(tmp_path: Path) -> None:
    """Tries _1, _2, ... before the extension until a name is free."""
    paths = []
    for _ in range(4):
        path = unique_path(tmp_path, "report.txt")
        path.write_text("x")
        paths.append(path.name)

    assert paths == ["report.txt", "report_1.txt", "report_2.txt", "report_3.txt"]


def test_unique_path_fills_first_gap(tmp_path: Path) -> None:
    """Returns the first unused suffix."""
    (tmp_path / "log").write_text("x")
    (tmp_path / "log_1").write_text("x")
    (tmp_path / "log_3").write_text("x")

    assert unique_path(tmp_path, "log") == tmp_path / "log_2"


def test_unique_path_keeps_last_extension_only(tmp_path: Path) -> None:
    """Inserts the suffix before the last extension."""
    (tmp_path / "archive.tar.gz").write_text("x")

    assert unique_path(tmp_path, "archive.tar.gz") == tmp_path / "archive.tar_1.gz"


def make_attachment(file_name: str) -> Attachment:
    return Attachment(
        id=7,
        run_id=4,
        result_id=100000,
        file_name=file_name,
        size=0,
        download_url="http://azure.test/attachments/7",
    )


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("screenshot.png", "screenshot.png"),
        ("../../etc/passwd", "....etcpasswd"),
        ("", "attachment-7"),
        ("???", "attachment-7"),
        (".", "attachment-7"),
        ("..", "attachment-7"),
        (". .", "attachment-7"),
        ("./", "attachment-7"),
        (".gitignore", ".gitignore"),
    ],
)
def test_attachment_file_name(file_name: str, expected: str) -> None:
    """Falls back to attachment-<id> for names that cannot be saved as given."""
    assert attachment_file_name(make_attachment(file_name)) == expected
