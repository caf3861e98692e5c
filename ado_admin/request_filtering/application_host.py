"""Request filtering store backed by IIS applicationHost.config."""

import asyncio
import logging
import os
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ado_admin.request_filtering.store import (
    DuplicateExtensionError,
    ExtensionFilterEntry,
    InvalidExtensionError,
    RequestFilteringStore,
)

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = (
    Path(os.environ.get("WINDIR", r"C:\Windows"))
    / "System32"
    / "inetsrv"
    / "config"
    / "applicationHost.config"
)
DEFAULT_RESTART_COMMAND: Sequence[str] = ("iisreset",)

SECTION_TAGS = ("system.webServer", "security", "requestFiltering", "fileExtensions")


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _find_section(parent: ET.Element) -> ET.Element | None:
    """Return the fileExtensions element below ``parent``, if present."""
    node: ET.Element | None = parent
    for tag in SECTION_TAGS:
        if node is None:
            return None
        node = node.find(tag)
    return node


def _ensure_section(parent: ET.Element) -> ET.Element:
    """Return the fileExtensions element below ``parent``, creating it."""
    node = parent
    for tag in SECTION_TAGS:
        child = node.find(tag)
        node = child if child is not None else ET.SubElement(node, tag)
    return node


@dataclass(kw_only=True)
class ApplicationHostConfigStore(RequestFilteringStore):
    """Edits the ``<location>`` section of one site in applicationHost.config.

    Server-level ``fileExtensions`` entries are inherited by the site, with
    the site's ``<clear/>``, ``<remove>`` and ``<add>`` elements applied on
    top, the same way IIS merges configuration collections.
    """

    site_name: str
    config_path: Path = DEFAULT_CONFIG_PATH
    restart_command: Sequence[str] = DEFAULT_RESTART_COMMAND
    _pending: ET.ElementTree | None = field(default=None, init=False, repr=False)

    def _load(self) -> ET.ElementTree:
        if self._pending is not None:
            return self._pending
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        return ET.parse(self.config_path, parser=parser)

    def _save(self, tree: ET.ElementTree) -> None:
        if tree is self._pending:
            return
        tmp_path = self.config_path.with_name(self.config_path.name + ".tmp")
        tree.write(tmp_path, encoding="utf-8", xml_declaration=True)
        os.replace(tmp_path, self.config_path)
        log.debug("Saved %s", self.config_path)

    def _site_location(self, root: ET.Element) -> ET.Element | None:
        for location in root.findall("location"):
            if location.get("path") == self.site_name:
                return location
        return None

    def _site_section(self, root: ET.Element) -> ET.Element | None:
        location = self._site_location(root)
        if location is None:
            return None
        return _find_section(location)

    def _ensure_site_section(self, root: ET.Element) -> ET.Element:
        location = self._site_location(root)
        if location is None:
            location = ET.SubElement(root, "location", {"path": self.site_name})
        return _ensure_section(location)

    def _effective_entries(self, root: ET.Element) -> dict[str, ExtensionFilterEntry]:
        entries: dict[str, ExtensionFilterEntry] = {}
        sections = (_find_section(root), self._site_section(root))
        for section in sections:
            if section is None:
                continue
            for child in section:
                extension = child.get("fileExtension", "")
                if child.tag == "clear":
                    entries.clear()
                elif child.tag == "remove":
                    entries.pop(extension.casefold(), None)
                elif child.tag == "add":
                    entries[extension.casefold()] = ExtensionFilterEntry(
                        extension=extension,
                        allowed=_parse_bool(child.get("allowed"), default=True),
                    )
        return entries

    async def get_allow_unlisted(self) -> bool:
        """Return the site's allowUnlisted value, falling back to the server's."""
        root = self._load().getroot()
        for section in (self._site_section(root), _find_section(root)):
            if section is not None and section.get("allowUnlisted") is not None:
                return _parse_bool(section.get("allowUnlisted"), default=True)
        return True

    async def set_allow_unlisted(self, value: bool) -> None:
        """Set allowUnlisted on the site's fileExtensions section."""
        tree = self._load()
        section = self._ensure_site_section(tree.getroot())
        section.set("allowUnlisted", _format_bool(value))
        self._save(tree)
        log.info(
            "Set allowUnlisted=%s for site %s", _format_bool(value), self.site_name
        )

    async def list_extensions(self) -> Sequence[ExtensionFilterEntry]:
        """Return the site's effective extension entries."""
        return list(self._effective_entries(self._load().getroot()).values())

    async def add_extension(self, extension: str, allowed: bool) -> None:
        """Append an ``<add>`` element to the site's fileExtensions section."""
        if not extension.startswith("."):
            raise InvalidExtensionError(
                f"Extension '{extension}' must start with a period"
            )

        tree = self._load()
        root = tree.getroot()
        if extension.casefold() in self._effective_entries(root):
            raise DuplicateExtensionError(
                f"Extension '{extension}' already exists for site {self.site_name}"
            )

        section = self._ensure_site_section(root)
        ET.SubElement(
            section,
            "add",
            {"fileExtension": extension, "allowed": _format_bool(allowed)},
        )
        self._save(tree)

    async def restart(self) -> None:
        """Run the restart command, ``iisreset`` by default."""
        log.info("Restarting web server: %s", " ".join(self.restart_command))
        process = await asyncio.create_subprocess_exec(
            *self.restart_command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            output = stderr.decode(errors="replace").strip() or stdout.decode(
                errors="replace"
            ).strip()
            raise RuntimeError(f"Web server restart failed: {output}")

    async def _begin_batch(self) -> None:
        if self._pending is not None:
            raise RuntimeError("A commit delay is already in progress")
        self._pending = self._load()

    async def _commit_batch(self) -> None:
        tree, self._pending = self._pending, None
        if tree is not None:
            self._save(tree)

    async def _discard_batch(self) -> None:
        self._pending = None
