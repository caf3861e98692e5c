"""Abstract base class for request filtering configuration stores."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager

from ado_admin.models.base import Model


class ExtensionFilterError(Exception):
    """Raised when an extension entry cannot be written."""


class DuplicateExtensionError(ExtensionFilterError):
    """Raised when an entry with the same key already exists."""


class InvalidExtensionError(ExtensionFilterError):
    """Raised when an extension token is not acceptable to the store."""


class ExtensionFilterEntry(Model):
    """A file extension entry of a site's request filtering list."""

    extension: str
    allowed: bool


class RequestFilteringStore(ABC):
    """Abstract base for a site's request filtering configuration.

    Writes made inside ``commit_delay`` are applied together when the block
    exits normally and discarded when it raises.
    """

    @abstractmethod
    async def get_allow_unlisted(self) -> bool:
        """Return whether extensions missing from the list are allowed."""

    @abstractmethod
    async def set_allow_unlisted(self, value: bool) -> None:
        """Set whether extensions missing from the list are allowed."""

    @abstractmethod
    async def list_extensions(self) -> Sequence[ExtensionFilterEntry]:
        """Return the effective extension entries of the site."""

    @abstractmethod
    async def add_extension(self, extension: str, allowed: bool) -> None:
        """Add an extension entry.

        Raises:
            DuplicateExtensionError: If an entry with the same key exists
            InvalidExtensionError: If the extension is not a valid key

        """

    @abstractmethod
    async def restart(self) -> None:
        """Restart the web server so committed changes take effect."""

    @abstractmethod
    async def _begin_batch(self) -> None:
        """Start holding writes back."""

    @abstractmethod
    async def _commit_batch(self) -> None:
        """Apply the writes held back since ``_begin_batch``."""

    @abstractmethod
    async def _discard_batch(self) -> None:
        """Drop the writes held back since ``_begin_batch``."""

    @asynccontextmanager
    async def commit_delay(self) -> AsyncGenerator[None, None]:
        """Group writes so the configuration is committed once."""
        await self._begin_batch()
        try:
            yield
        except BaseException:
            await self._discard_batch()
            raise
        await self._commit_batch()
