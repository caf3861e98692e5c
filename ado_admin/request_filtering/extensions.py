"""Derive request filtering extension tokens from work item fields."""

from collections.abc import Iterable, Sequence

from ado_admin.azure_devops.models import FieldDefinition

ROOT_SENTINEL = "."

# Extensions served by Azure DevOps Server itself. The bare "." entry matches
# extensionless URLs and is required for the site root to load.
BUILTIN_EXTENSIONS: Sequence[str] = (
    ROOT_SENTINEL,
    ".asmx",
    ".ashx",
    ".aspx",
    ".axd",
    ".css",
    ".eot",
    ".gif",
    ".git",
    ".htm",
    ".html",
    ".ico",
    ".jpeg",
    ".jpg",
    ".js",
    ".json",
    ".map",
    ".md",
    ".otf",
    ".png",
    ".svc",
    ".svg",
    ".ttf",
    ".txt",
    ".woff",
    ".woff2",
    ".xml",
)


def field_extension(reference_name: str) -> str:
    """Return the extension IIS sees for a URL ending in ``reference_name``.

    >>> field_extension("Microsoft.VSTS.Common.Priority")
    '.Priority'
    """
    return "." + reference_name.rsplit(".", 1)[-1]


def candidate_extensions(fields: Iterable[FieldDefinition]) -> Sequence[str]:
    """Merge built-in and field extensions into a sorted, unique list.

    Extensions compare case-insensitively, as IIS does; the first spelling
    seen wins, built-in extensions first.
    """
    seen: dict[str, str] = {}
    tokens = [*BUILTIN_EXTENSIONS, *(field_extension(f.reference_name) for f in fields)]
    for token in tokens:
        seen.setdefault(token.casefold(), token)
    return sorted(seen.values(), key=str.casefold)
