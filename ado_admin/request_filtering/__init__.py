"""IIS request filtering synchronization module."""

from ado_admin.request_filtering.application_host import ApplicationHostConfigStore
from ado_admin.request_filtering.store import (
    DuplicateExtensionError,
    ExtensionFilterEntry,
    ExtensionFilterError,
    InvalidExtensionError,
    RequestFilteringStore,
)
from ado_admin.request_filtering.synchronizer import (
    FieldFilterSynchronizer,
    FieldListingError,
    SafetySettingDeclinedError,
    SyncResult,
)

__all__ = [
    "ApplicationHostConfigStore",
    "DuplicateExtensionError",
    "ExtensionFilterEntry",
    "ExtensionFilterError",
    "FieldFilterSynchronizer",
    "FieldListingError",
    "InvalidExtensionError",
    "RequestFilteringStore",
    "SafetySettingDeclinedError",
    "SyncResult",
]
