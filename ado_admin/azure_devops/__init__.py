"""Azure DevOps REST client module."""

from ado_admin.azure_devops.client import (
    AzureDevOpsApiError,
    AzureDevOpsClient,
    AzureDevOpsResponseError,
)
from ado_admin.azure_devops.config import AzureDevOpsConfig

__all__ = [
    "AzureDevOpsApiError",
    "AzureDevOpsClient",
    "AzureDevOpsConfig",
    "AzureDevOpsResponseError",
]
