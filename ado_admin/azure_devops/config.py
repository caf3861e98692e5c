"""Configuration for the Azure DevOps REST client."""

from pydantic import BaseModel, SecretStr, field_validator

DEFAULT_API_VERSION = "7.1"


class AzureDevOpsConfig(BaseModel):
    """Configuration for the Azure DevOps REST client.

    ``collection_url`` is the organization URL on Azure DevOps Services
    (``https://dev.azure.com/{org}``) or the collection URL on Azure DevOps
    Server (``https://server/tfs/DefaultCollection``).
    """

    token: SecretStr
    collection_url: str
    api_version: str = DEFAULT_API_VERSION

    @field_validator("collection_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def for_organization(
        cls,
        organization: str,
        token: str,
        api_version: str = DEFAULT_API_VERSION,
        api_base_url: str = "https://dev.azure.com",
    ) -> "AzureDevOpsConfig":
        """Build a configuration for an Azure DevOps Services organization."""
        return cls(
            token=SecretStr(token),
            collection_url=f"{api_base_url.rstrip('/')}/{organization}",
            api_version=api_version,
        )
