"""Base model configuration for all data structures."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(frozen=True)


class ApiModel(Model):
    """Base model for Azure DevOps API payloads.

    Fields are declared with their camelCase aliases; keys the models do not
    declare are ignored so that new API fields never break validation.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")
