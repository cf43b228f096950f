"""Base Pydantic models for declarative elements.

This module defines the foundational model classes used by values,
plugin descriptors, manifest entries, and provisioning outcomes. It
enforces immutability and strict schema validation so that declared
structures cannot drift while a provisioning run is in progress.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for declarative elements.

    Design principles enforced by this model:
        - Immutability: elements cannot be modified after creation.
          Resources reference values and descriptors freely across
          worker threads without copying them.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in declarations.

    All declarative models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    This class serves as the root for settings models resolved from the
    process environment (for example, a target subscription or a worker
    pool size).

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored,
          so unrelated environment variables never break resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
