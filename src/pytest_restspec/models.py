"""Base Pydantic models for decoded test elements.

All parsed steps, tests and files are immutable and reject unknown fields so
that a parsed test file is deterministic and typos never pass silently.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all test elements.

    Design principles enforced by this model:
        - Immutability: steps and tests cannot be modified after parsing.
        - Strict schema validation: unknown or extra fields are rejected.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
        populate_by_name=True,
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Unknown environment variables are ignored so that the surrounding
    environment never breaks configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
