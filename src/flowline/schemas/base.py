"""Shared schema base classes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictSchemaModel(BaseModel):
    """Base model with strict validation defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, frozen=False)


class WireSchemaModel(BaseModel):
    """Model for editor/database payloads.

    Accepts camelCase keys as stored by the flow editor and ignores
    editor-only keys such as node positions and styling.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
    )
