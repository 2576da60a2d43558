"""Base model for pymotu data objects.

Every immutable pymotu model inherits from :class:`MotuBaseModel`, which
freezes instances and rejects unknown fields.  Mutable projection
objects (banks, channels) use :class:`MotuMutableModel` instead and
freeze their identity fields individually.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class MotuBaseModel(BaseModel):
    """Base for immutable pymotu models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class MotuMutableModel(BaseModel):
    """Base for models that are patched in place by the projector."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )
