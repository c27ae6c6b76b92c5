"""Canonical entities that issues attach to."""

from typing import Any

from pydantic import Field, field_validator

from .base import FrozenModel
from .enums import EntityType


def entity_id_for(canonical_path: str) -> str:
    return f"entity:{canonical_path}"


class Entity(FrozenModel):
    """Something an issue can be attached to (usually a file).

    Attributes:
        id: Stable identifier derived from the canonical path
        type: Entity kind
        name: Human-readable name (file or package name)
        canonical_path: Project-relative, forward-slash path; the universal
            correlation key
        original_identifier: Verbatim tool input, kept for debugging
        tool_name: Tool paired with the smallest original identifier seen
        confidence: Normalization certainty in [0, 1]
        metadata: Registry notes such as type conflicts
    """

    id: str
    type: EntityType
    name: str
    canonical_path: str
    original_identifier: str
    tool_name: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("canonical_path")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("canonical_path must be non-empty")
        return value
