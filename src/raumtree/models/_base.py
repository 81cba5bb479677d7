"""Base model for topology payload entities.

Every snapshot entity inherits from :class:`TopologyBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase payload keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``null`` and blank
  string values so the field default is used (or, for required
  fields, validation fails).
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TopologyBaseModel(BaseModel):
    """Base for topology payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_payload_values(cls, values: Any) -> Any:
        """Drop null/blank values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = TopologyBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (keyword construction).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
