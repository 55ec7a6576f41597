"""Pydantic models for specification validation."""

from typing import Literal

from pydantic import BaseModel, Field


class ValidateRequest(BaseModel):
    """A document to score without storing it."""

    markdown: str = Field(..., min_length=1)
    complexity: Literal["simple", "moderate", "complex"] | None = None
    required_sections: list[int] | None = Field(
        default=None,
        description="Section numbers to require; defaults to the tier's mandatory set",
    )
