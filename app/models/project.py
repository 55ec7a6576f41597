"""Pydantic models for project management."""

from typing import Literal

from pydantic import BaseModel, Field


class CreateProjectRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=20000)
    name: str | None = Field(default=None, max_length=200)
    complexity: Literal["simple", "moderate", "complex"] | None = None
    is_agentic: bool | None = None


class ClassifyRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=20000)
