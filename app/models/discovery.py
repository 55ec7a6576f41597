"""Pydantic models for the discovery interview."""

from typing import Literal

from pydantic import BaseModel, Field


class RespondRequest(BaseModel):
    """The user's answer to the pending question."""

    answer: str = Field(..., min_length=1, max_length=10000)
    action: Literal["accept", "edit", "override"] = "accept"
